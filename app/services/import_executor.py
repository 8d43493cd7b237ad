"""
app/services/import_executor.py

End-to-end import run: fetch, map, encode, sync.
"""

from __future__ import annotations

import json
import logging
import time
import traceback
import uuid
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Iterable

from app.codecs.ndjson import build_ndjson, count_items
from app.config import get_import_http_settings
from app.connectors.external_api_connector import ExternalApiConnector, truncate_text
from app.connectors.graph_sync_client import GraphSyncClient
from app.domain.imports import (
    CanonicalItem,
    ConnectionTestResult,
    FetchFailureKind,
    ImportDefinition,
    ImportResult,
    SyncResponse,
)
from app.errors import ImportConfigurationError
from app.logging_utils import log_event
from app.mappers.field_mapper import FieldMapper

logger = logging.getLogger(__name__)

NO_ITEMS_MAPPED_MESSAGE = "No items could be mapped from the external data"
FETCH_FAILED_MESSAGE = "Failed to fetch data from external API"
URL_AS_JSON_PATH_MESSAGE = (
    "JSON Path should be the path to the data array within the JSON response "
    "(e.g., 'products', 'data', 'results'), not a URL. "
    "The API URL should be entered in the 'API URL' field."
)
ROOT_ARRAY_HINT = (
    "The API must return a JSON array at the root level, or specify a JSON Path "
    "to navigate to the array (e.g., 'data', 'results', 'items')."
)
SAMPLE_CONTENT_LENGTH = 500


def _as_definition(configuration: Any) -> ImportDefinition:
    if isinstance(configuration, ImportDefinition):
        return configuration
    return ImportDefinition.from_configuration(configuration)


def _elapsed(started: float) -> timedelta:
    return timedelta(seconds=time.perf_counter() - started)


class ImportExecutor:
    """
    Runs one import for one configuration.

    Nothing that happens during a run escapes as an exception: fetch, data
    and sync failures all come back as a failed ``ImportResult``. Only
    ``ImportConfigurationError`` is raised, and only before any I/O.
    """

    def __init__(
        self,
        *,
        connector: ExternalApiConnector,
        sync_client: GraphSyncClient,
        mapper: FieldMapper | None = None,
        sample_items: int = 2,
    ) -> None:
        self._connector = connector
        self._sync_client = sync_client
        self._mapper = mapper or FieldMapper()
        self._sample_items = max(1, sample_items)

    def execute_import(self, configuration: ImportDefinition | Any) -> ImportResult:
        definition = _as_definition(configuration)
        definition.validate()

        started = time.perf_counter()
        trace: list[str] = [
            "=== IMPORT DEBUG INFO ===",
            f"Source ID: {definition.target_source_id}",
            f"Content Type: {definition.target_content_type}",
            f"API URL: {definition.api_url}",
            f"Started at: {datetime.now(timezone.utc).isoformat()}",
            "",
        ]
        log_event(
            logger,
            logging.INFO,
            "import_run_started",
            configuration_id=definition.configuration_id,
            source_id=definition.target_source_id,
            api_url=definition.api_url,
        )

        try:
            trace.append("Fetching data from external API...")
            fetched = self._connector.fetch(definition)
            if not fetched.success:
                trace.append(f"Fetch failed: {fetched.error_message}")
                result = ImportResult.failed(
                    fetched.error_message or FETCH_FAILED_MESSAGE,
                    duration=_elapsed(started),
                    debug_info=_join_trace(trace),
                )
                self._log_finished(definition, result)
                return result

            trace.append(f"Received {len(fetched.json_data or '')} bytes of JSON data")
            trace.append("")

            trace.append("Mapping external data to items...")
            items, warnings = self._mapper.map_records(fetched.records, definition)
            trace.append(f"Mapped {len(items)} items")
            if warnings:
                trace.append(f"Warnings: {'; '.join(warnings)}")
            trace.append("")

            if not items:
                result = ImportResult.failed(
                    NO_ITEMS_MAPPED_MESSAGE,
                    duration=_elapsed(started),
                    total_received=len(fetched.records),
                    warnings=warnings,
                    debug_info=_join_trace(trace),
                )
                self._log_finished(definition, result)
                return result

            trace.append("Building NDJSON payload...")
            payload = build_ndjson(items)
            trace.append(f"NDJSON payload items: {count_items(payload)}")
            trace.append(f"NDJSON payload size: {len(payload.encode('utf-8'))} bytes")
            trace.append("")

            job_id = str(uuid.uuid4())
            trace.append(f"Syncing to content graph job_id={job_id}...")
            sync_response = self._sync_client.sync_data(definition.target_source_id, payload, job_id)
            trace.append(f"Sync response: {sync_response.status_code} {sync_response.raw_response or '(empty)'}")

            result = ImportResult.successful(
                items_imported=len(items),
                total_received=len(fetched.records),
                duration=_elapsed(started),
                warnings=warnings,
                debug_info=_join_trace(trace),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Import run failed configuration_id=%s error=%s",
                definition.configuration_id,
                exc,
            )
            message = str(exc) or type(exc).__name__
            trace.append(f"ERROR: {message}")
            trace.append(f"Stack trace: {traceback.format_exc()}")
            result = ImportResult.failed(
                message,
                duration=_elapsed(started),
                debug_info=_join_trace(trace),
            )

        self._log_finished(definition, result)
        return result

    def test_connection(self, configuration: ImportDefinition | Any) -> ConnectionTestResult:
        """
        Dry-run the fetch and check the response holds an array. No mapping or sync.
        """

        definition = _as_definition(configuration)
        json_path = (definition.json_path or "").strip()
        if json_path.lower().startswith(("http://", "https://")):
            return ConnectionTestResult(success=False, message=URL_AS_JSON_PATH_MESSAGE)

        try:
            fetched = self._connector.fetch(definition)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Connection test failed api_url=%s", definition.api_url)
            return ConnectionTestResult(success=False, message=f"Error: {exc}")

        if fetched.success:
            sample = json.dumps(fetched.records[: self._sample_items], indent=2, ensure_ascii=False)
            return ConnectionTestResult(success=True, message="Connection successful", sample_json=sample)

        if fetched.failure_kind in {FetchFailureKind.ARRAY_NOT_FOUND, FetchFailureKind.INVALID_JSON}:
            if json_path:
                hint = f"Could not find a JSON array at path '{json_path}'. Check that the path is correct."
            else:
                hint = ROOT_ARRAY_HINT
            return ConnectionTestResult(
                success=False,
                message=hint,
                sample_json=truncate_text(fetched.raw_content, SAMPLE_CONTENT_LENGTH) or None,
            )

        return ConnectionTestResult(success=False, message=fetched.error_message or FETCH_FAILED_MESSAGE)

    def preview_import(
        self,
        configuration: ImportDefinition | Any,
        target_schema: Iterable[str] | None = None,
    ) -> tuple[list[CanonicalItem], list[str]]:
        """
        Fetch and map without encoding or syncing.

        ``target_schema`` lists the property names the target content type
        defines; mapped properties outside it are reported as warnings.
        """

        definition = _as_definition(configuration)
        definition.validate()

        fetched = self._connector.fetch(definition)
        if not fetched.success:
            return [], [fetched.error_message or FETCH_FAILED_MESSAGE]

        items, warnings = self._mapper.map_records(fetched.records, definition)
        if target_schema is not None:
            known = set(target_schema)
            for mapping in definition.field_mappings:
                if mapping.is_usable and mapping.target_property not in known:
                    warnings.append(
                        f"Property '{mapping.target_property}' is not defined on content type "
                        f"'{definition.target_content_type}'"
                    )
        return items, warnings

    def delete_items(self, configuration: ImportDefinition | Any, item_ids: Iterable[str]) -> SyncResponse:
        """
        Remove previously imported items from the configuration's target source.
        """

        definition = _as_definition(configuration)
        if not definition.target_source_id or not definition.target_source_id.strip():
            raise ImportConfigurationError("Target source ID is required.")

        response = self._sync_client.delete_items(definition.target_source_id, item_ids)
        log_event(
            logger,
            logging.INFO,
            "import_items_deleted",
            configuration_id=definition.configuration_id,
            source_id=definition.target_source_id,
            status_code=response.status_code,
        )
        return response

    @staticmethod
    def _log_finished(definition: ImportDefinition, result: ImportResult) -> None:
        log_event(
            logger,
            logging.INFO if result.success else logging.WARNING,
            "import_run_finished",
            configuration_id=definition.configuration_id,
            source_id=definition.target_source_id,
            success=result.success,
            items_received=result.total_items_received,
            items_imported=result.items_imported,
            warnings=len(result.warnings),
            duration_ms=int(result.duration.total_seconds() * 1000),
            error=result.error_message or None,
        )


def _join_trace(lines: list[str]) -> str:
    return "\n".join(lines) + "\n"


@lru_cache(maxsize=1)
def get_import_executor() -> ImportExecutor:
    """
    Build and cache the import executor with shared HTTP sessions.
    """

    http_settings = get_import_http_settings()
    return ImportExecutor(
        connector=ExternalApiConnector(http_settings=http_settings),
        sync_client=GraphSyncClient(),
        sample_items=http_settings.sample_items,
    )
