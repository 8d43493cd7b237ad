"""
Tests for app/services/import_executor.py.

Coverage:
  - execute_import: end-to-end success, fetch failure, nothing mapped,
    sync failure, configuration errors raised before I/O
  - test_connection: sample, URL-as-path rejection, hints with raw content
  - preview_import: mapped items and schema warnings
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from app.domain.imports import (
    FetchFailureKind,
    FetchResult,
    FieldMapping,
    ImportDefinition,
    SyncResponse,
)
from app.errors import GraphSyncError, ImportConfigurationError
from app.services.import_executor import (
    NO_ITEMS_MAPPED_MESSAGE,
    ROOT_ARRAY_HINT,
    URL_AS_JSON_PATH_MESSAGE,
    ImportExecutor,
)


class StubConnector:
    def __init__(self, result: FetchResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls = 0

    def fetch(self, definition: ImportDefinition) -> FetchResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


class RecordingSyncClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str, str | None]] = []
        self.deleted: list[tuple[str, list[str]]] = []

    def sync_data(self, source_id: str, payload: str, job_id: str | None = None) -> SyncResponse:
        self.calls.append((source_id, payload, job_id))
        if self.error is not None:
            raise self.error
        return SyncResponse(success=True, status_code=200, raw_response="{}", job_id=job_id)

    def delete_items(self, source_id: str, item_ids: Any) -> SyncResponse:
        self.deleted.append((source_id, list(item_ids)))
        return SyncResponse(success=True, status_code=200, raw_response="")


def _ok(records: list[Any]) -> FetchResult:
    return FetchResult.ok(json_data=json.dumps(records), records=records, status_code=200)


def _definition(**overrides: Any) -> ImportDefinition:
    values: dict[str, Any] = {
        "target_source_id": "prd",
        "target_content_type": "Product",
        "api_url": "https://api.example.com/products",
        "id_field_mapping": "id",
        "field_mappings": (FieldMapping("name", "Title"),),
    }
    values.update(overrides)
    return ImportDefinition(**values)


def _executor(connector: StubConnector, sync_client: RecordingSyncClient | None = None) -> ImportExecutor:
    return ImportExecutor(
        connector=connector,  # type: ignore[arg-type]
        sync_client=sync_client or RecordingSyncClient(),  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# execute_import
# ---------------------------------------------------------------------------


class TestExecuteImport:
    def test_successful_run_syncs_encoded_items(self):
        sync_client = RecordingSyncClient()
        executor = _executor(StubConnector(_ok([{"id": "a1", "name": "Widget"}])), sync_client)

        result = executor.execute_import(_definition())

        assert result.success is True
        assert result.total_items_received == 1
        assert result.items_imported == 1
        assert result.errors == []
        assert len(sync_client.calls) == 1

        source_id, payload, job_id = sync_client.calls[0]
        lines = payload.splitlines()
        assert source_id == "prd"
        assert job_id
        assert lines[0] == '{"index":{"_id":"a1"}}'
        assert json.loads(lines[1]) == {
            "Title": "Widget",
            "ContentType": ["Product"],
            "Status": "Published",
            "RolesWithReadAccess": "Everyone",
        }
        assert "=== IMPORT DEBUG INFO ===" in result.debug_info

    def test_partial_mapping_keeps_warnings(self):
        records = [{"id": "1"}, {"id": "2"}, {"name": "no id"}, {"id": "4"}, {"id": "5"}]
        executor = _executor(StubConnector(_ok(records)))

        result = executor.execute_import(_definition())

        assert result.success is True
        assert result.total_items_received == 5
        assert result.items_imported == 4
        assert len(result.warnings) == 1
        assert "Item 3" in result.warnings[0]

    def test_fetch_failure_returns_failed_result(self):
        failure = FetchResult.failure(FetchFailureKind.HTTP_STATUS, "API returned 500: boom", status_code=500)
        sync_client = RecordingSyncClient()
        executor = _executor(StubConnector(failure), sync_client)

        result = executor.execute_import(_definition())

        assert result.success is False
        assert result.errors == ["API returned 500: boom"]
        assert sync_client.calls == []

    def test_no_mapped_items_fails_without_sync(self):
        sync_client = RecordingSyncClient()
        executor = _executor(StubConnector(_ok([{"name": "x"}, {"name": "y"}])), sync_client)

        result = executor.execute_import(_definition())

        assert result.success is False
        assert result.errors == [NO_ITEMS_MAPPED_MESSAGE]
        assert result.total_items_received == 2
        assert len(result.warnings) == 2
        assert sync_client.calls == []

    def test_empty_array_fails(self):
        result = _executor(StubConnector(_ok([]))).execute_import(_definition())

        assert result.success is False
        assert result.errors == [NO_ITEMS_MAPPED_MESSAGE]

    def test_sync_rejection_becomes_failed_result(self):
        sync_client = RecordingSyncClient(
            error=GraphSyncError("Error syncing data to the content graph: 401 - denied", status_code=401)
        )
        executor = _executor(StubConnector(_ok([{"id": "a1"}])), sync_client)

        result = executor.execute_import(_definition())

        assert result.success is False
        assert "401" in result.error_message
        assert "Stack trace" in result.debug_info

    def test_unexpected_connector_error_becomes_failed_result(self):
        executor = _executor(StubConnector(error=RuntimeError()))

        result = executor.execute_import(_definition())

        assert result.success is False
        assert result.errors == ["RuntimeError"]

    def test_missing_id_mapping_raises_before_fetch(self):
        connector = StubConnector(_ok([]))

        with pytest.raises(ImportConfigurationError):
            _executor(connector).execute_import(_definition(id_field_mapping=""))

        assert connector.calls == 0

    def test_missing_api_url_raises(self):
        with pytest.raises(ImportConfigurationError) as excinfo:
            _executor(StubConnector(_ok([]))).execute_import(_definition(api_url=" "))

        assert excinfo.value.field_name == "api_url"


# ---------------------------------------------------------------------------
# test_connection
# ---------------------------------------------------------------------------


class TestConnection:
    def test_success_returns_sample_of_first_items(self):
        records = [{"id": n} for n in range(5)]
        executor = _executor(StubConnector(_ok(records)))

        result = executor.test_connection(_definition())

        assert result.success is True
        assert result.message == "Connection successful"
        assert json.loads(result.sample_json) == [{"id": 0}, {"id": 1}]

    def test_url_in_json_path_is_rejected_without_fetch(self):
        connector = StubConnector(_ok([]))

        result = _executor(connector).test_connection(_definition(json_path="https://api.example.com/data"))

        assert result.success is False
        assert result.message == URL_AS_JSON_PATH_MESSAGE
        assert connector.calls == 0

    def test_missing_array_returns_hint_and_raw_content(self):
        raw = '{"data": ' + '"x"' * 300 + "}"
        failure = FetchResult.failure(
            FetchFailureKind.ARRAY_NOT_FOUND,
            "not an array",
            status_code=200,
            raw_content=raw,
        )

        result = _executor(StubConnector(failure)).test_connection(_definition())

        assert result.success is False
        assert result.message == ROOT_ARRAY_HINT
        assert result.sample_json == raw[:500] + "..."

    def test_wrong_path_mentions_path(self):
        failure = FetchResult.failure(FetchFailureKind.ARRAY_NOT_FOUND, "x", raw_content="{}")

        result = _executor(StubConnector(failure)).test_connection(_definition(json_path="items"))

        assert "'items'" in result.message
        assert result.sample_json == "{}"

    def test_http_failure_returns_fetch_message(self):
        failure = FetchResult.failure(FetchFailureKind.HTTP_STATUS, "API returned 404: missing", status_code=404)

        result = _executor(StubConnector(failure)).test_connection(_definition())

        assert result.success is False
        assert result.message == "API returned 404: missing"
        assert result.sample_json is None

    def test_connector_exception_is_reported(self):
        result = _executor(StubConnector(error=ValueError("bad url"))).test_connection(_definition())

        assert result.success is False
        assert result.message == "Error: bad url"


# ---------------------------------------------------------------------------
# preview_import
# ---------------------------------------------------------------------------


class TestPreviewImport:
    def test_preview_maps_without_syncing(self):
        sync_client = RecordingSyncClient()
        executor = _executor(StubConnector(_ok([{"id": "a1", "name": "Widget"}])), sync_client)

        items, warnings = executor.preview_import(_definition())

        assert [item.properties for item in items] == [{"Title": "Widget"}]
        assert warnings == []
        assert sync_client.calls == []

    def test_unknown_target_property_is_warned(self):
        executor = _executor(StubConnector(_ok([{"id": "a1", "name": "Widget"}])))

        _, warnings = executor.preview_import(_definition(), target_schema=["Name"])

        assert warnings == ["Property 'Title' is not defined on content type 'Product'"]

    def test_fetch_failure_is_a_warning(self):
        failure = FetchResult.failure(FetchFailureKind.TIMEOUT, "Connection timed out")

        items, warnings = _executor(StubConnector(failure)).preview_import(_definition())

        assert items == []
        assert warnings == ["Connection timed out"]


class TestDeleteItems:
    def test_deletes_from_definition_source(self):
        sync_client = RecordingSyncClient()

        response = _executor(StubConnector(), sync_client).delete_items(_definition(), ["a1", "a2"])

        assert response.success is True
        assert sync_client.deleted == [("prd", ["a1", "a2"])]

    def test_blank_source_raises(self):
        with pytest.raises(ImportConfigurationError):
            _executor(StubConnector()).delete_items(_definition(target_source_id=" "), ["a1"])


def test_executor_accepts_configuration_rows():
    class Row:
        id = "cfg"
        name = "Feed"
        target_source_id = "prd"
        target_content_type = "Product"
        api_url = "https://api.example.com"
        http_method = "GET"
        auth_type = "none"
        auth_key_or_username = None
        auth_value_or_password = None
        custom_headers = None
        json_path = None
        id_field_mapping = "id"
        field_mappings = [{"source_path": "name", "target_property": "Title"}]
        language_routing = None

    result = _executor(StubConnector(_ok([{"id": 1, "name": "x"}]))).execute_import(Row())

    assert result.success is True
