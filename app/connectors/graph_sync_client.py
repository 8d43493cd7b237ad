"""
app/connectors/graph_sync_client.py

Client for the downstream content graph bulk data endpoint.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable

import requests

from app.codecs.ndjson import build_delete_payload, count_items
from app.config import GraphSyncSettings, get_graph_sync_settings
from app.domain.imports import SyncResponse
from app.errors import GraphSyncError

logger = logging.getLogger(__name__)

DATA_API_PATH = "/api/content/v2/data"
JOB_ID_HEADER = "og-job-id"
NDJSON_CONTENT_TYPE = "text/plain; charset=utf-8"


class GraphSyncClient:
    """
    Posts NDJSON payloads to ``{gateway}/api/content/v2/data?id={source}``.

    The client never retries; a failed sync fails the whole run and the
    scheduler's backoff decides when to try again.
    """

    def __init__(
        self,
        *,
        settings: GraphSyncSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings or get_graph_sync_settings()
        self._session = session or requests.Session()

    def build_data_url(self, source_id: str) -> str:
        if not self._settings.is_configured:
            raise GraphSyncError(
                "Graph gateway is not configured. Set GRAPH_GATEWAY_URL, GRAPH_APP_KEY and GRAPH_SECRET."
            )
        gateway = (self._settings.gateway_url or "").rstrip("/")
        return f"{gateway}{DATA_API_PATH}"

    def sync_data(self, source_id: str, payload: str, job_id: str | None = None) -> SyncResponse:
        """
        Push an encoded payload for ``source_id``. Raises GraphSyncError on rejection.
        """

        if not source_id or not source_id.strip():
            raise ValueError("Source ID is required.")
        if not payload or not payload.strip():
            raise ValueError("At least one item is required.")

        headers = {"Content-Type": NDJSON_CONTENT_TYPE}
        if job_id and job_id.strip():
            headers[JOB_ID_HEADER] = job_id

        response = self._post(source_id, payload, headers=headers, action="syncing data")
        content = response.text or ""
        if not 200 <= response.status_code < 300:
            logger.error(
                "Graph sync rejected source_id=%s status=%s job_id=%s",
                source_id,
                response.status_code,
                job_id,
            )
            raise GraphSyncError(
                f"Error syncing data to the content graph: {response.status_code} - {content}",
                status_code=response.status_code,
            )

        if _has_errors(content):
            logger.error("Graph sync returned errors source_id=%s job_id=%s", source_id, job_id)
            raise GraphSyncError(
                f"Sync returned errors: {content}",
                status_code=response.status_code,
            )

        logger.info(
            "Graph sync completed source_id=%s status=%s job_id=%s items=%s bytes=%s",
            source_id,
            response.status_code,
            job_id,
            count_items(payload),
            len(payload.encode("utf-8")),
        )
        return SyncResponse(
            success=True,
            status_code=response.status_code,
            raw_response=content,
            job_id=job_id,
        )

    def delete_items(self, source_id: str, item_ids: Iterable[str]) -> SyncResponse:
        """
        Remove specific items by posting delete action lines.
        """

        ids = [item_id for item_id in item_ids if item_id]
        if not ids:
            raise ValueError("At least one item id is required.")

        response = self._post(
            source_id,
            build_delete_payload(ids),
            headers={"Content-Type": NDJSON_CONTENT_TYPE},
            action="deleting items",
        )
        if not 200 <= response.status_code < 300:
            raise GraphSyncError(
                f"Error deleting items from the content graph: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        logger.info("Graph items deleted source_id=%s count=%s", source_id, len(ids))
        return SyncResponse(success=True, status_code=response.status_code, raw_response=response.text or "")

    def _post(
        self,
        source_id: str,
        body: str,
        *,
        headers: dict[str, str],
        action: str,
    ) -> requests.Response:
        url = self.build_data_url(source_id)
        try:
            return self._session.request(
                method="POST",
                url=url,
                params={"id": source_id},
                data=body.encode("utf-8"),
                headers=headers,
                auth=(self._settings.app_key or "", self._settings.secret or ""),
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error("Graph request failed source_id=%s action=%s error=%s", source_id, action, exc)
            raise GraphSyncError(f"Network error {action}: {exc}") from exc


def _has_errors(content: str) -> bool:
    if not content.strip():
        return False
    try:
        document = json.loads(content)
    except ValueError:
        return False
    if not isinstance(document, dict):
        return False
    errors = document.get("errors")
    return isinstance(errors, list) and len(errors) > 0
