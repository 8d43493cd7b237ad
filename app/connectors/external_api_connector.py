"""
app/connectors/external_api_connector.py

Outbound fetcher for configured third-party JSON APIs.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

import requests

from app.config import ImportHTTPSettings, get_import_http_settings
from app.domain.imports import FetchFailureKind, FetchResult, ImportDefinition
from app.mappers.json_path import MISSING, resolve_json_path
from db.models.import_configuration import AuthenticationType

logger = logging.getLogger(__name__)

DEFAULT_API_KEY_HEADER = "X-API-Key"

NO_PATH_HINT = (
    "Response is not a valid JSON array at root level. "
    "Specify a JSON Path to navigate to the array."
)


def truncate_text(value: str | None, max_length: int) -> str:
    """
    Cut ``value`` to ``max_length`` characters, marking the cut with ``...``.
    """

    if not value or len(value) <= max_length:
        return value or ""
    return value[:max_length] + "..."


def build_request_headers(definition: ImportDefinition) -> dict[str, str]:
    """
    Resolve authentication and custom headers for one outbound request.
    """

    headers: dict[str, str] = {}
    auth_type = (definition.auth_type or AuthenticationType.NONE).lower()

    if auth_type == AuthenticationType.API_KEY:
        header_name = (definition.auth_key_or_username or "").strip() or DEFAULT_API_KEY_HEADER
        headers[header_name] = definition.auth_value_or_password or ""
    elif auth_type == AuthenticationType.BASIC:
        if definition.auth_key_or_username:
            raw = f"{definition.auth_key_or_username}:{definition.auth_value_or_password or ''}"
            headers["Authorization"] = "Basic " + base64.b64encode(raw.encode("utf-8")).decode("ascii")
    elif auth_type == AuthenticationType.BEARER:
        if definition.auth_value_or_password:
            headers["Authorization"] = f"Bearer {definition.auth_value_or_password}"

    for name, value in definition.custom_headers.items():
        if name and name.strip():
            headers[name] = value
    return headers


class ExternalApiConnector:
    """
    Performs one request per call and reports failures as ``FetchResult`` values.
    """

    def __init__(
        self,
        *,
        http_settings: ImportHTTPSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = http_settings or get_import_http_settings()
        self._session = session or requests.Session()
        self._timeout_seconds = settings.timeout_seconds
        self._error_excerpt_length = settings.error_excerpt_length

    def fetch(self, definition: ImportDefinition) -> FetchResult:
        """
        Call the configured API and locate the data array inside its response.
        """

        url = definition.api_url
        try:
            response = self._session.request(
                method=definition.http_method or "GET",
                url=url,
                headers=build_request_headers(definition),
                timeout=self._timeout_seconds,
            )
        except requests.Timeout as exc:
            logger.warning("External API request timed out url=%s error=%s", url, exc)
            return FetchResult.failure(FetchFailureKind.TIMEOUT, "Connection timed out")
        except requests.RequestException as exc:
            logger.warning("External API request failed url=%s error=%s", url, exc)
            return FetchResult.failure(FetchFailureKind.NETWORK, f"Connection failed: {exc}")

        status_code = response.status_code
        content = response.text or ""
        if not 200 <= status_code < 300:
            logger.warning("External API returned error status url=%s status=%s", url, status_code)
            return FetchResult.failure(
                FetchFailureKind.HTTP_STATUS,
                f"API returned {status_code}: {truncate_text(content, self._error_excerpt_length)}",
                status_code=status_code,
                raw_content=content,
            )

        return self.locate_array(content, definition.json_path, status_code=status_code)

    @staticmethod
    def locate_array(
        content: str,
        json_path: str | None,
        *,
        status_code: int | None = None,
    ) -> FetchResult:
        """
        Parse response text and return the array found at ``json_path``.
        """

        if not content.strip():
            return FetchResult.failure(
                FetchFailureKind.INVALID_JSON,
                "Response body is empty.",
                status_code=status_code,
                raw_content=content,
            )
        try:
            document: Any = json.loads(content)
        except ValueError as exc:
            return FetchResult.failure(
                FetchFailureKind.INVALID_JSON,
                f"Response is not valid JSON: {exc}",
                status_code=status_code,
                raw_content=content,
            )

        located = resolve_json_path(document, json_path)
        if located is MISSING or not isinstance(located, list):
            if json_path and json_path.strip():
                message = f"Could not find a JSON array at path '{json_path}'."
            else:
                message = NO_PATH_HINT
            return FetchResult.failure(
                FetchFailureKind.ARRAY_NOT_FOUND,
                message,
                status_code=status_code,
                raw_content=content,
            )

        return FetchResult.ok(
            json_data=json.dumps(located, ensure_ascii=False),
            records=located,
            status_code=status_code,
        )
