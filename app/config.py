"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ImportHTTPSettings:
    """
    Outbound HTTP behavior for calls to third-party APIs.
    """

    timeout_seconds: float = 30.0
    error_excerpt_length: int = 200
    sample_items: int = 2


@dataclass(frozen=True)
class GraphSyncSettings:
    """
    Credentials and endpoint for the downstream content-graph data API.
    """

    gateway_url: str | None = None
    app_key: str | None = None
    secret: str | None = None
    timeout_seconds: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.gateway_url and self.app_key and self.secret)


@dataclass(frozen=True)
class ImportSchedulerSettings:
    """
    Background tick scheduler settings.
    """

    enabled: bool = True
    interval_seconds: int = 60
    max_workers: int = 4
    misfire_grace_seconds: int = 300


@dataclass(frozen=True)
class DatabaseSettings:
    """
    Engine pool settings for the import store.
    """

    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle_seconds: int = 1800


@dataclass(frozen=True)
class NotificationSettings:
    """
    SMTP delivery settings for import failure and recovery emails.
    """

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    from_email: str = "noreply@graph-importer.local"
    use_tls: bool = True


@lru_cache(maxsize=1)
def get_import_http_settings() -> ImportHTTPSettings:
    """
    Return cached third-party HTTP settings from environment variables.
    """

    return ImportHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("IMPORT_HTTP_TIMEOUT_SECONDS", 30.0)),
        error_excerpt_length=max(20, _get_int_env("IMPORT_HTTP_ERROR_EXCERPT_LENGTH", 200)),
        sample_items=max(1, _get_int_env("IMPORT_HTTP_SAMPLE_ITEMS", 2)),
    )


@lru_cache(maxsize=1)
def get_graph_sync_settings() -> GraphSyncSettings:
    """
    Return cached downstream sync settings from environment variables.
    """

    return GraphSyncSettings(
        gateway_url=_get_optional_str_env("GRAPH_GATEWAY_URL"),
        app_key=_get_optional_str_env("GRAPH_APP_KEY"),
        secret=_get_optional_str_env("GRAPH_SECRET"),
        timeout_seconds=max(1.0, _get_float_env("GRAPH_SYNC_TIMEOUT_SECONDS", 60.0)),
    )


@lru_cache(maxsize=1)
def get_import_scheduler_settings() -> ImportSchedulerSettings:
    """
    Return cached scheduler tick settings from environment variables.
    """

    return ImportSchedulerSettings(
        enabled=_get_bool_env("IMPORT_SCHEDULER_ENABLED", True),
        interval_seconds=max(5, _get_int_env("IMPORT_SCHEDULER_INTERVAL_SECONDS", 60)),
        max_workers=max(1, _get_int_env("IMPORT_SCHEDULER_MAX_WORKERS", 4)),
        misfire_grace_seconds=max(1, _get_int_env("IMPORT_SCHEDULER_MISFIRE_GRACE_SECONDS", 300)),
    )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
    """
    Return cached engine pool settings. The pool always covers every
    scheduler worker plus one session for the API.
    """

    worker_floor = get_import_scheduler_settings().max_workers + 1
    return DatabaseSettings(
        echo=_get_bool_env("SQL_ECHO", False),
        pool_size=max(worker_floor, _get_int_env("DB_POOL_SIZE", 5)),
        max_overflow=max(0, _get_int_env("DB_MAX_OVERFLOW", 10)),
        pool_recycle_seconds=_get_int_env("DB_POOL_RECYCLE", 1800),
    )


@lru_cache(maxsize=1)
def get_notification_settings() -> NotificationSettings:
    """
    Return cached SMTP notification settings from environment variables.
    """

    return NotificationSettings(
        smtp_host=_get_optional_str_env("SMTP_HOST"),
        smtp_port=_get_int_env("SMTP_PORT", 587),
        smtp_username=_get_optional_str_env("SMTP_USERNAME"),
        smtp_password=_get_optional_str_env("SMTP_PASSWORD"),
        from_email=_get_str_env("SMTP_FROM_EMAIL", "noreply@graph-importer.local"),
        use_tls=_get_bool_env("SMTP_USE_TLS", True),
    )
