"""
app/domain/imports.py

Domain models moved between the fetch, map, encode and sync stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Mapping, Union

from app.errors import ImportConfigurationError

# Canonical property value: str, int, float, bool, None, nested list or map.
PropertyValue = Union[str, int, float, bool, None, list[Any], dict[str, Any]]


class FieldTransformation(str, Enum):
    """
    Typed conversion applied to one mapped value.
    """

    NONE = "none"
    TO_STRING = "to_string"
    TO_INT = "to_int"
    TO_FLOAT = "to_float"
    TO_BOOLEAN = "to_boolean"
    TO_DATE = "to_date"
    TO_DATE_TIME = "to_date_time"

    @classmethod
    def parse(cls, raw: Any) -> FieldTransformation:
        """
        Accept the enum, its value, its member name, its ordinal, or the
        PascalCase spelling stored by the admin UI (``"ToInt"``).
        """

        if raw is None or raw == "":
            return cls.NONE
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, bool):
            raise ImportConfigurationError(
                f"Unknown field transformation: {raw!r}",
                field_name="transformation",
            )
        members = list(cls)
        if isinstance(raw, int):
            if 0 <= raw < len(members):
                return members[raw]
        elif isinstance(raw, str):
            folded = raw.strip().replace("_", "").lower()
            for member in members:
                if folded in {member.value.replace("_", ""), member.name.replace("_", "").lower()}:
                    return member
        raise ImportConfigurationError(
            f"Unknown field transformation: {raw!r}",
            field_name="transformation",
        )


@dataclass(frozen=True)
class FieldMapping:
    """
    One source dot-path to target property mapping.
    """

    source_path: str
    target_property: str
    transformation: FieldTransformation = FieldTransformation.NONE
    default_value: str | None = None

    @property
    def is_usable(self) -> bool:
        return bool(self.source_path.strip() and self.target_property.strip())

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> FieldMapping:
        def pick(*keys: str) -> Any:
            for key in keys:
                if key in payload:
                    return payload[key]
            return None

        default_value = pick("default_value", "defaultValue", "DefaultValue")
        return cls(
            source_path=str(pick("source_path", "sourcePath", "SourcePath") or ""),
            target_property=str(pick("target_property", "targetProperty", "TargetProperty") or ""),
            transformation=FieldTransformation.parse(
                pick("transformation", "Transformation")
            ),
            default_value=None if default_value is None else str(default_value),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_path": self.source_path,
            "target_property": self.target_property,
            "transformation": self.transformation.value,
            "default_value": self.default_value,
        }


@dataclass(frozen=True)
class ImportDefinition:
    """
    Immutable view of an import configuration used by one run.

    Decoupled from the ORM row so a run never touches session state.
    """

    target_source_id: str
    target_content_type: str
    api_url: str
    id_field_mapping: str
    http_method: str = "GET"
    auth_type: str = "none"
    auth_key_or_username: str | None = None
    auth_value_or_password: str | None = None
    custom_headers: dict[str, str] = field(default_factory=dict)
    json_path: str | None = None
    field_mappings: tuple[FieldMapping, ...] = ()
    language_routing: str | None = None
    name: str = ""
    configuration_id: Any = None

    def validate(self) -> None:
        """
        Raise ImportConfigurationError when a field needed before I/O is missing.
        """

        if not (self.api_url or "").strip():
            raise ImportConfigurationError("API URL is required.", field_name="api_url")
        if not (self.id_field_mapping or "").strip():
            raise ImportConfigurationError(
                "ID field mapping is required.",
                field_name="id_field_mapping",
            )

    @classmethod
    def from_configuration(cls, configuration: Any) -> ImportDefinition:
        """
        Build a definition from an ``ImportConfiguration`` row (or any object
        exposing the same attributes).
        """

        raw_mappings = getattr(configuration, "field_mappings", None) or []
        if not isinstance(raw_mappings, list):
            raise ImportConfigurationError(
                "Field mappings must be a list.",
                field_name="field_mappings",
            )
        mappings: list[FieldMapping] = []
        for entry in raw_mappings:
            if isinstance(entry, FieldMapping):
                mappings.append(entry)
            elif isinstance(entry, Mapping):
                mappings.append(FieldMapping.from_dict(entry))
            else:
                raise ImportConfigurationError(
                    f"Field mapping entries must be objects, got {type(entry).__name__}.",
                    field_name="field_mappings",
                )

        headers = getattr(configuration, "custom_headers", None) or {}
        return cls(
            target_source_id=getattr(configuration, "target_source_id", "") or "",
            target_content_type=getattr(configuration, "target_content_type", "") or "",
            api_url=getattr(configuration, "api_url", "") or "",
            id_field_mapping=getattr(configuration, "id_field_mapping", "") or "",
            http_method=(getattr(configuration, "http_method", None) or "GET").upper(),
            auth_type=getattr(configuration, "auth_type", None) or "none",
            auth_key_or_username=getattr(configuration, "auth_key_or_username", None),
            auth_value_or_password=getattr(configuration, "auth_value_or_password", None),
            custom_headers={str(key): str(value) for key, value in dict(headers).items()},
            json_path=getattr(configuration, "json_path", None),
            field_mappings=tuple(mappings),
            language_routing=getattr(configuration, "language_routing", None),
            name=getattr(configuration, "name", "") or "",
            configuration_id=getattr(configuration, "id", None),
        )


@dataclass
class CanonicalItem:
    """
    Normalized record synced to the downstream data source.
    """

    id: str
    content_type: str
    language_routing: str | None = None
    properties: dict[str, PropertyValue] = field(default_factory=dict)


@dataclass(frozen=True)
class RecordMappingOutcome:
    """
    Result of mapping one external record: an item, a warning, or both absent.
    """

    item: CanonicalItem | None = None
    warning: str | None = None


@dataclass
class ImportResult:
    """
    Outcome of one end-to-end import run.
    """

    success: bool
    total_items_received: int = 0
    items_imported: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration: timedelta = field(default_factory=timedelta)
    debug_info: str | None = None

    def __post_init__(self) -> None:
        if self.success and self.errors:
            raise ValueError("A successful ImportResult cannot carry errors.")

    @property
    def error_message(self) -> str:
        return "; ".join(self.errors)

    @classmethod
    def successful(
        cls,
        *,
        items_imported: int,
        total_received: int,
        duration: timedelta,
        warnings: list[str] | None = None,
        debug_info: str | None = None,
    ) -> ImportResult:
        return cls(
            success=True,
            total_items_received=total_received,
            items_imported=items_imported,
            duration=duration,
            warnings=list(warnings or []),
            debug_info=debug_info,
        )

    @classmethod
    def failed(
        cls,
        error_message: str,
        *,
        duration: timedelta | None = None,
        total_received: int = 0,
        warnings: list[str] | None = None,
        debug_info: str | None = None,
    ) -> ImportResult:
        return cls(
            success=False,
            total_items_received=total_received,
            errors=[error_message],
            warnings=list(warnings or []),
            duration=duration or timedelta(),
            debug_info=debug_info,
        )


class FetchFailureKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    INVALID_JSON = "invalid_json"
    ARRAY_NOT_FOUND = "array_not_found"


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of one outbound call to a third-party API.
    """

    success: bool
    json_data: str | None = None
    records: list[Any] = field(default_factory=list)
    error_message: str | None = None
    failure_kind: FetchFailureKind | None = None
    status_code: int | None = None
    raw_content: str | None = None

    @classmethod
    def ok(cls, *, json_data: str, records: list[Any], status_code: int | None = None) -> FetchResult:
        return cls(success=True, json_data=json_data, records=records, status_code=status_code)

    @classmethod
    def failure(
        cls,
        kind: FetchFailureKind,
        message: str,
        *,
        status_code: int | None = None,
        raw_content: str | None = None,
    ) -> FetchResult:
        return cls(
            success=False,
            error_message=message,
            failure_kind=kind,
            status_code=status_code,
            raw_content=raw_content,
        )


@dataclass(frozen=True)
class ConnectionTestResult:
    success: bool
    message: str
    sample_json: str | None = None


@dataclass(frozen=True)
class SyncResponse:
    """
    Downstream sync endpoint response kept for diagnostics.
    """

    success: bool
    status_code: int
    raw_response: str
    job_id: str | None = None


@dataclass(frozen=True)
class ImportStatistics:
    """
    Aggregate over a configuration's execution history.
    """

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_duration: timedelta = timedelta()
    total_items_imported: int = 0
    last_successful_execution: datetime | None = None
    last_failed_execution: datetime | None = None

    @property
    def success_rate(self) -> float:
        if self.total_executions == 0:
            return 0.0
        return self.successful_executions / self.total_executions
