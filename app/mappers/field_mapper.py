"""
app/mappers/field_mapper.py

Maps external API records onto canonical items using configured field mappings.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime
from typing import Any, Sequence

from app.domain.imports import (
    CanonicalItem,
    FieldMapping,
    FieldTransformation,
    ImportDefinition,
    PropertyValue,
    RecordMappingOutcome,
)
from app.mappers.json_path import MISSING, extract_value

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"true", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "no"})


def normalize_json_value(value: Any) -> PropertyValue:
    """
    Convert an extracted JSON node into the canonical value union.

    Nested objects are flattened to compact JSON text; arrays are normalized
    element by element.
    """

    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    if isinstance(value, list):
        return [normalize_json_value(entry) for entry in value]
    return value


def stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    try:
        return int(stringify(value).strip())
    except ValueError:
        return None


def to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(stringify(value).strip().replace(",", ""))
    except ValueError:
        return None


def to_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    folded = stringify(value).strip().lower()
    if folded in _TRUE_STRINGS:
        return True
    if folded in _FALSE_STRINGS:
        return False
    return None


def _parse_datetime(raw: str) -> datetime | None:
    text = raw.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.combine(date.fromisoformat(text), datetime.min.time())
    except ValueError:
        pass
    for pattern in ("%m/%d/%Y %H:%M:%S", "%m/%d/%Y", "%d %B %Y", "%B %d, %Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, pattern)
        except ValueError:
            continue
    return None


def to_date(value: Any) -> str:
    if isinstance(value, str):
        parsed = _parse_datetime(value)
        if parsed is not None:
            return parsed.strftime("%Y-%m-%d")
    return stringify(value)


def to_date_time(value: Any) -> str:
    if isinstance(value, str):
        parsed = _parse_datetime(value)
        if parsed is not None:
            return parsed.isoformat()
    return stringify(value)


def parse_default_value(default_value: str | None, transformation: FieldTransformation) -> PropertyValue:
    """
    Interpret a mapping's default literal according to its transformation.
    """

    if default_value is None or default_value == "":
        return None

    if transformation is FieldTransformation.TO_INT:
        try:
            return int(default_value.strip())
        except ValueError:
            return default_value
    if transformation is FieldTransformation.TO_FLOAT:
        try:
            return float(default_value.strip())
        except ValueError:
            return default_value
    if transformation is FieldTransformation.TO_BOOLEAN:
        folded = default_value.strip().lower()
        if folded == "true":
            return True
        if folded == "false":
            return False
        return default_value
    return default_value


def apply_transformation(
    value: Any,
    transformation: FieldTransformation,
    default_value: str | None = None,
) -> PropertyValue:
    """
    Coerce an extracted value. ``MISSING`` or ``None`` falls back to the default.
    """

    if value is MISSING or value is None:
        return parse_default_value(default_value, transformation)

    if transformation is FieldTransformation.NONE:
        return value
    if transformation is FieldTransformation.TO_STRING:
        return stringify(value)
    if transformation is FieldTransformation.TO_INT:
        return to_int(value)
    if transformation is FieldTransformation.TO_FLOAT:
        return to_float(value)
    if transformation is FieldTransformation.TO_BOOLEAN:
        return to_boolean(value)
    if transformation is FieldTransformation.TO_DATE:
        return to_date(value)
    if transformation is FieldTransformation.TO_DATE_TIME:
        return to_date_time(value)
    raise ValueError(f"Unhandled field transformation: {transformation!r}")


class FieldMapper:
    """
    Turns parsed external records into canonical items plus non-fatal warnings.
    """

    def map_record(
        self,
        element: Any,
        definition: ImportDefinition,
        index: int,
    ) -> RecordMappingOutcome:
        """
        Map one record. ``index`` is the 1-based ordinal used in warnings.
        """

        try:
            raw_id = extract_value(element, definition.id_field_mapping)
            if raw_id is MISSING or raw_id is None:
                return RecordMappingOutcome(
                    warning=(
                        f"Item {index}: Skipped - ID field "
                        f"'{definition.id_field_mapping}' not found or null"
                    )
                )

            item_id = stringify(normalize_json_value(raw_id))
            if not item_id.strip():
                return RecordMappingOutcome(
                    warning=(
                        f"Item {index}: Skipped - ID field "
                        f"'{definition.id_field_mapping}' is empty"
                    )
                )

            properties: dict[str, PropertyValue] = {}
            for mapping in definition.field_mappings:
                if not mapping.is_usable:
                    continue
                properties[mapping.target_property] = self._map_field(element, mapping)

            return RecordMappingOutcome(
                item=CanonicalItem(
                    id=item_id,
                    content_type=definition.target_content_type,
                    language_routing=definition.language_routing,
                    properties=properties,
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.debug("Record mapping failed index=%s error=%s", index, exc)
            return RecordMappingOutcome(warning=f"Item {index}: Failed to map - {exc}")

    def map_records(
        self,
        records: Sequence[Any],
        definition: ImportDefinition,
    ) -> tuple[list[CanonicalItem], list[str]]:
        """
        Map a batch; one bad record never aborts the others.
        """

        items: list[CanonicalItem] = []
        warnings: list[str] = []
        for index, element in enumerate(records, start=1):
            outcome = self.map_record(element, definition, index)
            if outcome.item is not None:
                items.append(outcome.item)
            if outcome.warning is not None:
                warnings.append(outcome.warning)
        return items, warnings

    @staticmethod
    def _map_field(element: Any, mapping: FieldMapping) -> PropertyValue:
        raw = extract_value(element, mapping.source_path)
        if raw is not MISSING:
            raw = normalize_json_value(raw)
        return apply_transformation(raw, mapping.transformation, mapping.default_value)
