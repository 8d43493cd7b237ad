"""
app/codecs/ndjson.py

Bulk sync wire format for the downstream data API.

Every indexed item occupies two lines: an action line
``{"index": {"_id": ..., "language_routing": ...}}`` followed by a data line
holding the item's properties. A deletion is a single action line
``{"delete": {"_id": ...}}`` with no data line.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from app.domain.imports import CanonicalItem, PropertyValue

INDEX_ACTION = "index"
DELETE_ACTION = "delete"
ID_KEY = "_id"
TYPE_KEY = "_type"
LANGUAGE_ROUTING_KEY = "language_routing"

# Only CR and LF end a line. Data lines may hold U+2028 or U+0085 unescaped.
_LINE_BREAK = re.compile(r"[\r\n]+")

CONTENT_TYPE_PROPERTY = "ContentType"
STATUS_PROPERTY = "Status"
READ_ACCESS_PROPERTY = "RolesWithReadAccess"
DEFAULT_STATUS = "Published"
DEFAULT_READ_ACCESS = "Everyone"


def _dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def _non_empty_lines(text: str | None) -> list[str]:
    if not text or not text.strip():
        return []
    return [line.strip() for line in _LINE_BREAK.split(text) if line.strip()]


def build_index_action_line(item_id: str, language_routing: str | None = None) -> str:
    index_data: dict[str, str] = {ID_KEY: item_id}
    if language_routing and language_routing.strip():
        index_data[LANGUAGE_ROUTING_KEY] = language_routing
    return _dumps({INDEX_ACTION: index_data})


def build_delete_action_line(item_id: str) -> str:
    return _dumps({DELETE_ACTION: {ID_KEY: item_id}})


def build_data_line(item: CanonicalItem) -> str:
    data: dict[str, Any] = dict(item.properties)
    if item.content_type and CONTENT_TYPE_PROPERTY not in data:
        data[CONTENT_TYPE_PROPERTY] = [item.content_type]
    data.setdefault(STATUS_PROPERTY, DEFAULT_STATUS)
    data.setdefault(READ_ACCESS_PROPERTY, DEFAULT_READ_ACCESS)
    return _dumps(data)


def build_ndjson(items: Iterable[CanonicalItem]) -> str:
    """
    Encode items as (action, data) line pairs.
    """

    lines: list[str] = []
    for item in items:
        if not item.id or not item.id.strip():
            raise ValueError("Cannot encode an item without an identifier.")
        lines.append(build_index_action_line(item.id, item.language_routing))
        lines.append(build_data_line(item))
    return "".join(f"{line}\n" for line in lines)


def build_delete_payload(item_ids: Iterable[str]) -> str:
    return "".join(f"{build_delete_action_line(item_id)}\n" for item_id in item_ids)


def _normalize(value: Any) -> PropertyValue:
    if isinstance(value, list):
        return [_normalize(entry) for entry in value]
    if isinstance(value, dict):
        return {str(key): _normalize(entry) for key, entry in value.items()}
    return value


def _parse_pair(action_line: str, data_line: str) -> CanonicalItem | None:
    try:
        action = json.loads(action_line)
        data = json.loads(data_line)
    except ValueError:
        return None
    if not isinstance(action, dict) or not isinstance(data, dict):
        return None

    index_data = action.get(INDEX_ACTION)
    if not isinstance(index_data, dict):
        return None
    raw_id = index_data.get(ID_KEY)
    if raw_id is None:
        return None
    item_id = raw_id if isinstance(raw_id, str) else _dumps(raw_id)
    if not item_id:
        return None

    language_routing = index_data.get(LANGUAGE_ROUTING_KEY)
    if language_routing is not None and not isinstance(language_routing, str):
        language_routing = str(language_routing)

    content_type = ""
    if TYPE_KEY in data:
        raw_type = data.pop(TYPE_KEY)
        if raw_type is not None:
            content_type = raw_type if isinstance(raw_type, str) else _dumps(raw_type)

    return CanonicalItem(
        id=item_id,
        content_type=content_type,
        language_routing=language_routing,
        properties={str(key): _normalize(value) for key, value in data.items()},
    )


def parse_ndjson(text: str | None) -> list[CanonicalItem]:
    """
    Decode (action, data) pairs, dropping malformed pairs.
    """

    lines = _non_empty_lines(text)
    items: list[CanonicalItem] = []
    for position in range(0, len(lines) - 1, 2):
        item = _parse_pair(lines[position], lines[position + 1])
        if item is not None:
            items.append(item)
    return items


def is_valid_ndjson(text: str | None) -> bool:
    """
    True for a positive, even number of JSON lines whose even lines are actions.
    """

    lines = _non_empty_lines(text)
    if not lines or len(lines) % 2 != 0:
        return False

    for position, line in enumerate(lines):
        try:
            parsed = json.loads(line)
        except ValueError:
            return False
        if position % 2 == 0:
            if not isinstance(parsed, dict):
                return False
            if INDEX_ACTION not in parsed and DELETE_ACTION not in parsed:
                return False
    return True


def count_items(text: str | None) -> int:
    return len(_non_empty_lines(text)) // 2
