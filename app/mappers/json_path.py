"""
app/mappers/json_path.py

Navigation helpers over parsed JSON documents.

Two addressing schemes are supported:

``resolve_json_path``
    Locates the data array inside an API response. Segments are separated
    by ``.`` or ``/`` and may carry an index suffix (``results[0]``).
    Property names match exactly.

``extract_value``
    Reads one mapped field from an external record. Segments are separated
    by ``.`` only; an exact property match is tried first, then a
    case-insensitive one.

Both return ``MISSING`` when the address does not resolve, so a JSON
``null`` found at the address stays distinguishable from "no value".
"""

from __future__ import annotations

import re
from typing import Any, Final


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()

_INDEXED_SEGMENT = re.compile(r"^(\w+)\[(\d+)\]$")
_PATH_SEPARATORS = re.compile(r"[./]")


def split_json_path(path: str | None) -> list[str]:
    if not path or not path.strip():
        return []
    return [segment for segment in _PATH_SEPARATORS.split(path.strip()) if segment]


def resolve_json_path(document: Any, path: str | None) -> Any:
    """
    Return the node at ``path`` or ``MISSING``. An empty path is the root.
    """

    current = document
    for segment in split_json_path(path):
        match = _INDEXED_SEGMENT.match(segment)
        if match:
            name, raw_index = match.group(1), int(match.group(2))
            if not isinstance(current, dict) or name not in current:
                return MISSING
            candidate = current[name]
            if not isinstance(candidate, list) or raw_index >= len(candidate):
                return MISSING
            current = candidate[raw_index]
            continue

        if not isinstance(current, dict) or segment not in current:
            return MISSING
        current = current[segment]
    return current


def _lookup_property(node: dict[str, Any], name: str) -> Any:
    if name in node:
        return node[name]
    folded = name.casefold()
    for key, value in node.items():
        if key.casefold() == folded:
            return value
    return MISSING


def extract_value(element: Any, path: str | None) -> Any:
    """
    Return the value at a dot-separated ``path`` inside ``element`` or ``MISSING``.
    """

    if not path or not path.strip():
        return MISSING

    current = element
    for segment in path.split("."):
        if not isinstance(current, dict):
            return MISSING
        current = _lookup_property(current, segment)
        if current is MISSING:
            return MISSING
    return current
