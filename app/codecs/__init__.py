"""
app/codecs package marker.
"""

from app.codecs.ndjson import (
    build_delete_action_line,
    build_delete_payload,
    build_index_action_line,
    build_ndjson,
    count_items,
    is_valid_ndjson,
    parse_ndjson,
)

__all__ = [
    "build_delete_action_line",
    "build_delete_payload",
    "build_index_action_line",
    "build_ndjson",
    "count_items",
    "is_valid_ndjson",
    "parse_ndjson",
]
