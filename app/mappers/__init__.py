"""
app/mappers package marker.
"""

from app.mappers.field_mapper import FieldMapper, apply_transformation
from app.mappers.json_path import MISSING, extract_value, resolve_json_path

__all__ = [
    "MISSING",
    "FieldMapper",
    "apply_transformation",
    "extract_value",
    "resolve_json_path",
]
