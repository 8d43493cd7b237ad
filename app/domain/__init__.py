"""
app/domain package marker.
"""

from app.domain.imports import (
    CanonicalItem,
    ConnectionTestResult,
    FetchFailureKind,
    FetchResult,
    FieldMapping,
    FieldTransformation,
    ImportDefinition,
    ImportResult,
    ImportStatistics,
    RecordMappingOutcome,
    SyncResponse,
)

__all__ = [
    "CanonicalItem",
    "ConnectionTestResult",
    "FetchFailureKind",
    "FetchResult",
    "FieldMapping",
    "FieldTransformation",
    "ImportDefinition",
    "ImportResult",
    "ImportStatistics",
    "RecordMappingOutcome",
    "SyncResponse",
]
