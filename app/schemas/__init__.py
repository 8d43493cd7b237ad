"""
app/schemas package marker.
"""

from app.schemas.imports import (
    ConnectionTestResponse,
    DeleteItemsRequest,
    DeleteItemsResponse,
    ExecutionHistoryListResponse,
    ExecutionHistoryResponse,
    ImportConfigurationListResponse,
    ImportConfigurationSummaryResponse,
    ImportRunResponse,
    ImportStatisticsResponse,
    PreviewResponse,
    ScheduleResponse,
)

__all__ = [
    "ConnectionTestResponse",
    "DeleteItemsRequest",
    "DeleteItemsResponse",
    "ExecutionHistoryListResponse",
    "ExecutionHistoryResponse",
    "ImportConfigurationListResponse",
    "ImportConfigurationSummaryResponse",
    "ImportRunResponse",
    "ImportStatisticsResponse",
    "PreviewResponse",
    "ScheduleResponse",
]
