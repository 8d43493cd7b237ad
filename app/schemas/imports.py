"""
app/schemas/imports.py

Request/response schemas for import configuration endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ImportRunResponse(BaseModel):
    """
    API response model for one finished import run.
    """

    configuration_id: UUID
    success: bool
    skipped: bool = False
    total_items_received: int = Field(0, ge=0)
    items_imported: int = Field(0, ge=0)
    items_skipped: int = Field(0, ge=0)
    items_failed: int = Field(0, ge=0)
    duration_ms: int = Field(0, ge=0)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    debug_info: str | None = None


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    sample_json: str | None = None


class PreviewItemResponse(BaseModel):
    id: str
    content_type: str
    language_routing: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


class PreviewResponse(BaseModel):
    items: list[PreviewItemResponse] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ScheduleResponse(BaseModel):
    configuration_id: UUID
    schedule_frequency: str
    next_scheduled_run_at: datetime | None = None
    consecutive_failures: int = 0
    next_retry_at: datetime | None = None


class ExecutionHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    executed_at: datetime
    success: bool
    items_received: int
    items_imported: int
    items_skipped: int
    items_failed: int
    duration_ms: int
    error_message: str | None = None
    warnings: list[str] | None = None
    was_retry: bool
    retry_attempt: int
    was_scheduled: bool


class ExecutionHistoryListResponse(BaseModel):
    executions: list[ExecutionHistoryResponse] = Field(default_factory=list)


class ImportStatisticsResponse(BaseModel):
    total_executions: int = Field(0, ge=0)
    successful_executions: int = Field(0, ge=0)
    failed_executions: int = Field(0, ge=0)
    success_rate: float = Field(0.0, ge=0.0, le=1.0)
    average_duration_ms: int = Field(0, ge=0)
    total_items_imported: int = Field(0, ge=0)
    last_successful_execution: datetime | None = None
    last_failed_execution: datetime | None = None


class ImportConfigurationSummaryResponse(BaseModel):
    configuration_id: UUID
    name: str
    schedule_frequency: str
    next_scheduled_run_at: datetime | None = None
    next_retry_at: datetime | None = None
    consecutive_failures: int = 0
    running: bool = False
    last_execution: ExecutionHistoryResponse | None = None


class ImportConfigurationListResponse(BaseModel):
    configurations: list[ImportConfigurationSummaryResponse] = Field(default_factory=list)


class DeleteItemsRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)


class DeleteItemsResponse(BaseModel):
    configuration_id: UUID
    items_deleted: int = Field(0, ge=0)
    status_code: int
