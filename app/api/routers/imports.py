"""
app/api/routers/imports.py

Manual trigger and inspection endpoints for import configurations.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, sessionmaker

from app.domain.imports import ImportDefinition
from app.errors import ConcurrentUpdateError, GraphSyncError, ImportConfigurationError
from app.scheduler.jobs import get_lock_registry, run_configuration_import
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
    PreviewItemResponse,
    PreviewResponse,
    ScheduleResponse,
)
from app.services.import_executor import ImportExecutor, get_import_executor
from app.services.scheduled_import_service import ScheduledImportService
from db.models.import_configuration import ImportConfiguration
from db.repositories import ImportConfigurationRepository, ImportExecutionHistoryRepository
from db.session import get_db, get_session_factory

router = APIRouter(prefix="/imports", tags=["imports"])


def _get_configuration_or_404(db: Session, config_id: UUID) -> ImportConfiguration:
    config = ImportConfigurationRepository(db).get(config_id)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import configuration {config_id} not found.",
        )
    return config


@router.get("", response_model=ImportConfigurationListResponse)
def list_configurations(db: Session = Depends(get_db)) -> ImportConfigurationListResponse:
    """
    Active configurations with their schedule state and most recent run.
    """

    history = ImportExecutionHistoryRepository(db)
    registry = get_lock_registry()
    summaries: list[ImportConfigurationSummaryResponse] = []
    for config in ImportConfigurationRepository(db).list_active():
        last = history.get_last_execution(config.id)
        summaries.append(
            ImportConfigurationSummaryResponse(
                configuration_id=config.id,
                name=config.name,
                schedule_frequency=config.schedule_frequency,
                next_scheduled_run_at=config.next_scheduled_run_at,
                next_retry_at=config.next_retry_at,
                consecutive_failures=config.consecutive_failures or 0,
                running=registry.is_running(config.id),
                last_execution=ExecutionHistoryResponse.model_validate(last) if last is not None else None,
            )
        )
    return ImportConfigurationListResponse(configurations=summaries)


@router.post("/{config_id}/run", response_model=ImportRunResponse)
def run_import(
    config_id: UUID,
    db: Session = Depends(get_db),
    executor: ImportExecutor = Depends(get_import_executor),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> ImportRunResponse:
    """
    Run one import now. The run is recorded as manual (not scheduled).
    """

    config = _get_configuration_or_404(db, config_id)
    try:
        ImportDefinition.from_configuration(config).validate()
    except ImportConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    outcome = run_configuration_import(
        config_id,
        session_factory=session_factory,
        executor=executor,
        was_scheduled=False,
    )
    if outcome.skipped and outcome.reason == "already_running":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An import for this configuration is already running.",
        )
    if outcome.result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import configuration {config_id} not found.",
        )

    result = outcome.result
    return ImportRunResponse(
        configuration_id=config_id,
        success=result.success,
        total_items_received=result.total_items_received,
        items_imported=result.items_imported,
        items_skipped=result.items_skipped,
        items_failed=result.items_failed,
        duration_ms=int(result.duration.total_seconds() * 1000),
        errors=result.errors,
        warnings=result.warnings,
        debug_info=result.debug_info,
    )


@router.post("/{config_id}/test-connection", response_model=ConnectionTestResponse)
def test_connection(
    config_id: UUID,
    db: Session = Depends(get_db),
    executor: ImportExecutor = Depends(get_import_executor),
) -> ConnectionTestResponse:
    config = _get_configuration_or_404(db, config_id)
    outcome = executor.test_connection(config)
    return ConnectionTestResponse(
        success=outcome.success,
        message=outcome.message,
        sample_json=outcome.sample_json,
    )


@router.get("/{config_id}/preview", response_model=PreviewResponse)
def preview_import(
    config_id: UUID,
    properties: list[str] | None = Query(default=None, description="Properties defined on the target content type"),
    db: Session = Depends(get_db),
    executor: ImportExecutor = Depends(get_import_executor),
) -> PreviewResponse:
    config = _get_configuration_or_404(db, config_id)
    try:
        items, warnings = executor.preview_import(config, target_schema=properties)
    except ImportConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return PreviewResponse(
        items=[
            PreviewItemResponse(
                id=item.id,
                content_type=item.content_type,
                language_routing=item.language_routing,
                properties=item.properties,
            )
            for item in items
        ],
        warnings=warnings,
    )


@router.post("/{config_id}/items/delete", response_model=DeleteItemsResponse)
def delete_items(
    config_id: UUID,
    payload: DeleteItemsRequest,
    db: Session = Depends(get_db),
    executor: ImportExecutor = Depends(get_import_executor),
) -> DeleteItemsResponse:
    config = _get_configuration_or_404(db, config_id)
    try:
        response = executor.delete_items(config, payload.ids)
    except (ImportConfigurationError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except GraphSyncError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return DeleteItemsResponse(
        configuration_id=config_id,
        items_deleted=len([item_id for item_id in payload.ids if item_id]),
        status_code=response.status_code,
    )


@router.post("/{config_id}/schedule", response_model=ScheduleResponse)
def initialize_schedule(
    config_id: UUID,
    db: Session = Depends(get_db),
) -> ScheduleResponse:
    """
    Seed the next run from the configured recurrence and reset retry state.
    """

    config = _get_configuration_or_404(db, config_id)
    service = ScheduledImportService(ImportConfigurationRepository(db))
    try:
        config = service.initialize_schedule(config)
        db.commit()
    except ConcurrentUpdateError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    return ScheduleResponse(
        configuration_id=config.id,
        schedule_frequency=config.schedule_frequency,
        next_scheduled_run_at=config.next_scheduled_run_at,
        consecutive_failures=config.consecutive_failures or 0,
        next_retry_at=config.next_retry_at,
    )


@router.get("/{config_id}/history", response_model=ExecutionHistoryListResponse)
def list_history(
    config_id: UUID,
    limit: int = Query(default=50, ge=1, le=500),
    failures_only: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> ExecutionHistoryListResponse:
    _get_configuration_or_404(db, config_id)
    repository = ImportExecutionHistoryRepository(db)
    if failures_only:
        rows = repository.list_recent_failures(config_id, limit=limit)
    else:
        rows = repository.list_for_configuration(config_id, limit=limit)
    return ExecutionHistoryListResponse(
        executions=[ExecutionHistoryResponse.model_validate(row) for row in rows],
    )


@router.get("/{config_id}/statistics", response_model=ImportStatisticsResponse)
def get_statistics(
    config_id: UUID,
    from_date: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
) -> ImportStatisticsResponse:
    _get_configuration_or_404(db, config_id)
    stats = ImportExecutionHistoryRepository(db).get_statistics(config_id, from_date=from_date)
    return ImportStatisticsResponse(
        total_executions=stats.total_executions,
        successful_executions=stats.successful_executions,
        failed_executions=stats.failed_executions,
        success_rate=stats.success_rate,
        average_duration_ms=int(stats.average_duration.total_seconds() * 1000),
        total_items_imported=stats.total_items_imported,
        last_successful_execution=stats.last_successful_execution,
        last_failed_execution=stats.last_failed_execution,
    )
