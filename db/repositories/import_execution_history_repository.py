"""
db/repositories/import_execution_history_repository.py

Read side of the append-only import execution history.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import DateTime, case, func, select, type_coerce
from sqlalchemy.orm import Session

from app.domain.imports import ImportStatistics
from db.base import ensure_utc
from db.models.import_execution_history import ImportExecutionHistory


class ImportExecutionHistoryRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_for_configuration(
        self,
        config_id: uuid.UUID,
        limit: int = 50,
    ) -> list[ImportExecutionHistory]:
        stmt = (
            select(ImportExecutionHistory)
            .where(ImportExecutionHistory.import_configuration_id == config_id)
            .order_by(ImportExecutionHistory.executed_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def list_recent_failures(
        self,
        config_id: uuid.UUID,
        limit: int = 10,
    ) -> list[ImportExecutionHistory]:
        stmt = (
            select(ImportExecutionHistory)
            .where(ImportExecutionHistory.import_configuration_id == config_id)
            .where(ImportExecutionHistory.success.is_(False))
            .order_by(ImportExecutionHistory.executed_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def get_last_execution(self, config_id: uuid.UUID) -> ImportExecutionHistory | None:
        stmt = (
            select(ImportExecutionHistory)
            .where(ImportExecutionHistory.import_configuration_id == config_id)
            .order_by(ImportExecutionHistory.executed_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def get_statistics(
        self,
        config_id: uuid.UUID,
        from_date: datetime | None = None,
    ) -> ImportStatistics:
        """
        Aggregate runs for one configuration, optionally from ``from_date`` on.
        """

        history = ImportExecutionHistory
        stmt = select(
            func.count(history.id),
            func.coalesce(func.sum(case((history.success.is_(True), 1), else_=0)), 0),
            func.avg(history.duration_ms),
            func.coalesce(func.sum(history.items_imported), 0),
            type_coerce(func.max(case((history.success.is_(True), history.executed_at))), DateTime(timezone=True)),
            type_coerce(func.max(case((history.success.is_(False), history.executed_at))), DateTime(timezone=True)),
        ).where(history.import_configuration_id == config_id)
        if from_date is not None:
            stmt = stmt.where(history.executed_at >= from_date)

        total, successful, average_ms, items_imported, last_success, last_failure = self._session.execute(
            stmt
        ).one()
        total = int(total or 0)
        if total == 0:
            return ImportStatistics()

        return ImportStatistics(
            total_executions=total,
            successful_executions=int(successful),
            failed_executions=total - int(successful),
            average_duration=timedelta(milliseconds=float(average_ms or 0)),
            total_items_imported=int(items_imported),
            last_successful_execution=ensure_utc(last_success),
            last_failed_execution=ensure_utc(last_failure),
        )
