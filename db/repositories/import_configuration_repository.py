"""
db/repositories/import_configuration_repository.py

Persistence for import configurations and their execution history rows.

The caller controls commit/rollback; this repository only flushes.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.errors import ConcurrentUpdateError
from db.models.import_configuration import ImportConfiguration, ScheduleFrequency
from db.models.import_execution_history import ImportExecutionHistory


class ImportConfigurationRepository:
    """
    SQLAlchemy-backed configuration store used by the scheduler.

    Updates are guarded by the ``version`` column: a flush that finds the row
    changed underneath it raises ``ConcurrentUpdateError``.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_due(self, now: datetime) -> list[ImportConfiguration]:
        """
        Active scheduled configurations whose run or retry time has arrived,
        nearest retry-or-run time first.
        """

        stmt: Select[tuple[ImportConfiguration]] = (
            select(ImportConfiguration)
            .where(ImportConfiguration.is_active.is_(True))
            .where(ImportConfiguration.schedule_frequency != ScheduleFrequency.NONE)
            .where(
                or_(
                    ImportConfiguration.next_scheduled_run_at <= now,
                    ImportConfiguration.next_retry_at <= now,
                )
            )
            .order_by(
                func.coalesce(
                    ImportConfiguration.next_retry_at,
                    ImportConfiguration.next_scheduled_run_at,
                ).asc()
            )
        )
        return list(self._session.scalars(stmt).all())

    def list_active(self) -> list[ImportConfiguration]:
        stmt = (
            select(ImportConfiguration)
            .where(ImportConfiguration.is_active.is_(True))
            .order_by(ImportConfiguration.name.asc())
        )
        return list(self._session.scalars(stmt).all())

    def get(self, config_id: uuid.UUID) -> ImportConfiguration | None:
        return self._session.get(ImportConfiguration, config_id)

    def add(self, config: ImportConfiguration) -> ImportConfiguration:
        self._session.add(config)
        self._session.flush()
        self._session.refresh(config)
        return config

    def save(self, config: ImportConfiguration) -> ImportConfiguration:
        # A failed flush rolls back and expires the instance, so read the id first.
        config_id = config.id
        self._session.add(config)
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise ConcurrentUpdateError(
                f"Import configuration {config_id} was modified by another writer."
            ) from exc
        return config

    def append_history(self, record: ImportExecutionHistory) -> ImportExecutionHistory:
        self._session.add(record)
        self._session.flush()
        return record
