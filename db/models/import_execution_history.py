"""
db/models/import_execution_history.py

Append-only record of one import run.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType


class ImportExecutionHistory(Base):
    __tablename__ = "import_execution_history"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    import_configuration_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("import_configurations.id", ondelete="CASCADE"),
        nullable=False,
    )
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    items_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_imported: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_skipped: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    warnings: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    was_retry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    retry_attempt: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0 = first run, 1 = first retry, ...",
    )
    was_scheduled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_import_execution_history_configuration_id", "import_configuration_id"),
        Index("ix_import_execution_history_executed_at", "executed_at"),
        Index(
            "ix_import_execution_history_configuration_executed_at",
            "import_configuration_id",
            "executed_at",
        ),
    )

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self.duration_ms or 0)
