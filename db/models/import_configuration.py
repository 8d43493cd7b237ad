"""
db/models/import_configuration.py

Saved configuration for pulling records from an external API on a schedule.
"""

from __future__ import annotations

import uuid
from datetime import datetime, time
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class ScheduleFrequency:
    NONE = "none"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    ALL = frozenset({NONE, HOURLY, DAILY, WEEKLY, MONTHLY})


class AuthenticationType:
    NONE = "none"
    API_KEY = "api_key"
    BASIC = "basic"
    BEARER = "bearer"

    ALL = frozenset({NONE, API_KEY, BASIC, BEARER})


class ImportConfiguration(Base, TimestampMixin):
    __tablename__ = "import_configurations"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    target_source_id: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
        comment="Downstream custom data source id (1-4 lowercase alphanumerics)",
    )
    target_content_type: Mapped[str] = mapped_column(String(255), nullable=False)

    api_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    http_method: Mapped[str] = mapped_column(String(10), nullable=False, default="GET")
    auth_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AuthenticationType.NONE,
        comment="none, api_key, basic, bearer",
    )
    auth_key_or_username: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="API key header name, or basic auth username",
    )
    auth_value_or_password: Mapped[str | None] = mapped_column(
        String(2048),
        nullable=True,
        comment="API key value, basic auth password, or bearer token",
    )
    custom_headers: Mapped[dict[str, str] | None] = mapped_column(JSONType, nullable=True)
    json_path: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Location of the data array in the response; empty means root",
    )
    id_field_mapping: Mapped[str] = mapped_column(String(255), nullable=False)
    field_mappings: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="List of {source_path, target_property, transformation, default_value}",
    )
    language_routing: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    schedule_frequency: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ScheduleFrequency.NONE,
        comment="none, hourly, daily, weekly, monthly",
    )
    schedule_interval_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    schedule_time_of_day: Mapped[time | None] = mapped_column(Time, nullable=True)
    schedule_day_of_week: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="0=Monday .. 6=Sunday",
    )
    schedule_day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_scheduled_run_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    consecutive_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_import_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_import_success: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    last_import_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_import_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notification_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_import_configurations_target_source_id", "target_source_id"),
        Index("ix_import_configurations_is_active", "is_active"),
        Index("ix_import_configurations_next_scheduled_run_at", "next_scheduled_run_at"),
        Index("ix_import_configurations_next_retry_at", "next_retry_at"),
    )

    def __repr__(self) -> str:
        return f"ImportConfiguration(id={self.id!s}, name={self.name!r})"
