"""
app/services/scheduled_import_service.py

Recurrence and retry state machine for scheduled imports.

A configuration moves between four states, derived from its columns:

* idle: frequency is ``none``
* scheduled: ``next_scheduled_run_at`` set, ``next_retry_at`` empty
* retry pending: ``next_retry_at`` set
* exhausted: ``consecutive_failures >= max_retries``; retries stop and the
  configuration waits for its next regular slot
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Any, Callable, Protocol, Sequence

from app.domain.imports import ImportResult
from app.errors import ConfigurationNotFoundError
from db.base import ensure_utc, utcnow
from db.models.import_configuration import ImportConfiguration, ScheduleFrequency
from db.models.import_execution_history import ImportExecutionHistory

logger = logging.getLogger(__name__)

RETRY_DELAYS_MINUTES: tuple[int, ...] = (1, 5, 15, 30)
DEFAULT_MAX_RETRIES = 3
MONTHLY_DAY_MIN = 1
MONTHLY_DAY_MAX = 28

# Next run for configurations without a schedule.
FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class ImportConfigurationStore(Protocol):
    """
    Persistence operations the scheduler needs.
    """

    def list_due(self, now: datetime) -> Sequence[ImportConfiguration]: ...

    def get(self, config_id: uuid.UUID) -> ImportConfiguration | None: ...

    def save(self, config: ImportConfiguration) -> ImportConfiguration: ...

    def append_history(self, record: ImportExecutionHistory) -> ImportExecutionHistory: ...


def _next_hourly_run(now: datetime, interval_hours: int | None) -> datetime:
    return now + timedelta(hours=max(1, interval_hours or 1))


def _next_daily_run(now: datetime, time_of_day: time) -> datetime:
    today_run = datetime.combine(now.date(), time_of_day, tzinfo=now.tzinfo)
    if today_run <= now:
        return today_run + timedelta(days=1)
    return today_run


def _next_weekly_run(now: datetime, day_of_week: int, time_of_day: time) -> datetime:
    days_until_target = (day_of_week - now.weekday()) % 7
    if days_until_target == 0 and now.time() >= time_of_day:
        days_until_target = 7
    target_date = now.date() + timedelta(days=days_until_target)
    return datetime.combine(target_date, time_of_day, tzinfo=now.tzinfo)


def _next_monthly_run(now: datetime, day_of_month: int, time_of_day: time) -> datetime:
    day = min(max(day_of_month, MONTHLY_DAY_MIN), MONTHLY_DAY_MAX)
    this_month_run = datetime(
        now.year,
        now.month,
        day,
        time_of_day.hour,
        time_of_day.minute,
        time_of_day.second,
        tzinfo=now.tzinfo,
    )
    if this_month_run > now:
        return this_month_run

    year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
    return this_month_run.replace(year=year, month=month)


class ScheduledImportService:
    """
    Computes run times, applies post-run transitions and records history.

    Every operation accepts an optional ``now`` so callers and tests can pin
    the clock; otherwise the injected ``clock`` is used.
    """

    def __init__(
        self,
        store: ImportConfigurationStore,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._clock = clock

    def _now(self, now: datetime | None) -> datetime:
        return ensure_utc(now) if now is not None else ensure_utc(self._clock())

    def get_due_configurations(self, now: datetime | None = None) -> list[ImportConfiguration]:
        current = self._now(now)
        due = list(self._store.list_due(current))
        logger.info("Found due import configurations count=%s now=%s", len(due), current.isoformat())
        return due

    def calculate_next_run_time(
        self,
        config: ImportConfiguration | Any,
        now: datetime | None = None,
    ) -> datetime:
        current = self._now(now)
        time_of_day = (config.schedule_time_of_day or time(0, 0)).replace(tzinfo=None)
        frequency = config.schedule_frequency or ScheduleFrequency.NONE

        if frequency == ScheduleFrequency.HOURLY:
            return _next_hourly_run(current, config.schedule_interval_value)
        if frequency == ScheduleFrequency.DAILY:
            return _next_daily_run(current, time_of_day)
        if frequency == ScheduleFrequency.WEEKLY:
            day_of_week = config.schedule_day_of_week
            return _next_weekly_run(current, 0 if day_of_week is None else day_of_week, time_of_day)
        if frequency == ScheduleFrequency.MONTHLY:
            return _next_monthly_run(current, config.schedule_day_of_month or 1, time_of_day)
        return FAR_FUTURE

    @staticmethod
    def calculate_retry_delay(consecutive_failures: int) -> timedelta:
        index = min(max(0, consecutive_failures), len(RETRY_DELAYS_MINUTES) - 1)
        return timedelta(minutes=RETRY_DELAYS_MINUTES[index])

    def record_execution(
        self,
        config_id: uuid.UUID,
        result: ImportResult,
        was_retry: bool,
        retry_attempt: int,
        was_scheduled: bool = True,
        now: datetime | None = None,
    ) -> ImportExecutionHistory:
        """
        Append exactly one history row for a finished run.
        """

        record = ImportExecutionHistory(
            id=uuid.uuid4(),
            import_configuration_id=config_id,
            executed_at=self._now(now),
            success=result.success,
            items_received=result.total_items_received,
            items_imported=result.items_imported,
            items_skipped=result.items_skipped,
            items_failed=result.items_failed,
            duration_ms=int(result.duration.total_seconds() * 1000),
            error_message=None if result.success else "; ".join(result.errors),
            warnings=list(result.warnings) if result.warnings else None,
            was_retry=was_retry,
            retry_attempt=retry_attempt,
            was_scheduled=was_scheduled,
        )
        self._store.append_history(record)
        logger.info(
            "Recorded import execution config_id=%s success=%s items=%s was_retry=%s",
            config_id,
            result.success,
            result.items_imported,
            was_retry,
        )
        return record

    def update_configuration_after_execution(
        self,
        config: ImportConfiguration,
        success: bool,
        error_message: str | None = None,
        *,
        items_imported: int | None = None,
        now: datetime | None = None,
    ) -> ImportConfiguration:
        """
        Apply the post-run transition and persist it.
        """

        current = self._now(now)
        tracked = self._store.get(config.id)
        if tracked is None:
            raise ConfigurationNotFoundError(f"Import configuration {config.id} not found.")

        tracked.last_import_at = current
        tracked.last_import_success = success
        if items_imported is not None:
            tracked.last_import_count = items_imported

        if success:
            tracked.consecutive_failures = 0
            tracked.next_retry_at = None
            tracked.last_import_error = None
            tracked.next_scheduled_run_at = self.calculate_next_run_time(tracked, current)
            logger.info(
                "Import configuration succeeded config_id=%s next_run=%s",
                tracked.id,
                tracked.next_scheduled_run_at.isoformat(),
            )
        else:
            failures = (tracked.consecutive_failures or 0) + 1
            max_retries = DEFAULT_MAX_RETRIES if tracked.max_retries is None else tracked.max_retries
            tracked.consecutive_failures = failures
            tracked.last_import_error = error_message

            if failures < max_retries:
                delay = self.calculate_retry_delay(failures)
                tracked.next_retry_at = current + delay
                logger.warning(
                    "Import configuration failed config_id=%s attempt=%s/%s retry_in=%s",
                    tracked.id,
                    failures,
                    max_retries,
                    delay,
                )
            else:
                tracked.next_retry_at = None
                tracked.next_scheduled_run_at = self.calculate_next_run_time(tracked, current)
                logger.error(
                    "Import configuration exhausted retries config_id=%s max_retries=%s next_run=%s",
                    tracked.id,
                    max_retries,
                    tracked.next_scheduled_run_at.isoformat(),
                )

        return self._store.save(tracked)

    def initialize_schedule(
        self,
        config: ImportConfiguration,
        now: datetime | None = None,
    ) -> ImportConfiguration:
        """
        Seed the first run and reset retry state. No-op for frequency ``none``.
        """

        tracked = self._store.get(config.id)
        if tracked is None:
            raise ConfigurationNotFoundError(f"Import configuration {config.id} not found.")

        if (tracked.schedule_frequency or ScheduleFrequency.NONE) == ScheduleFrequency.NONE:
            return tracked

        tracked.next_scheduled_run_at = self.calculate_next_run_time(tracked, now)
        tracked.consecutive_failures = 0
        tracked.next_retry_at = None
        saved = self._store.save(tracked)
        logger.info(
            "Initialized import schedule config_id=%s next_run=%s",
            tracked.id,
            tracked.next_scheduled_run_at.isoformat(),
        )
        return saved
