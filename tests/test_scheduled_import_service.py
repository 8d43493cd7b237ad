"""
Tests for app/services/scheduled_import_service.py.

Coverage:
  - calculate_retry_delay: backoff table and clamping
  - calculate_next_run_time: hourly, daily, weekly, monthly, none
  - update_configuration_after_execution: success reset, retry backoff,
    exhaustion, missing configuration
  - record_execution / initialize_schedule / get_due_configurations
"""

from __future__ import annotations

import uuid
from datetime import datetime, time, timedelta, timezone

import pytest

from app.domain.imports import ImportResult
from app.errors import ConfigurationNotFoundError
from app.services.scheduled_import_service import FAR_FUTURE, ScheduledImportService
from db.models.import_configuration import ImportConfiguration, ScheduleFrequency
from db.models.import_execution_history import ImportExecutionHistory

UTC = timezone.utc
# Monday.
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)


class InMemoryStore:
    def __init__(self) -> None:
        self.configs: dict[uuid.UUID, ImportConfiguration] = {}
        self.history: list[ImportExecutionHistory] = []
        self.saves = 0

    def add(self, config: ImportConfiguration) -> ImportConfiguration:
        self.configs[config.id] = config
        return config

    def list_due(self, now: datetime) -> list[ImportConfiguration]:
        return [
            config
            for config in self.configs.values()
            if config.is_active
            and config.schedule_frequency != ScheduleFrequency.NONE
            and (
                (config.next_scheduled_run_at is not None and config.next_scheduled_run_at <= now)
                or (config.next_retry_at is not None and config.next_retry_at <= now)
            )
        ]

    def get(self, config_id: uuid.UUID) -> ImportConfiguration | None:
        return self.configs.get(config_id)

    def save(self, config: ImportConfiguration) -> ImportConfiguration:
        self.saves += 1
        self.configs[config.id] = config
        return config

    def append_history(self, record: ImportExecutionHistory) -> ImportExecutionHistory:
        self.history.append(record)
        return record


def _config(**overrides) -> ImportConfiguration:
    values = {
        "id": uuid.uuid4(),
        "name": "Feed",
        "target_source_id": "prd",
        "target_content_type": "Product",
        "api_url": "https://api.example.com",
        "id_field_mapping": "id",
        "is_active": True,
        "schedule_frequency": ScheduleFrequency.HOURLY,
        "schedule_interval_value": 1,
        "max_retries": 3,
        "consecutive_failures": 0,
    }
    values.update(overrides)
    return ImportConfiguration(**values)


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def service(store: InMemoryStore) -> ScheduledImportService:
    return ScheduledImportService(store, clock=lambda: NOW)


# ---------------------------------------------------------------------------
# Retry delay
# ---------------------------------------------------------------------------


class TestRetryDelay:
    @pytest.mark.parametrize(
        "failures, minutes",
        [(-1, 1), (0, 1), (1, 5), (2, 15), (3, 30), (10, 30)],
    )
    def test_backoff_table(self, failures, minutes):
        assert ScheduledImportService.calculate_retry_delay(failures) == timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# Next run time
# ---------------------------------------------------------------------------


class TestNextRunTime:
    def test_hourly_adds_interval(self, service):
        config = _config(schedule_interval_value=6)
        assert service.calculate_next_run_time(config, NOW) == NOW + timedelta(hours=6)

    def test_hourly_interval_below_one_is_one_hour(self, service):
        config = _config(schedule_interval_value=0)
        assert service.calculate_next_run_time(config, NOW) == NOW + timedelta(hours=1)

    def test_daily_later_today(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.DAILY, schedule_time_of_day=time(14, 30))
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 19, 14, 30, tzinfo=UTC)

    def test_daily_passed_moves_to_tomorrow(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.DAILY, schedule_time_of_day=time(9, 0))
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 20, 9, 0, tzinfo=UTC)

    def test_daily_exact_time_moves_to_tomorrow(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.DAILY, schedule_time_of_day=time(10, 0))
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 20, 10, 0, tzinfo=UTC)

    def test_daily_defaults_to_midnight(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.DAILY)
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 20, 0, 0, tzinfo=UTC)

    def test_weekly_same_day_passed_rolls_over_seven_days(self, service):
        config = _config(
            schedule_frequency=ScheduleFrequency.WEEKLY,
            schedule_day_of_week=0,
            schedule_time_of_day=time(9, 0),
        )
        next_run = service.calculate_next_run_time(config, NOW)
        assert next_run == datetime(2026, 10, 26, 9, 0, tzinfo=UTC)
        assert next_run.date() - NOW.date() == timedelta(days=7)

    def test_weekly_same_day_later_runs_today(self, service):
        config = _config(
            schedule_frequency=ScheduleFrequency.WEEKLY,
            schedule_day_of_week=0,
            schedule_time_of_day=time(11, 0),
        )
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 19, 11, 0, tzinfo=UTC)

    def test_weekly_later_in_week(self, service):
        config = _config(
            schedule_frequency=ScheduleFrequency.WEEKLY,
            schedule_day_of_week=2,
            schedule_time_of_day=time(8, 0),
        )
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 21, 8, 0, tzinfo=UTC)

    def test_weekly_earlier_in_week_wraps(self, service):
        config = _config(
            schedule_frequency=ScheduleFrequency.WEEKLY,
            schedule_day_of_week=6,
            schedule_time_of_day=time(8, 0),
        )
        wednesday = datetime(2026, 10, 21, 12, 0, tzinfo=UTC)
        assert service.calculate_next_run_time(config, wednesday) == datetime(2026, 10, 25, 8, 0, tzinfo=UTC)

    def test_monthly_later_this_month(self, service):
        config = _config(
            schedule_frequency=ScheduleFrequency.MONTHLY,
            schedule_day_of_month=25,
            schedule_time_of_day=time(6, 0),
        )
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 25, 6, 0, tzinfo=UTC)

    def test_monthly_day_is_clamped_to_28(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.MONTHLY, schedule_day_of_month=31)
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 10, 28, 0, 0, tzinfo=UTC)

    def test_monthly_passed_moves_to_next_month(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.MONTHLY, schedule_day_of_month=5)
        assert service.calculate_next_run_time(config, NOW) == datetime(2026, 11, 5, 0, 0, tzinfo=UTC)

    def test_monthly_december_rolls_into_january(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.MONTHLY, schedule_day_of_month=5)
        december = datetime(2026, 12, 20, tzinfo=UTC)
        assert service.calculate_next_run_time(config, december) == datetime(2027, 1, 5, tzinfo=UTC)

    def test_none_is_far_future(self, service):
        config = _config(schedule_frequency=ScheduleFrequency.NONE)
        assert service.calculate_next_run_time(config, NOW) == FAR_FUTURE

    def test_uses_injected_clock(self, service):
        assert service.calculate_next_run_time(_config()) == NOW + timedelta(hours=1)


# ---------------------------------------------------------------------------
# Post-run transitions
# ---------------------------------------------------------------------------


class TestUpdateAfterExecution:
    def test_success_resets_failure_state(self, service, store):
        config = store.add(
            _config(
                consecutive_failures=2,
                next_retry_at=NOW,
                last_import_error="boom",
            )
        )

        updated = service.update_configuration_after_execution(config, True, items_imported=12, now=NOW)

        assert updated.consecutive_failures == 0
        assert updated.next_retry_at is None
        assert updated.last_import_error is None
        assert updated.last_import_success is True
        assert updated.last_import_at == NOW
        assert updated.last_import_count == 12
        assert updated.next_scheduled_run_at == NOW + timedelta(hours=1)
        assert store.saves == 1

    def test_failures_back_off_then_exhaust(self, service, store):
        config = store.add(_config(next_scheduled_run_at=NOW))

        service.update_configuration_after_execution(config, False, "down", now=NOW)
        assert config.consecutive_failures == 1
        assert config.next_retry_at == NOW + timedelta(minutes=5)
        assert config.last_import_error == "down"
        assert config.next_scheduled_run_at == NOW

        later = NOW + timedelta(minutes=5)
        service.update_configuration_after_execution(config, False, "down", now=later)
        assert config.consecutive_failures == 2
        assert config.next_retry_at == later + timedelta(minutes=15)

        last = later + timedelta(minutes=15)
        service.update_configuration_after_execution(config, False, "still down", now=last)
        assert config.consecutive_failures == 3
        assert config.next_retry_at is None
        assert config.next_scheduled_run_at == last + timedelta(hours=1)
        assert config.last_import_success is False

    def test_failure_after_exhaustion_keeps_counting(self, service, store):
        config = store.add(_config(consecutive_failures=3))

        service.update_configuration_after_execution(config, False, "x", now=NOW)

        assert config.consecutive_failures == 4
        assert config.next_retry_at is None

    def test_zero_max_retries_never_retries(self, service, store):
        config = store.add(_config(max_retries=0))

        service.update_configuration_after_execution(config, False, "x", now=NOW)

        assert config.next_retry_at is None
        assert config.next_scheduled_run_at == NOW + timedelta(hours=1)

    def test_missing_configuration_raises(self, service):
        with pytest.raises(ConfigurationNotFoundError):
            service.update_configuration_after_execution(_config(), True, now=NOW)


# ---------------------------------------------------------------------------
# History, initialization and due selection
# ---------------------------------------------------------------------------


class TestRecordExecution:
    def test_failed_run_joins_errors(self, service, store):
        config_id = uuid.uuid4()
        result = ImportResult(
            success=False,
            total_items_received=4,
            errors=["first", "second"],
            warnings=["Item 2: Skipped"],
            duration=timedelta(milliseconds=1500),
        )

        record = service.record_execution(config_id, result, was_retry=True, retry_attempt=2, now=NOW)

        assert store.history == [record]
        assert record.import_configuration_id == config_id
        assert record.error_message == "first; second"
        assert record.warnings == ["Item 2: Skipped"]
        assert record.duration_ms == 1500
        assert record.was_retry is True
        assert record.retry_attempt == 2
        assert record.executed_at == NOW

    def test_successful_run_has_no_error(self, service, store):
        result = ImportResult.successful(items_imported=3, total_received=3, duration=timedelta(seconds=2))

        record = service.record_execution(uuid.uuid4(), result, False, 0, was_scheduled=False, now=NOW)

        assert record.error_message is None
        assert record.warnings is None
        assert record.items_imported == 3
        assert record.was_scheduled is False


class TestInitializeSchedule:
    def test_seeds_next_run_and_resets_retry_state(self, service, store):
        config = store.add(
            _config(
                schedule_frequency=ScheduleFrequency.DAILY,
                schedule_time_of_day=time(12, 0),
                consecutive_failures=5,
                next_retry_at=NOW,
            )
        )

        service.initialize_schedule(config, NOW)

        assert config.next_scheduled_run_at == datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
        assert config.consecutive_failures == 0
        assert config.next_retry_at is None
        assert store.saves == 1

    def test_unscheduled_configuration_is_untouched(self, service, store):
        config = store.add(_config(schedule_frequency=ScheduleFrequency.NONE, consecutive_failures=2))

        service.initialize_schedule(config, NOW)

        assert config.next_scheduled_run_at is None
        assert config.consecutive_failures == 2
        assert store.saves == 0

    def test_missing_configuration_raises(self, service):
        with pytest.raises(ConfigurationNotFoundError):
            service.initialize_schedule(_config(), NOW)


def test_due_configurations_come_from_store(service, store):
    due = store.add(_config(next_scheduled_run_at=NOW - timedelta(minutes=1)))
    store.add(_config(next_scheduled_run_at=NOW + timedelta(minutes=1)))
    store.add(_config(schedule_frequency=ScheduleFrequency.NONE, next_scheduled_run_at=NOW))

    assert service.get_due_configurations() == [due]
