"""
app/scheduler/jobs.py

APScheduler-based tick job that runs due external data imports.

Tick
----
Every ``IMPORT_SCHEDULER_INTERVAL_SECONDS`` the ``import_tick`` job asks the
configuration store for due configurations and runs them in a bounded
thread pool (``IMPORT_SCHEDULER_MAX_WORKERS``). Each worker opens its own
SQLAlchemy session.

Exclusivity
-----------
At most one run per configuration is in flight:

  * the tick job is registered with ``max_instances=1`` and ``coalesce=True``
    so ticks never overlap inside one process;
  * a non-blocking per-configuration lock skips a configuration that is
    already running (for example a manual run triggered over HTTP);
  * the ``version`` column turns a concurrent write from another process
    into ``ConcurrentUpdateError`` instead of a lost update.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.config import ImportSchedulerSettings, get_import_scheduler_settings
from app.domain.imports import ImportResult
from app.errors import ConcurrentUpdateError
from app.services.import_executor import ImportExecutor, get_import_executor
from app.services.import_notification_service import ImportNotificationService
from app.services.scheduled_import_service import DEFAULT_MAX_RETRIES, ScheduledImportService
from db.repositories import ImportConfigurationRepository
from db.session import SessionLocal

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]

IMPORT_TICK_JOB_ID = "import_tick"


# ---------------------------------------------------------------------------
# Per-configuration exclusivity
# ---------------------------------------------------------------------------


class ConfigurationLockRegistry:
    """
    In-process registry of one lock per configuration id.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[uuid.UUID, threading.Lock] = {}

    def _lock_for(self, config_id: uuid.UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(config_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[config_id] = lock
            return lock

    @contextmanager
    def try_acquire(self, config_id: uuid.UUID) -> Iterator[bool]:
        """Yield True when the lock was taken, False when a run is in flight."""
        lock = self._lock_for(config_id)
        acquired = lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                lock.release()

    def is_running(self, config_id: uuid.UUID) -> bool:
        return self._lock_for(config_id).locked()


_default_lock_registry = ConfigurationLockRegistry()


def get_lock_registry() -> ConfigurationLockRegistry:
    return _default_lock_registry


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------


@contextmanager
def _session_scope(session_factory: SessionFactory) -> Iterator[Session]:
    """Yield a fresh session and ensure it is closed on exit."""
    session: Session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Single configuration run
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportRunOutcome:
    config_id: uuid.UUID
    result: ImportResult | None
    skipped: bool = False
    reason: str | None = None


def run_configuration_import(
    config_id: uuid.UUID,
    *,
    session_factory: SessionFactory | None = None,
    executor: ImportExecutor | None = None,
    notifier: ImportNotificationService | None = None,
    lock_registry: ConfigurationLockRegistry | None = None,
    was_scheduled: bool = True,
    now: datetime | None = None,
) -> ImportRunOutcome:
    """
    Run one configuration end to end: execute, record history, apply the
    post-run transition, notify.
    """

    registry = lock_registry or get_lock_registry()
    with registry.try_acquire(config_id) as acquired:
        if not acquired:
            logger.info("Scheduler: import already running config_id=%s; skipping", config_id)
            return ImportRunOutcome(config_id=config_id, result=None, skipped=True, reason="already_running")

        return _run_locked(
            config_id,
            session_factory=session_factory or SessionLocal,
            executor=executor or get_import_executor(),
            notifier=notifier or ImportNotificationService(),
            was_scheduled=was_scheduled,
            now=now,
        )


def _run_locked(
    config_id: uuid.UUID,
    *,
    session_factory: SessionFactory,
    executor: ImportExecutor,
    notifier: ImportNotificationService,
    was_scheduled: bool,
    now: datetime | None,
) -> ImportRunOutcome:
    with _session_scope(session_factory) as db:
        store = ImportConfigurationRepository(db)
        service = ScheduledImportService(store)

        config = store.get(config_id)
        if config is None:
            logger.warning("Scheduler: import configuration not found config_id=%s", config_id)
            return ImportRunOutcome(config_id=config_id, result=None, skipped=True, reason="not_found")

        retry_attempt = config.consecutive_failures or 0
        was_retry = retry_attempt > 0
        logger.info(
            "Scheduler: running import name=%r config_id=%s was_retry=%s retry_attempt=%s",
            config.name,
            config_id,
            was_retry,
            retry_attempt,
        )

        try:
            result = executor.execute_import(config)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Scheduler: import raised config_id=%s error=%s", config_id, exc)
            result = ImportResult.failed(str(exc) or type(exc).__name__)

        try:
            service.record_execution(
                config.id,
                result,
                was_retry,
                retry_attempt,
                was_scheduled=was_scheduled,
                now=now,
            )
            db.commit()

            updated = service.update_configuration_after_execution(
                config,
                result.success,
                result.error_message or None,
                items_imported=result.items_imported,
                now=now,
            )
            db.commit()
        except ConcurrentUpdateError as exc:
            db.rollback()
            logger.warning("Scheduler: concurrent update detected config_id=%s error=%s", config_id, exc)
            return ImportRunOutcome(config_id=config_id, result=result, reason="concurrent_update")
        except Exception:
            db.rollback()
            raise

        max_retries = DEFAULT_MAX_RETRIES if updated.max_retries is None else updated.max_retries
        if result.success and was_retry:
            notifier.send_recovery_notification(updated, result)
        elif not result.success and updated.consecutive_failures >= max_retries:
            notifier.send_failure_notification(updated, result, updated.consecutive_failures)

        logger.info(
            "Scheduler: import finished name=%r success=%s items=%s",
            updated.name,
            result.success,
            result.items_imported,
        )
        return ImportRunOutcome(config_id=config_id, result=result)


# ---------------------------------------------------------------------------
# Job: import tick
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportTickSummary:
    due: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0


def run_due_imports(
    *,
    session_factory: SessionFactory | None = None,
    executor: ImportExecutor | None = None,
    notifier: ImportNotificationService | None = None,
    lock_registry: ConfigurationLockRegistry | None = None,
    max_workers: int | None = None,
    now: datetime | None = None,
) -> ImportTickSummary:
    """
    Run every due configuration once. One failing configuration never stops the others.
    """

    factory = session_factory or SessionLocal
    workers = max(1, max_workers or get_import_scheduler_settings().max_workers)

    with _session_scope(factory) as db:
        service = ScheduledImportService(ImportConfigurationRepository(db))
        due_ids = [config.id for config in service.get_due_configurations(now)]

    if not due_ids:
        logger.info("Scheduler: import_tick found nothing due")
        return ImportTickSummary()

    run_executor = executor or get_import_executor()
    run_notifier = notifier or ImportNotificationService()
    registry = lock_registry or get_lock_registry()

    succeeded = failed = skipped = 0
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="import-worker") as pool:
        futures = {
            pool.submit(
                run_configuration_import,
                config_id,
                session_factory=factory,
                executor=run_executor,
                notifier=run_notifier,
                lock_registry=registry,
                now=now,
            ): config_id
            for config_id in due_ids
        }
        for future, config_id in futures.items():
            try:
                outcome = future.result()
            except Exception as exc:  # noqa: BLE001
                failed += 1
                logger.exception("Scheduler: import worker failed config_id=%s error=%s", config_id, exc)
                continue
            if outcome.skipped or outcome.result is None:
                skipped += 1
            elif outcome.result.success:
                succeeded += 1
            else:
                failed += 1

    summary = ImportTickSummary(due=len(due_ids), succeeded=succeeded, failed=failed, skipped=skipped)
    logger.info(
        "Scheduler: import_tick complete due=%s succeeded=%s failed=%s skipped=%s",
        summary.due,
        summary.succeeded,
        summary.failed,
        summary.skipped,
    )
    return summary


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(settings: ImportSchedulerSettings | None = None) -> BackgroundScheduler:
    """
    Build the scheduler with the import tick registered.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    resolved = settings or get_import_scheduler_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_due_imports,
        trigger="interval",
        seconds=max(1, resolved.interval_seconds),
        kwargs={"max_workers": resolved.max_workers},
        id=IMPORT_TICK_JOB_ID,
        name="Scheduled external data imports",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=resolved.misfire_grace_seconds,
    )

    return scheduler
