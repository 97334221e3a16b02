"""
Reconciliation Sweep

Periodic maintenance that tops up every active recurring definition with
the occurrences due inside a short look-ahead window. Safe to re-run: days
that already have an occurrence are never generated twice.
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from recurring_tasks.config import SWEEP_MAX_ITERATIONS, SWEEP_WINDOW_DAYS
from recurring_tasks.exceptions import InvalidArgument, InvalidState
from recurring_tasks.models.task import Task
from recurring_tasks.repositories.task_repository import TaskRepository
from recurring_tasks.services.date_calculator import calculate_next, parse_repeat_type
from recurring_tasks.services.occurrence_materializer import OccurrenceMaterializer
from recurring_tasks.utils.dates import date_only, to_utc_naive, utc_now
from recurring_tasks.utils.logger import log_cron_job, log_performance, recurrence_logger
from recurring_tasks.utils.metrics import MetricsCollector, metrics_collector

logger = logging.getLogger(__name__)

JOB_NAME = "recurring_task_maintenance"


class SweepLease:
    """Process-local flag that keeps two sweeps from running at once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Take the lease without waiting. Returns False if it is already held."""
        with self._lock:
            if self._held:
                return False
            self._held = True
            return True

    def release(self):
        with self._lock:
            self._held = False


# Shared by the scheduler job and the internal HTTP trigger
default_lease = SweepLease()


class ReconciliationSweep:
    """Generates missing occurrences for all active recurring definitions."""

    def __init__(
        self,
        repository: TaskRepository,
        materializer: OccurrenceMaterializer,
        lease: Optional[SweepLease] = None,
        clock: Callable[[], datetime] = utc_now,
        window_days: int = SWEEP_WINDOW_DAYS,
        max_iterations: int = SWEEP_MAX_ITERATIONS,
        next_date: Callable[[datetime, str], datetime] = calculate_next,
        metrics: MetricsCollector = metrics_collector,
    ):
        self.repository = repository
        self.materializer = materializer
        self.lease = lease if lease is not None else default_lease
        self.clock = clock
        self.window_days = window_days
        self.max_iterations = max_iterations
        self.next_date = next_date
        self.metrics = metrics

    async def run(self, sweep_time: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Run one maintenance sweep.

        Args:
            sweep_time: Reference time for the window (defaults to now, UTC)

        Returns:
            Sweep summary. ``success`` is False only when the sweep was skipped
            or could not start; per-rule failures are listed under ``errors``.
        """
        if not self.lease.try_acquire():
            self.metrics.increment_counter("sweeps_skipped_total")
            log_cron_job(JOB_NAME, "SKIPPED", reason="previous sweep still running")
            recurrence_logger.warning("Maintenance sweep skipped: another sweep is still running")
            return {
                "success": False,
                "skipped": True,
                "timestamp": utc_now().isoformat(),
                "error": "Another maintenance sweep is already running",
            }

        try:
            with self.metrics.time_operation("sweep_duration_seconds"):
                return await self._run(sweep_time)
        finally:
            self.lease.release()

    async def _run(self, sweep_time: Optional[datetime]) -> Dict[str, Any]:
        started = time.perf_counter()
        if sweep_time is None:
            sweep_time = self.clock()
        log_cron_job(JOB_NAME, "START", sweep_time=sweep_time)

        try:
            window_end = self.window_end(sweep_time)
            rules = await self.repository.find_recurring_definitions()
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            self.metrics.increment_counter("sweeps_failed_total")
            recurrence_logger.exception("Maintenance sweep failed before processing rules", error=str(exc))
            log_cron_job(JOB_NAME, "ERROR", error=str(exc), duration_ms=round(duration_ms, 2))
            return {
                "success": False,
                "timestamp": sweep_time.isoformat() if isinstance(sweep_time, datetime) else str(sweep_time),
                "duration_ms": round(duration_ms, 2),
                "error": str(exc),
            }

        recurrence_logger.info(
            f"Found {len(rules)} recurring definitions",
            window_end=window_end,
            window_days=self.window_days,
        )

        results: List[Dict[str, Any]] = []
        errors: List[Dict[str, Any]] = []
        rules_processed = 0
        occurrences_generated = 0

        for rule_task in rules:
            rule_started = time.perf_counter()
            try:
                with self.metrics.time_operation("rule_processing_seconds"):
                    existing, created = await self.process_rule(rule_task, window_end)
            except Exception as exc:
                self.metrics.rule_error()
                recurrence_logger.bind(task_id=rule_task.id).error(
                    f"Error processing recurring task {rule_task.id}",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                errors.append({"task_id": rule_task.id, "error": type(exc).__name__, "message": str(exc)})
                continue

            self.metrics.rule_processed()
            rules_processed += 1
            occurrences_generated += len(created)
            results.append({
                "task_id": rule_task.id,
                "title": rule_task.title,
                "existing_occurrences": len(existing),
                "generated_occurrences": len(created),
                "new_occurrences": [{"id": o.id, "due_date": o.due_date} for o in created],
            })
            log_performance(
                "recurring_task_processing",
                (time.perf_counter() - rule_started) * 1000,
                task_id=rule_task.id,
                generated=len(created),
            )

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        summary = {
            "rules_found": len(rules),
            "rules_processed": rules_processed,
            "occurrences_generated": occurrences_generated,
            "errors": len(errors),
        }
        self.metrics.increment_counter("sweeps_completed_total")
        log_cron_job(JOB_NAME, "SUCCESS", **summary)
        log_performance(JOB_NAME, duration_ms, **summary)

        return {
            "success": True,
            "timestamp": sweep_time.isoformat(),
            "duration_ms": duration_ms,
            "summary": summary,
            "results": results,
            "errors": errors,
        }

    def window_end(self, sweep_time: datetime) -> datetime:
        if not isinstance(sweep_time, datetime):
            raise InvalidArgument("Sweep time must be a datetime", {"sweep_time": repr(sweep_time)})
        return to_utc_naive(sweep_time) + timedelta(days=self.window_days)

    async def process_rule(self, rule_task: Task, window_end: datetime):
        """Materialize the missing days of one rule. Returns (existing, created)."""
        existing = await self.repository.find_occurrences(rule_task.id)
        missing = self.missing_dates(rule_task, existing, window_end)
        if not missing:
            logger.debug(f"No missing occurrences for recurring task {rule_task.id}")
            return existing, []
        return existing, await self.materializer.materialize(rule_task, missing)

    def missing_dates(self, rule_task: Task, existing: List[Task], window_end: datetime) -> List[datetime]:
        """
        Dates after the latest known occurrence, up to the window's last day,
        that have no occurrence yet.

        Days are compared by calendar date only, so a rule due later in the
        day than the sweep still gets its occurrence on the window's last day.

        Raises:
            InvalidArgument: if the rule has no due date or an unknown repeat type
            InvalidState: if the date computation stalls or runs away
        """
        kind = parse_repeat_type(rule_task.repeat_type)
        existing_days = {date_only(o.due_date) for o in existing if o.due_date is not None}

        due_dates = [to_utc_naive(o.due_date) for o in existing if o.due_date is not None]
        if due_dates:
            current = max(due_dates)
        elif rule_task.due_date is not None:
            current = to_utc_naive(rule_task.due_date)
        else:
            raise InvalidArgument("Recurring task has no due date", {"task_id": rule_task.id})

        last_day = date_only(window_end)
        missing = []
        iterations = 0
        while True:
            following = self.next_date(current, kind)
            if following <= current:
                raise InvalidState(
                    "Next occurrence did not advance",
                    {"task_id": rule_task.id, "date": current.isoformat()},
                )
            if date_only(following) > last_day:
                break
            iterations += 1
            if iterations > self.max_iterations:
                raise InvalidState(
                    f"Occurrence computation exceeded {self.max_iterations} iterations",
                    {"task_id": rule_task.id},
                )
            if date_only(following) not in existing_days:
                missing.append(following)
            current = following
        return missing
