"""
Occurrence Materializer

Turns target calendar days of a recurring definition into concrete task
records, exactly once per day.
"""

import logging
from datetime import date, datetime
from typing import Iterable, List, Union

from recurring_tasks.exceptions import DuplicateKey, InvalidArgument, InvalidState
from recurring_tasks.models.recurrence_rule import RepeatType
from recurring_tasks.models.task import Task
from recurring_tasks.repositories.task_repository import TaskRepository
from recurring_tasks.utils.dates import date_only, to_utc_naive
from recurring_tasks.utils.metrics import MetricsCollector, metrics_collector

logger = logging.getLogger(__name__)


class OccurrenceMaterializer:
    """Creates occurrence records for a recurring definition."""

    def __init__(self, repository: TaskRepository, metrics: MetricsCollector = metrics_collector):
        self.repository = repository
        self.metrics = metrics

    @staticmethod
    def build_occurrence(rule_task: Task, day: date) -> Task:
        """Copy a definition into an unsaved occurrence due on ``day`` at the rule's time of day."""
        anchor = to_utc_naive(rule_task.due_date)
        return Task(
            user_id=rule_task.user_id,
            parent_id=None,
            title=rule_task.title,
            description=rule_task.description,
            priority=rule_task.priority,
            category=rule_task.category,
            links=list(rule_task.links or []),
            additional_details=rule_task.additional_details,
            due_date=datetime.combine(day, anchor.time()),
            is_completed=False,  # New occurrences are always incomplete
            repeat_type=RepeatType.NONE.value,  # Occurrences never repeat themselves
            parent_recurring_id=rule_task.id,
        )

    async def materialize(
        self, rule_task: Task, target_dates: Iterable[Union[date, datetime]]
    ) -> List[Task]:
        """
        Create occurrences for the target days that do not have one yet.

        Args:
            rule_task: Active recurring definition
            target_dates: Calendar days (dates or datetimes; time of day is ignored)

        Returns:
            The occurrences created by this call, in due-date order

        Raises:
            InvalidState: if rule_task is not an active recurring definition
            PersistenceFailure: after removing the occurrences created in this batch
        """
        if rule_task is None or not rule_task.is_recurring_definition():
            raise InvalidState(
                "Occurrences can only be generated from an active recurring task",
                {"task_id": getattr(rule_task, "id", None)},
            )
        if rule_task.due_date is None:
            raise InvalidArgument("Due date is required for recurring tasks", {"task_id": rule_task.id})

        target_days = sorted({date_only(target) for target in target_dates})
        if not target_days:
            return []

        existing = await self.repository.find_occurrences(rule_task.id)
        existing_days = {date_only(o.due_date) for o in existing if o.due_date is not None}
        missing_days = [day for day in target_days if day not in existing_days]
        if not missing_days:
            logger.debug(f"All {len(target_days)} target days already exist for task {rule_task.id}")
            return []

        created: List[Task] = []
        try:
            for day in missing_days:
                try:
                    occurrence = await self.repository.create_occurrence(
                        self.build_occurrence(rule_task, day)
                    )
                except DuplicateKey:
                    # Another writer materialized the same day first
                    self.metrics.duplicate_occurrence()
                    logger.info(f"Occurrence for task {rule_task.id} on {day} already exists, skipping")
                    continue
                created.append(occurrence)
        except Exception as exc:
            logger.error(
                f"Failed to materialize occurrences for task {rule_task.id}: {exc}; "
                f"removing {len(created)} created in this batch"
            )
            await self._cleanup(rule_task, created)
            raise

        self.metrics.occurrences_created(len(created))
        logger.info(f"Materialized {len(created)} occurrences for recurring task {rule_task.id}")
        return created

    async def _cleanup(self, rule_task: Task, created: List[Task]) -> None:
        if not created:
            return
        try:
            await self.repository.delete_tasks([o.id for o in created])
        except Exception as cleanup_error:
            logger.error(f"Failed to clean up partial occurrences for task {rule_task.id}: {cleanup_error}")
