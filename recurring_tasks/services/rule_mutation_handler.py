"""
Rule Mutation Handler

Keeps a recurring definition's materialized occurrences consistent when its
due date or repeat type is edited, and when the definition is created or
deleted.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List

from recurring_tasks.config import INITIAL_OCCURRENCE_COUNT
from recurring_tasks.exceptions import InvalidArgument, InvalidState
from recurring_tasks.models.recurrence_rule import RepeatType
from recurring_tasks.models.task import Task
from recurring_tasks.repositories.task_repository import TaskRepository
from recurring_tasks.services.date_calculator import calculate_future_dates
from recurring_tasks.services.occurrence_materializer import OccurrenceMaterializer
from recurring_tasks.utils.dates import to_utc_naive, utc_now

logger = logging.getLogger(__name__)


def _summarize(occurrences: List[Task]) -> List[Dict[str, Any]]:
    return [{"id": o.id, "due_date": o.due_date} for o in occurrences]


class RuleMutationHandler:
    """Applies schedule edits to a definition and regenerates its occurrences."""

    def __init__(
        self,
        repository: TaskRepository,
        materializer: OccurrenceMaterializer,
        clock: Callable[[], datetime] = utc_now,
        initial_count: int = INITIAL_OCCURRENCE_COUNT,
    ):
        self.repository = repository
        self.materializer = materializer
        self.clock = clock
        self.initial_count = initial_count

    async def on_due_date_changed(self, rule_task: Task, new_due_date: datetime) -> Dict[str, Any]:
        """
        Move a recurring definition to a new due date.

        Future occurrences (due now or later) are replaced by a fresh series
        starting after ``new_due_date``. Past occurrences are kept.

        Args:
            rule_task: The task being edited
            new_due_date: Its new due date

        Returns:
            Dict with deleted_count, generated_count, message and new_occurrences

        Raises:
            InvalidArgument: if new_due_date is not a datetime
        """
        if not isinstance(new_due_date, datetime):
            raise InvalidArgument("Valid due date is required", {"due_date": repr(new_due_date)})

        if not rule_task.is_recurring_definition():
            return {
                "deleted_count": 0,
                "generated_count": 0,
                "message": "Task is not a recurring definition, no occurrences to regenerate",
                "new_occurrences": [],
            }

        new_due_date = to_utc_naive(new_due_date)
        kind = rule_task.repeat_type
        previous_due_date = rule_task.due_date

        try:
            async with self.repository.transaction():
                deleted_count = await self.repository.delete_occurrences(rule_task.id, from_date=self.clock())
                rule_task.due_date = new_due_date
                await self.repository.save(rule_task)
                created = await self.materializer.materialize(
                    rule_task, calculate_future_dates(new_due_date, kind, self.initial_count)
                )
        except Exception:
            rule_task.due_date = previous_due_date
            rule_task.sync_due_day()
            raise

        logger.info(
            f"Due date of recurring task {rule_task.id} changed: "
            f"deleted {deleted_count}, generated {len(created)} occurrences"
        )
        return {
            "deleted_count": deleted_count,
            "generated_count": len(created),
            "message": (
                f"Deleted {deleted_count} future occurrences and generated "
                f"{len(created)} new occurrences"
            ),
            "new_occurrences": _summarize(created),
        }

    async def on_repeat_kind_changed(self, rule_task: Task, new_kind: str) -> Dict[str, Any]:
        """
        Change how often a task repeats.

        Switching to ``none`` removes the future occurrences; switching to a
        repeating kind replaces them with a new series.

        Raises:
            InvalidArgument: for an unknown kind, or a repeating kind without a due date
            InvalidState: when an occurrence or a subtask would start repeating
        """
        if new_kind not in RepeatType.values():
            raise InvalidArgument(
                "Invalid repeat type. Must be one of: none, daily, weekly, monthly",
                {"repeat_type": new_kind},
            )
        repeats = new_kind != RepeatType.NONE.value

        if repeats and rule_task.is_occurrence():
            raise InvalidState(
                "An occurrence of a recurring task cannot repeat",
                {"task_id": rule_task.id, "parent_recurring_id": rule_task.parent_recurring_id},
            )
        if repeats and rule_task.is_subtask():
            raise InvalidState(
                "Subtasks cannot be recurring tasks",
                {"task_id": rule_task.id, "parent_id": rule_task.parent_id},
            )
        if repeats and rule_task.due_date is None:
            raise InvalidArgument("Due date is required for recurring tasks", {"task_id": rule_task.id})

        was_active = rule_task.is_recurring_definition()
        previous_kind = rule_task.repeat_type
        deleted_count = 0
        created: List[Task] = []

        try:
            async with self.repository.transaction():
                if was_active:
                    deleted_count = await self.repository.delete_occurrences(
                        rule_task.id, from_date=self.clock()
                    )
                rule_task.repeat_type = new_kind
                await self.repository.save(rule_task)
                if repeats:
                    created = await self.materializer.materialize(
                        rule_task,
                        calculate_future_dates(rule_task.due_date, new_kind, self.initial_count),
                    )
        except Exception:
            rule_task.repeat_type = previous_kind
            raise

        if repeats:
            message = (
                f"Changed repeat type to {new_kind}. Deleted {deleted_count} old occurrences "
                f"and generated {len(created)} new occurrences"
            )
        else:
            message = f"Changed repeat type to none. Deleted {deleted_count} recurring occurrences"
        logger.info(f"Recurring task {rule_task.id}: {message}")

        return {
            "deleted_count": deleted_count,
            "generated_count": len(created),
            "message": message,
            "new_occurrences": _summarize(created),
        }

    async def on_rule_created(self, rule_task: Task) -> List[Task]:
        """Materialize the first occurrences of a newly created definition."""
        if not rule_task.is_recurring_definition():
            return []
        if rule_task.due_date is None:
            raise InvalidArgument("Due date is required for recurring tasks", {"task_id": rule_task.id})
        return await self.materializer.materialize(
            rule_task,
            calculate_future_dates(rule_task.due_date, rule_task.repeat_type, self.initial_count),
        )

    async def on_rule_deleted(self, rule_task: Task) -> int:
        """Delete every occurrence of a definition. Returns how many were removed."""
        # Past occurrences outlive a switch to "none", so only occurrences are exempt
        if rule_task.id is None or rule_task.is_occurrence():
            return 0
        deleted_count = await self.repository.delete_occurrences(rule_task.id)
        logger.info(f"Deleted {deleted_count} occurrences of recurring task {rule_task.id}")
        return deleted_count
