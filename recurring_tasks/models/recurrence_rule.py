"""Recurrence rule value object derived from a task record."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from recurring_tasks.exceptions import InvalidState

if TYPE_CHECKING:
    from recurring_tasks.models.task import Task


class RepeatType(str, Enum):
    """How often a recurring task repeats."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def values(cls):
        return [member.value for member in cls]


@dataclass(frozen=True)
class RecurrenceRule:
    """The repeating schedule embedded in a task definition."""

    anchor_due_date: Optional[datetime]
    repeat_type: RepeatType
    owner_id: str
    definition_id: Optional[int]

    @property
    def is_active(self) -> bool:
        return self.repeat_type != RepeatType.NONE

    @classmethod
    def from_task(cls, task: "Task") -> "RecurrenceRule":
        """
        Build the rule for a task.

        Raises:
            InvalidState: if the task repeats but was itself generated from a rule
        """
        repeat_type = RepeatType(task.repeat_type or RepeatType.NONE.value)
        if repeat_type != RepeatType.NONE and task.parent_recurring_id is not None:
            raise InvalidState(
                "A recurring occurrence cannot carry its own repeat type",
                {"task_id": task.id, "parent_recurring_id": task.parent_recurring_id},
            )
        return cls(
            anchor_due_date=task.due_date,
            repeat_type=repeat_type,
            owner_id=task.user_id,
            definition_id=task.id,
        )
