"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, DateTime, Text, UniqueConstraint
from datetime import date, datetime
from typing import List, Optional

from recurring_tasks.models.recurrence_rule import RecurrenceRule, RepeatType
from recurring_tasks.utils.dates import date_only, utc_now


class Task(SQLModel, table=True):
    """Task record. Recurring definitions and their generated occurrences share this table."""

    __table_args__ = (
        # At most one occurrence per recurring definition and calendar day
        UniqueConstraint("parent_recurring_id", "due_day", name="uq_task_recurring_day"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(max_length=100, index=True)
    parent_id: Optional[int] = Field(default=None, index=True)  # subtask parent
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default="", max_length=1000)
    priority: str = Field(default="medium", max_length=20)  # high, medium, low
    category: Optional[str] = Field(default="", max_length=100)
    links: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    additional_details: Optional[str] = Field(default="", sa_column=Column(Text))
    due_date: Optional[datetime] = Field(default=None, sa_type=DateTime)  # naive UTC
    due_day: Optional[date] = Field(default=None)  # calendar day of due_date
    is_completed: bool = Field(default=False)
    repeat_type: str = Field(default=RepeatType.NONE.value, max_length=20)
    parent_recurring_id: Optional[int] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime)

    def is_recurring_definition(self) -> bool:
        """True for the original repeating task (not a generated occurrence)."""
        return (
            self.repeat_type not in (None, RepeatType.NONE.value)
            and self.parent_recurring_id is None
        )

    def is_occurrence(self) -> bool:
        """True for a task generated from a recurring definition."""
        return self.parent_recurring_id is not None

    def is_subtask(self) -> bool:
        return self.parent_id is not None

    def sync_due_day(self) -> None:
        """Keep the unique-constraint column in step with due_date."""
        self.due_day = date_only(self.due_date) if self.due_date is not None else None

    @property
    def rule(self) -> RecurrenceRule:
        return RecurrenceRule.from_task(self)
