"""
Task repository interface.

Defines the persistence contract the recurrence engine depends on.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Iterable, List, Optional

from recurring_tasks.models.task import Task


class TaskRepository(ABC):
    """Abstract interface for task persistence used by the recurrence engine."""

    @abstractmethod
    async def get(self, task_id: int) -> Optional[Task]:
        """Get a task by id."""

    @abstractmethod
    async def find_recurring_definitions(self) -> List[Task]:
        """All tasks that repeat and were not generated from another rule."""

    @abstractmethod
    async def find_occurrences(self, parent_recurring_id: int) -> List[Task]:
        """Occurrences generated from a definition, ordered by due date."""

    @abstractmethod
    async def create_occurrence(self, occurrence: Task) -> Task:
        """
        Persist a new occurrence.

        Raises:
            DuplicateKey: if the definition already has an occurrence on that calendar day
            PersistenceFailure: on any other storage error
        """

    @abstractmethod
    async def delete_occurrences(
        self, parent_recurring_id: int, from_date: Optional[datetime] = None
    ) -> int:
        """Delete occurrences due at or after ``from_date`` (all when None). Returns the count."""

    @abstractmethod
    async def delete_tasks(self, task_ids: Iterable[int]) -> int:
        """Delete tasks by id. Returns the count."""

    @abstractmethod
    async def add(self, task: Task) -> Task:
        """Insert a new task and return it with its id assigned."""

    @abstractmethod
    async def save(self, task: Task) -> Task:
        """Insert or update a task."""

    @abstractmethod
    async def delete(self, task: Task) -> None:
        """Delete a single task."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager["TaskRepository"]:
        """
        Group several operations atomically.

        Nested use joins the outer transaction; nothing is committed until the
        outermost block exits without an exception.
        """
