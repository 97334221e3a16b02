"""SQL task repository backed by SQLModel tables and an async SQLAlchemy session."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recurring_tasks.exceptions import DuplicateKey, PersistenceFailure
from recurring_tasks.models.recurrence_rule import RepeatType
from recurring_tasks.models.task import Task
from recurring_tasks.repositories.task_repository import TaskRepository
from recurring_tasks.utils.dates import to_utc_naive, utc_now

logger = logging.getLogger(__name__)


class SQLTaskRepository(TaskRepository):
    """
    Task repository over an ``AsyncSession``.

    Every returned row is detached from the session, so a rollback after a
    failed operation never expires objects the caller is still holding.
    The session must be created with ``expire_on_commit=False``.

    Outside ``transaction()`` each write commits on its own; inside it,
    writes are flushed and committed when the outermost block exits.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._transaction_depth = 0

    # ---- low-level helpers ----

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    async def _commit(self) -> None:
        if self.in_transaction:
            return
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            raise await self._failure("commit", exc) from exc

    async def _failure(self, operation: str, exc: Exception, **details) -> PersistenceFailure:
        """Roll back standalone work and wrap the storage error."""
        logger.error(f"Task repository {operation} failed: {exc}")
        if not self.in_transaction:
            await self.session.rollback()
        return PersistenceFailure(f"Failed to {operation}: {exc}", {"operation": operation, **details})

    def _detach(self, tasks: List[Task]) -> List[Task]:
        for task in tasks:
            self.session.expunge(task)
        return tasks

    @staticmethod
    def _normalize(task: Task) -> None:
        if task.due_date is not None:
            task.due_date = to_utc_naive(task.due_date)
        task.sync_due_day()

    # ---- reads ----

    async def get(self, task_id: int) -> Optional[Task]:
        try:
            result = await self.session.execute(select(Task).where(Task.id == task_id))
            tasks = self._detach(list(result.scalars().all()))
        except SQLAlchemyError as exc:
            raise await self._failure("get task", exc, task_id=task_id) from exc
        return tasks[0] if tasks else None

    async def find_recurring_definitions(self) -> List[Task]:
        statement = (
            select(Task)
            .where(Task.repeat_type != RepeatType.NONE.value)
            .where(Task.parent_recurring_id.is_(None))
            .order_by(Task.id)
        )
        try:
            result = await self.session.execute(statement)
            return self._detach(list(result.scalars().all()))
        except SQLAlchemyError as exc:
            raise await self._failure("find recurring definitions", exc) from exc

    async def find_occurrences(self, parent_recurring_id: int) -> List[Task]:
        statement = (
            select(Task)
            .where(Task.parent_recurring_id == parent_recurring_id)
            .order_by(Task.due_date.asc())
        )
        try:
            result = await self.session.execute(statement)
            return self._detach(list(result.scalars().all()))
        except SQLAlchemyError as exc:
            raise await self._failure(
                "find occurrences", exc, parent_recurring_id=parent_recurring_id
            ) from exc

    # ---- writes ----

    async def create_occurrence(self, occurrence: Task) -> Task:
        self._normalize(occurrence)
        try:
            # SAVEPOINT so a unique-constraint race only discards this row
            async with self.session.begin_nested():
                self.session.add(occurrence)
        except IntegrityError as exc:
            if not self.in_transaction:
                await self.session.rollback()
            raise DuplicateKey(
                "Occurrence already exists for this day",
                {
                    "parent_recurring_id": occurrence.parent_recurring_id,
                    "due_day": occurrence.due_day.isoformat() if occurrence.due_day else None,
                },
            ) from exc
        except SQLAlchemyError as exc:
            raise await self._failure(
                "create occurrence", exc, parent_recurring_id=occurrence.parent_recurring_id
            ) from exc

        await self._commit()
        self.session.expunge(occurrence)
        return occurrence

    async def delete_occurrences(
        self, parent_recurring_id: int, from_date: Optional[datetime] = None
    ) -> int:
        statement = delete(Task).where(Task.parent_recurring_id == parent_recurring_id)
        if from_date is not None:
            statement = statement.where(Task.due_date >= to_utc_naive(from_date))
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            raise await self._failure(
                "delete occurrences", exc, parent_recurring_id=parent_recurring_id
            ) from exc
        await self._commit()
        return result.rowcount or 0

    async def delete_tasks(self, task_ids: Iterable[int]) -> int:
        ids = [task_id for task_id in task_ids if task_id is not None]
        if not ids:
            return 0
        try:
            result = await self.session.execute(delete(Task).where(Task.id.in_(ids)))
        except SQLAlchemyError as exc:
            raise await self._failure("delete tasks", exc, task_ids=ids) from exc
        await self._commit()
        return result.rowcount or 0

    async def add(self, task: Task) -> Task:
        self._normalize(task)
        try:
            self.session.add(task)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise await self._failure("add task", exc, user_id=task.user_id) from exc
        await self._commit()
        self.session.expunge(task)
        return task

    async def save(self, task: Task) -> Task:
        self._normalize(task)
        task.updated_at = utc_now()
        try:
            merged = await self.session.merge(task)
            await self.session.flush()
            task.id = merged.id
            self.session.expunge(merged)
        except IntegrityError as exc:
            # A rescheduled occurrence landed on a day its rule already has
            if not self.in_transaction:
                await self.session.rollback()
            raise DuplicateKey(
                "Another occurrence of this task already exists for that day",
                {
                    "task_id": task.id,
                    "parent_recurring_id": task.parent_recurring_id,
                    "due_day": task.due_day.isoformat() if task.due_day else None,
                },
            ) from exc
        except SQLAlchemyError as exc:
            raise await self._failure("save task", exc, task_id=task.id) from exc
        await self._commit()
        return task

    async def delete(self, task: Task) -> None:
        await self.delete_tasks([task.id])

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SQLTaskRepository"]:
        self._transaction_depth += 1
        try:
            yield self
        except Exception:
            self._transaction_depth -= 1
            if not self.in_transaction:
                await self.session.rollback()
            raise
        self._transaction_depth -= 1
        await self._commit()
