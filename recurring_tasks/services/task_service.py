"""Task service: the recurrence-aware part of task create, edit and delete."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from recurring_tasks.exceptions import InvalidArgument, InvalidState, TaskNotFound
from recurring_tasks.models.recurrence_rule import RepeatType
from recurring_tasks.models.task import Task
from recurring_tasks.repositories.task_repository import TaskRepository
from recurring_tasks.services.recurrence_validator import RecurrenceValidator
from recurring_tasks.services.rule_mutation_handler import RuleMutationHandler
from recurring_tasks.utils.dates import to_utc_naive

logger = logging.getLogger(__name__)


class TaskService:
    """Service class for task operations that affect recurring schedules."""

    def __init__(self, repository: TaskRepository, mutation_handler: RuleMutationHandler):
        self.repository = repository
        self.mutation_handler = mutation_handler

    async def get_by_id(self, task_id: int, user_id: str) -> Optional[Task]:
        """Get a specific task by ID, ensuring user ownership."""
        task = await self.repository.get(task_id)
        if task is None or task.user_id != user_id:
            return None
        return task

    async def _require(self, task_id: int, user_id: str) -> Task:
        task = await self.get_by_id(task_id, user_id)
        if task is None:
            raise TaskNotFound("Task not found or access denied", {"task_id": task_id})
        return task

    async def validate_subtask_constraints(
        self,
        user_id: str,
        parent_id: int,
        repeat_type: str = RepeatType.NONE.value,
        due_date: Optional[datetime] = None,
    ) -> Task:
        """
        Check that a task may be a subtask of ``parent_id``.

        Returns:
            The parent task

        Raises:
            TaskNotFound: if the parent does not exist
            InvalidState: if the parent belongs to another user or the subtask repeats
            InvalidArgument: if the subtask is due after its parent
        """
        parent = await self.repository.get(parent_id)
        if parent is None:
            raise TaskNotFound("Parent task not found", {"parent_id": parent_id})
        if parent.user_id != user_id:
            raise InvalidState("Parent task must belong to the same user", {"parent_id": parent_id})
        if (repeat_type or RepeatType.NONE.value) != RepeatType.NONE.value:
            raise InvalidState(
                'Subtasks cannot have a repeat type other than "none"',
                {"parent_id": parent_id, "repeat_type": repeat_type},
            )
        if (
            due_date is not None
            and parent.due_date is not None
            and to_utc_naive(due_date) > to_utc_naive(parent.due_date)
        ):
            raise InvalidArgument(
                "Subtask due date must be same or before parent task due date",
                {"parent_id": parent_id},
            )
        return parent

    @staticmethod
    def _check(validation: Dict[str, Any]) -> None:
        if not validation["valid"]:
            raise InvalidArgument("; ".join(validation["errors"]), {"errors": validation["errors"]})
        for warning in validation["warnings"]:
            logger.warning(warning)

    async def create(
        self,
        user_id: str,
        title: str,
        description: Optional[str] = "",
        priority: str = "medium",
        category: Optional[str] = "",
        links: Optional[List[str]] = None,
        additional_details: Optional[str] = "",
        due_date: Optional[datetime] = None,
        repeat_type: str = RepeatType.NONE.value,
        parent_id: Optional[int] = None,
    ) -> Tuple[Task, List[Task]]:
        """
        Create a task. A repeating task gets its first occurrences in the same transaction.

        Returns:
            The created task and any occurrences generated for it
        """
        repeat_type = repeat_type or RepeatType.NONE.value
        if parent_id is not None:
            await self.validate_subtask_constraints(user_id, parent_id, repeat_type, due_date)

        self._check(RecurrenceValidator.validate_priority(priority))
        self._check(RecurrenceValidator.validate_links(links))
        self._check(RecurrenceValidator.validate_task_with_recurrence({
            "repeat_type": repeat_type,
            "due_date": due_date,
            "parent_id": parent_id,
        }))

        task = Task(
            user_id=user_id,
            parent_id=parent_id,
            title=title,
            description=description,
            priority=priority,
            category=category,
            links=links or [],
            additional_details=additional_details,
            due_date=to_utc_naive(due_date) if due_date is not None else None,
            is_completed=False,
            repeat_type=repeat_type,
        )

        async with self.repository.transaction():
            task = await self.repository.add(task)
            occurrences = await self.mutation_handler.on_rule_created(task)

        logger.info(f"Created task {task.id} for user {user_id} with {len(occurrences)} occurrences")
        return task, occurrences

    async def update_recurrence(
        self,
        task_id: int,
        user_id: str,
        due_date: Optional[datetime] = None,
        repeat_type: Optional[str] = None,
    ) -> Tuple[Task, Dict[str, Any]]:
        """
        Change a task's due date and/or repeat type and keep its occurrences in step.

        Returns:
            The updated task and the mutation summary
        """
        task = await self._require(task_id, user_id)
        if due_date is not None and not isinstance(due_date, datetime):
            raise InvalidArgument("Valid due date is required", {"due_date": repr(due_date)})
        kind_changes = repeat_type is not None and repeat_type != task.repeat_type

        if task.is_subtask():
            await self.validate_subtask_constraints(
                user_id,
                task.parent_id,
                repeat_type if repeat_type is not None else task.repeat_type,
                due_date,
            )

        result: Dict[str, Any] = {
            "deleted_count": 0,
            "generated_count": 0,
            "message": "No recurrence changes",
            "new_occurrences": [],
        }

        async with self.repository.transaction():
            if due_date is not None:
                if task.is_recurring_definition() and not kind_changes:
                    result = await self.mutation_handler.on_due_date_changed(task, due_date)
                else:
                    # The repeat type change below regenerates from the new due date
                    task.due_date = to_utc_naive(due_date)
                    task = await self.repository.save(task)
                    result["message"] = "Due date updated"
            if kind_changes:
                result = await self.mutation_handler.on_repeat_kind_changed(task, repeat_type)

        return task, result

    async def delete(self, task_id: int, user_id: str) -> Dict[str, Any]:
        """Delete a task, cascading to its occurrences when it is a recurring definition."""
        task = await self._require(task_id, user_id)
        async with self.repository.transaction():
            deleted_occurrences = await self.mutation_handler.on_rule_deleted(task)
            await self.repository.delete(task)
        logger.info(f"Deleted task {task_id} and {deleted_occurrences} occurrences")
        return {"deleted_task_id": task_id, "deleted_occurrences": deleted_occurrences}

    async def list_occurrences(self, task_id: int, user_id: str) -> List[Task]:
        """Occurrences generated from one of the user's tasks, in due-date order."""
        task = await self._require(task_id, user_id)
        return await self.repository.find_occurrences(task.id)
