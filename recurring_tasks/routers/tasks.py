"""Task router for recurrence-aware task operations."""
from fastapi import APIRouter, Depends, status
from typing import Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession

from recurring_tasks.db.config import get_session
from recurring_tasks.repositories.sql_task_repository import SQLTaskRepository
from recurring_tasks.repositories.task_repository import TaskRepository
from recurring_tasks.schemas.task import (
    OccurrenceListResponse,
    RecurrenceUpdate,
    RecurrenceUpdateResponse,
    TaskCreate,
    TaskCreateResponse,
    TaskResponse,
)
from recurring_tasks.services.occurrence_materializer import OccurrenceMaterializer
from recurring_tasks.services.rule_mutation_handler import RuleMutationHandler
from recurring_tasks.services.task_service import TaskService

router = APIRouter(tags=["Tasks"])  # No prefix since main.py adds /api prefix


async def get_task_repository(session: AsyncSession = Depends(get_session)) -> TaskRepository:
    """Dependency for getting the task repository."""
    return SQLTaskRepository(session)


def get_task_service(repository: TaskRepository = Depends(get_task_repository)) -> TaskService:
    """Dependency for getting TaskService instance."""
    materializer = OccurrenceMaterializer(repository)
    return TaskService(repository, RuleMutationHandler(repository, materializer))


@router.post("/{user_id}/tasks", response_model=TaskCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    user_id: str,
    task_data: TaskCreate,
    service: TaskService = Depends(get_task_service),
):
    """Create a task. Recurring tasks get their first occurrences immediately."""
    task, occurrences = await service.create(
        user_id=user_id,
        title=task_data.title,
        description=task_data.description,
        priority=task_data.priority or "medium",
        category=task_data.category,
        links=task_data.links,
        additional_details=task_data.additional_details,
        due_date=task_data.due_date,
        repeat_type=task_data.repeat_type or "none",
        parent_id=task_data.parent_id,
    )
    return TaskCreateResponse(
        task=TaskResponse.model_validate(task),
        occurrences=[TaskResponse.model_validate(o) for o in occurrences],
    )


@router.patch("/{user_id}/tasks/{task_id}/recurrence", response_model=RecurrenceUpdateResponse)
async def update_recurrence(
    user_id: str,
    task_id: int,
    update: RecurrenceUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Change a task's due date and/or repeat type, regenerating future occurrences."""
    task, result = await service.update_recurrence(
        task_id,
        user_id,
        due_date=update.due_date,
        repeat_type=update.repeat_type,
    )
    return RecurrenceUpdateResponse(task=TaskResponse.model_validate(task), **result)


@router.delete("/{user_id}/tasks/{task_id}", response_model=Dict[str, Any])
async def delete_task(
    user_id: str,
    task_id: int,
    service: TaskService = Depends(get_task_service),
):
    """Delete a task. Deleting a recurring task also deletes its occurrences."""
    return await service.delete(task_id, user_id)


@router.get("/{user_id}/tasks/{task_id}/occurrences", response_model=OccurrenceListResponse)
async def list_occurrences(
    user_id: str,
    task_id: int,
    service: TaskService = Depends(get_task_service),
):
    """List the occurrences generated from a recurring task."""
    occurrences = await service.list_occurrences(task_id, user_id)
    return OccurrenceListResponse(
        occurrences=[TaskResponse.model_validate(o) for o in occurrences],
        count=len(occurrences),
    )
