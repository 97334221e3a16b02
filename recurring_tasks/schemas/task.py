"""Task schemas for the recurring task API."""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any


class TaskCreate(BaseModel):
    """Schema for creating a task, optionally recurring or as a subtask."""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field("", max_length=1000)
    priority: Optional[str] = Field(default="medium", pattern=r"^(high|medium|low)$")  # Priority level
    category: Optional[str] = Field("", max_length=100)
    links: Optional[List[str]] = Field(None)
    additional_details: Optional[str] = Field("")
    due_date: Optional[datetime] = Field(None)  # ISO datetime, UTC when no offset is given
    repeat_type: Optional[str] = Field(default="none")  # none, daily, weekly, monthly
    parent_id: Optional[int] = Field(None)  # Parent task for subtasks


class RecurrenceUpdate(BaseModel):
    """Schema for changing a task's due date and/or repeat type."""
    due_date: Optional[datetime] = Field(None)
    repeat_type: Optional[str] = Field(None)


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    id: int
    user_id: str
    parent_id: Optional[int] = None
    title: str
    description: Optional[str] = ""
    priority: Optional[str] = "medium"
    category: Optional[str] = ""
    links: Optional[List[str]] = []
    additional_details: Optional[str] = ""
    due_date: Optional[datetime] = None
    is_completed: bool
    repeat_type: str = "none"
    parent_recurring_id: Optional[int] = None  # Set on generated occurrences
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TaskCreateResponse(BaseModel):
    """A created task together with the occurrences generated for it."""
    task: TaskResponse
    occurrences: List[TaskResponse] = []


class RecurrenceUpdateResponse(BaseModel):
    """Result of a due date or repeat type change."""
    task: TaskResponse
    deleted_count: int
    generated_count: int
    message: str
    new_occurrences: List[Dict[str, Any]] = []


class OccurrenceListResponse(BaseModel):
    occurrences: List[TaskResponse]
    count: int
