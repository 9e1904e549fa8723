"""
Pydantic schemas for tasks.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.task import TaskStatus, TaskPriority

# Fields that may be requested through the ?fields= query parameter
TASK_FIELDS = (
    "id", "title", "description", "status", "priority", "is_completed",
    "user_id", "folder_id", "created_at", "updated_at", "due_date", "completed_at",
)

NON_NULLABLE_UPDATES = ("title", "status", "priority", "is_completed")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class TaskBase(BaseModel):
    """Base task schema"""
    title: str = Field(..., min_length=1, max_length=255, description="Task title")
    description: Optional[str] = Field(None, max_length=1000, description="Task description")
    priority: TaskPriority = Field(TaskPriority.MEDIUM, description="Task priority")
    due_date: Optional[datetime] = Field(None, description="Task due date")
    folder_id: Optional[int] = Field(None, gt=0, description="Folder holding the task")

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class TaskCreate(TaskBase):
    """Schema for creating a task"""
    is_completed: bool = Field(False, description="Create the task already completed")


def _check_status_agreement(status: Optional[TaskStatus], is_completed: Optional[bool]):
    if status is None or is_completed is None:
        return
    if is_completed != (status == TaskStatus.COMPLETED):
        raise ValueError("status and is_completed disagree")


class TaskUpdate(BaseModel):
    """Schema for updating a task; only fields that are sent are applied"""
    title: Optional[str] = Field(None, min_length=1, max_length=255, description="Task title")
    description: Optional[str] = Field(None, max_length=1000, description="Task description")
    status: Optional[TaskStatus] = Field(None, description="Task status")
    priority: Optional[TaskPriority] = Field(None, description="Task priority")
    is_completed: Optional[bool] = Field(None, description="Shortcut for status=completed")
    due_date: Optional[datetime] = Field(None, description="Task due date")
    folder_id: Optional[int] = Field(None, gt=0, description="Folder holding the task, null to detach")

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @model_validator(mode="after")
    def check_consistency(self):
        for name in NON_NULLABLE_UPDATES:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        _check_status_agreement(self.status, self.is_completed)
        return self


class TaskResponse(BaseModel):
    """Schema for task response"""
    id: int = Field(..., description="Task ID")
    title: str
    description: Optional[str] = None
    status: TaskStatus = Field(..., description="Task status")
    priority: TaskPriority
    is_completed: bool
    user_id: int = Field(..., description="User ID who owns the task")
    folder_id: Optional[int] = None
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Task update timestamp")
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = Field(None, description="Task completion timestamp")

    model_config = ConfigDict(from_attributes=True)


class TaskIds(BaseModel):
    task_ids: List[int] = Field(..., min_length=1, description="IDs of the tasks to act on")

    @field_validator("task_ids")
    @classmethod
    def positive_unique(cls, value: List[int]) -> List[int]:
        if any(task_id < 1 for task_id in value):
            raise ValueError("Task IDs must be positive integers")
        return list(dict.fromkeys(value))


class TaskBulkCreate(BaseModel):
    # Items are validated one by one so failures can be reported by index
    tasks: List[Dict[str, Any]] = Field(..., min_length=1)


class TaskBulkChanges(BaseModel):
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    is_completed: Optional[bool] = None
    folder_id: Optional[int] = Field(None, gt=0)

    @model_validator(mode="after")
    def check_changes(self):
        if not self.model_fields_set:
            raise ValueError("updates must contain at least one field")
        for name in ("status", "priority", "is_completed"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        _check_status_agreement(self.status, self.is_completed)
        return self


class TaskBulkUpdate(TaskIds):
    updates: TaskBulkChanges


class TaskSummary(BaseModel):
    """Schema for task summary statistics"""
    total_tasks: int = Field(..., description="Total number of tasks")
    pending_tasks: int = Field(..., description="Number of pending tasks")
    in_progress_tasks: int = Field(..., description="Number of in-progress tasks")
    completed_tasks: int = Field(..., description="Number of completed tasks")
    cancelled_tasks: int = Field(..., description="Number of cancelled tasks")
    overdue_tasks: int = Field(..., description="Number of overdue tasks")


class TaskLogResponse(BaseModel):
    id: int
    task_id: int
    message: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
