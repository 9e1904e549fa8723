"""
Pydantic schemas for analytics endpoints.
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from .task import TaskResponse


class TaskStats(BaseModel):
    completed: int = 0
    pending: int = 0


class WeeklyProgress(BaseModel):
    week_start: date = Field(..., description="Sunday starting the week")
    count: int


class UserAnalytics(BaseModel):
    user_id: int
    task_stats: TaskStats
    recent_tasks: List[TaskResponse]
    weekly_progress: List[WeeklyProgress]


class UserWithStats(BaseModel):
    id: int
    name: str
    email: str
    role: str
    created_at: Optional[datetime] = None
    task_count: int
    pending_task_ids: List[int]


class SearchResult(BaseModel):
    id: int
    title: str
    is_completed: bool
    priority: str
    created_at: datetime
    user_id: int
    user_name: str


class SearchResponse(BaseModel):
    results: List[SearchResult]
    query: str
    count: int
