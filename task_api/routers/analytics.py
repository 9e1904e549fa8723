import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import case, desc, func, or_
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, ensure_self_or_manager, get_current_user, require_role
from ..core.database import get_db
from ..core.pagination import PageParams, paginate
from ..core.query import convert_datetime_to_utc
from ..models.task import Task, TaskStatus
from ..models.user import User, UserRole
from ..schemas.analytics import (
    SearchResponse, SearchResult, TaskStats, UserAnalytics, UserWithStats, WeeklyProgress
)
from ..schemas.common import Page
from ..schemas.task import TaskResponse

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_TASKS = 10
PROGRESS_DAYS = 28
PENDING_PREVIEW = 5


def week_start(moment: datetime):
    """Sunday on or before the given moment, in UTC"""
    day = convert_datetime_to_utc(moment).date()
    return day - timedelta(days=(day.weekday() + 1) % 7)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@router.get("/users/{user_id}", response_model=UserAnalytics)
def get_user_analytics(
    user_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Productivity overview for one user"""
    ensure_self_or_manager(current_user, user_id)
    if not db.get(User, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    completed_flag = Task.status == TaskStatus.COMPLETED.value
    completed, total = db.query(
        func.coalesce(func.sum(case((completed_flag, 1), else_=0)), 0),
        func.count(Task.id),
    ).filter(Task.user_id == user_id).one()

    recent = (
        db.query(Task)
        .filter(Task.user_id == user_id)
        .order_by(desc(Task.created_at), desc(Task.id))
        .limit(RECENT_TASKS)
        .all()
    )

    since = datetime.now(timezone.utc) - timedelta(days=PROGRESS_DAYS)
    created = db.query(Task.created_at).filter(
        Task.user_id == user_id, Task.created_at >= since
    ).all()
    weeks = Counter(week_start(row.created_at) for row in created)

    return UserAnalytics(
        user_id=user_id,
        task_stats=TaskStats(completed=completed, pending=total - completed),
        recent_tasks=[TaskResponse.model_validate(task) for task in recent],
        weekly_progress=[
            WeeklyProgress(week_start=start, count=count) for start, count in sorted(weeks.items())
        ],
    )


@router.get("/users", response_model=Page)
def get_users_with_task_stats(
    pagination: PageParams = Depends(),
    current_user: CurrentUser = Depends(require_role(UserRole.MANAGER.value)),
    db: Session = Depends(get_db)
):
    """All users with task counts and a preview of their open tasks (managers only)"""
    query = db.query(User).order_by(desc(User.created_at), desc(User.id))
    users, page_info = paginate(query, pagination)

    user_ids = [user.id for user in users]
    counts = dict(
        db.query(Task.user_id, func.count(Task.id))
        .filter(Task.user_id.in_(user_ids))
        .group_by(Task.user_id)
        .all()
    ) if user_ids else {}

    data = []
    for user in users:
        pending_ids = [
            row.id for row in db.query(Task.id)
            .filter(Task.user_id == user.id, Task.status != TaskStatus.COMPLETED.value)
            .order_by(Task.id)
            .limit(PENDING_PREVIEW)
        ]
        data.append(UserWithStats(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
            task_count=counts.get(user.id, 0),
            pending_task_ids=pending_ids,
        ).model_dump(mode="json"))
    return Page(data=data, pagination=page_info)


@router.get("/search", response_model=SearchResponse)
def search_tasks(
    q: str = Query("", max_length=100, description="Text to find in task titles or owner names"),
    limit: int = Query(20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Ranked search over task titles and owner names"""
    term = q.strip()
    if len(term) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Search query must be at least 2 characters long"
        )

    escaped = escape_like(term)
    contains = f"%{escaped}%"
    rank = case(
        (Task.title.ilike(escaped, escape="\\"), 1),
        (Task.title.ilike(f"{escaped}%", escape="\\"), 2),
        (Task.title.ilike(contains, escape="\\"), 3),
        else_=4,
    )

    query = (
        db.query(Task, User.name)
        .join(User, Task.user_id == User.id)
        .filter(or_(Task.title.ilike(contains, escape="\\"), User.name.ilike(contains, escape="\\")))
    )
    if not current_user.is_manager:
        query = query.filter(Task.user_id == current_user.user_id)

    rows = query.order_by(rank, desc(Task.created_at), desc(Task.id)).limit(limit).all()
    results: List[SearchResult] = [
        SearchResult(
            id=task.id,
            title=task.title,
            is_completed=task.is_completed,
            priority=task.priority,
            created_at=task.created_at,
            user_id=task.user_id,
            user_name=user_name,
        )
        for task, user_name in rows
    ]
    logger.debug(f"Search {term!r} returned {len(results)} results")
    return SearchResponse(results=results, query=term, count=len(results))
