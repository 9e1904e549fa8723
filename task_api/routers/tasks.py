import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy import and_, asc, case, desc, func, or_, select
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, get_current_user, require_role
from ..core.config import get_settings
from ..core.database import get_db
from ..core.events import event_publisher
from ..core.pagination import PageParams, paginate
from ..core.query import convert_datetime_to_utc, parse_date_range, parse_fields
from ..models.folder import Folder
from ..models.task import Task, TaskLog, TaskPriority, TaskStatus
from ..models.user import User, UserRole
from ..schemas.common import Page
from ..schemas.task import (
    TASK_FIELDS, TaskBulkCreate, TaskBulkUpdate, TaskCreate, TaskIds, TaskLogResponse,
    TaskResponse, TaskSummary, TaskUpdate
)

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

PRIORITY_RANK = case(
    {TaskPriority.LOW.value: 1, TaskPriority.MEDIUM.value: 2, TaskPriority.HIGH.value: 3},
    value=Task.priority,
    else_=0,
)

SORT_COLUMNS = {
    "created_at": Task.created_at,
    "updated_at": Task.updated_at,
    "due_date": Task.due_date,
    "title": Task.title,
    "priority": PRIORITY_RANK,
    "status": Task.status,
}


def serialize_task(task: Task, fields=None) -> Dict[str, Any]:
    return TaskResponse.model_validate(task).model_dump(mode="json", include=fields)


def get_owned_task(db: Session, task_id: int, user_id: int) -> Task:
    task = db.scalar(select(Task).where(and_(Task.id == task_id, Task.user_id == user_id)))
    if not task:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found"
        )
    return task


def get_owned_folder(db: Session, folder_id: int, user_id: int) -> Folder:
    folder = db.scalar(
        select(Folder).where(and_(Folder.id == folder_id, Folder.user_id == user_id))
    )
    if not folder:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Folder not found"
        )
    return folder


def resolve_status(task: Task, changes: Dict[str, Any]) -> Optional[str]:
    """Work out the status implied by an update, or None if it does not touch status"""
    if changes.get("status") is not None:
        return TaskStatus(changes["status"]).value
    if changes.get("is_completed") is not None:
        if changes["is_completed"]:
            return TaskStatus.COMPLETED.value
        if task.is_completed:
            return TaskStatus.PENDING.value
    return None


def apply_task_changes(task: Task, changes: Dict[str, Any], folder: Optional[Folder] = None):
    """Apply validated update fields to a task and record what happened"""
    new_status = resolve_status(task, changes)
    if new_status is not None:
        previous = task.status
        if task.set_status(new_status):
            task.logs.append(TaskLog(message=f"Status changed from {previous} to {new_status}"))

    if "folder_id" in changes:
        if changes["folder_id"] is None:
            if task.folder_id is not None:
                task.logs.append(TaskLog(message="Removed from folder"))
            task.folder_id = None
        elif folder is not None and task.folder_id != folder.id:
            task.folder_id = folder.id
            task.logs.append(TaskLog(message=f"Moved to folder {folder.name}"))

    for field in ("title", "description", "due_date"):
        if field in changes:
            value = changes[field]
            if field == "due_date":
                value = convert_datetime_to_utc(value)
            setattr(task, field, value)

    if "priority" in changes:
        task.priority = TaskPriority(changes["priority"]).value

    task.updated_at = datetime.now(timezone.utc)


def build_task(task_data: TaskCreate, user_id: int) -> Task:
    task = Task(
        title=task_data.title,
        description=task_data.description,
        priority=task_data.priority.value,
        due_date=convert_datetime_to_utc(task_data.due_date),
        folder_id=task_data.folder_id,
        user_id=user_id,
    )
    if task_data.is_completed:
        task.mark_completed()
    task.logs.append(TaskLog(message="Task created"))
    return task


@router.post("/", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new task for the authenticated user"""
    if task_data.folder_id is not None:
        get_owned_folder(db, task_data.folder_id, current_user.user_id)

    db_task = build_task(task_data, current_user.user_id)
    try:
        db.add(db_task)
        db.commit()
        db.refresh(db_task)
    except Exception:
        db.rollback()
        raise

    event_publisher.publish_event("task.created", {
        "task_id": db_task.id,
        "user_email": current_user.email,
        "task": db_task.to_dict(),
    })
    return db_task


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def bulk_create_tasks(
    payload: TaskBulkCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create many tasks at once; nothing is written if any item is invalid"""
    if len(payload.tasks) > settings.max_bulk_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot create more than {settings.max_bulk_size} tasks at once"
        )

    validation_errors = []
    valid_tasks: List[TaskCreate] = []
    for index, item in enumerate(payload.tasks):
        try:
            valid_tasks.append(TaskCreate.model_validate(item))
        except ValidationError as e:
            validation_errors.append({
                "index": index,
                "errors": e.errors(include_url=False, include_context=False, include_input=False),
            })

    if validation_errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "Some tasks failed validation",
                "validation_errors": validation_errors,
                "valid_tasks_count": len(valid_tasks),
            }
        )

    for folder_id in {t.folder_id for t in valid_tasks if t.folder_id is not None}:
        get_owned_folder(db, folder_id, current_user.user_id)

    try:
        db.add_all([build_task(t, current_user.user_id) for t in valid_tasks])
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Bulk created {len(valid_tasks)} tasks for user {current_user.user_id}")
    return {
        "message": "Bulk task creation successful",
        "tasks_created": len(valid_tasks),
        "total_requested": len(payload.tasks),
    }


@router.patch("/bulk")
def bulk_update_tasks(
    payload: TaskBulkUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Apply the same changes to several tasks in one transaction"""
    tasks = db.scalars(
        select(Task).where(and_(Task.id.in_(payload.task_ids), Task.user_id == current_user.user_id))
    ).all()
    if len(tasks) != len(payload.task_ids):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Some tasks not found or unauthorized"
        )

    changes = payload.updates.model_dump(exclude_unset=True)
    folder = None
    if changes.get("folder_id") is not None:
        folder = get_owned_folder(db, changes["folder_id"], current_user.user_id)

    try:
        for task in tasks:
            apply_task_changes(task, changes, folder)
            task.logs.append(TaskLog(message="Updated in bulk"))
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {"message": f"{len(tasks)} tasks updated successfully", "updated": len(tasks)}


@router.delete("/bulk")
def bulk_delete_tasks(
    payload: TaskIds,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete several tasks; IDs the user does not own are skipped"""
    tasks = db.scalars(
        select(Task).where(and_(Task.id.in_(payload.task_ids), Task.user_id == current_user.user_id))
    ).all()
    try:
        for task in tasks:
            db.delete(task)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {"message": f"{len(tasks)} tasks deleted successfully", "deleted": len(tasks)}


@router.get("/", response_model=Page)
def get_tasks(
    pagination: PageParams = Depends(),
    status_filter: Optional[TaskStatus] = Query(None, alias="status", description="Filter by status"),
    completed: Optional[bool] = Query(None, description="Filter by completion"),
    priority: Optional[TaskPriority] = Query(None, description="Filter by priority"),
    folder_id: Optional[int] = Query(None, ge=1, description="Filter by folder"),
    search: Optional[str] = Query(None, min_length=1, max_length=100, description="Search in title and description"),
    date_range: Optional[str] = Query(None, description="start,end on created_at (ISO dates)"),
    sort_by: str = Query("created_at", pattern="^(created_at|updated_at|due_date|title|priority|status)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    fields: Optional[str] = Query(None, description="Comma separated fields to return"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get tasks for the authenticated user with filtering and pagination"""
    query = db.query(Task).filter(Task.user_id == current_user.user_id)

    if status_filter:
        query = query.filter(Task.status == status_filter.value)

    if completed is not None:
        if completed:
            query = query.filter(Task.status == TaskStatus.COMPLETED.value)
        else:
            query = query.filter(Task.status != TaskStatus.COMPLETED.value)

    if priority:
        query = query.filter(Task.priority == priority.value)

    if folder_id is not None:
        query = query.filter(Task.folder_id == folder_id)

    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Task.title.ilike(search_term),
                Task.description.ilike(search_term)
            )
        )

    created_between = parse_date_range(date_range)
    if created_between:
        start, end = created_between
        query = query.filter(Task.created_at >= start, Task.created_at < end)

    sort_column = SORT_COLUMNS[sort_by]
    direction = desc if sort_order == "desc" else asc
    query = query.order_by(direction(sort_column), direction(Task.id))

    tasks, page_info = paginate(query, pagination)
    selected = parse_fields(fields, TASK_FIELDS)
    return Page(data=[serialize_task(task, selected) for task in tasks], pagination=page_info)


@router.get("/all", response_model=Page)
def get_all_tasks(
    pagination: PageParams = Depends(),
    current_user: CurrentUser = Depends(require_role(UserRole.MANAGER.value)),
    db: Session = Depends(get_db)
):
    """Tasks of every user, newest first (managers only)"""
    query = db.query(Task, User).join(User, Task.user_id == User.id).order_by(
        desc(Task.created_at), desc(Task.id)
    )
    rows, page_info = paginate(query, pagination)

    data = []
    for task, owner in rows:
        item = serialize_task(task)
        item["user"] = {"id": owner.id, "name": owner.name, "email": owner.email}
        data.append(item)
    return Page(data=data, pagination=page_info)


@router.get("/summary", response_model=TaskSummary)
def get_task_summary(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Counts of the user's tasks by status"""
    counts = dict(
        db.query(Task.status, func.count(Task.id))
        .filter(Task.user_id == current_user.user_id)
        .group_by(Task.status)
        .all()
    )
    overdue = db.query(func.count(Task.id)).filter(
        Task.user_id == current_user.user_id,
        Task.due_date.isnot(None),
        Task.due_date < datetime.now(timezone.utc),
        Task.status.notin_([TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value]),
    ).scalar()

    return TaskSummary(
        total_tasks=sum(counts.values()),
        pending_tasks=counts.get(TaskStatus.PENDING.value, 0),
        in_progress_tasks=counts.get(TaskStatus.IN_PROGRESS.value, 0),
        completed_tasks=counts.get(TaskStatus.COMPLETED.value, 0),
        cancelled_tasks=counts.get(TaskStatus.CANCELLED.value, 0),
        overdue_tasks=overdue or 0,
    )


@router.get("/{task_id}")
def get_task(
    task_id: int,
    fields: Optional[str] = Query(None, description="Comma separated fields to return"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Get a specific task by ID"""
    task = get_owned_task(db, task_id, current_user.user_id)
    return serialize_task(task, parse_fields(fields, TASK_FIELDS))


@router.api_route("/{task_id}", methods=["PUT", "PATCH"], response_model=TaskResponse)
def update_task(
    task_id: int,
    task_update: TaskUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update a task; only the fields present in the body change"""
    task = get_owned_task(db, task_id, current_user.user_id)
    changes = task_update.model_dump(exclude_unset=True)

    folder = None
    if changes.get("folder_id") is not None:
        folder = get_owned_folder(db, changes["folder_id"], current_user.user_id)

    try:
        apply_task_changes(task, changes, folder)
        db.commit()
        db.refresh(task)
    except Exception:
        db.rollback()
        raise
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a task"""
    task = get_owned_task(db, task_id, current_user.user_id)
    try:
        db.delete(task)
        db.commit()
    except Exception:
        db.rollback()
        raise

    event_publisher.publish_event("task.deleted", {"task_id": task_id, "user_id": current_user.user_id})


@router.get("/{task_id}/logs", response_model=List[TaskLogResponse])
def get_task_logs(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Activity history of a task, oldest first"""
    task = get_owned_task(db, task_id, current_user.user_id)
    return task.logs
