import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import and_, desc, func, select, update
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, get_current_user
from ..core.database import get_db
from ..models.folder import Folder
from ..models.task import Task, TaskLog
from ..schemas.folder import FolderCreate, FolderResponse, FolderTaskMove
from .tasks import get_owned_folder

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=List[FolderResponse])
def list_folders(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The user's folders with the number of tasks in each"""
    task_count = func.count(Task.id)
    rows = (
        db.query(Folder, task_count)
        .outerjoin(Task, Task.folder_id == Folder.id)
        .filter(Folder.user_id == current_user.user_id)
        .group_by(Folder.id)
        .order_by(desc(Folder.created_at), desc(Folder.id))
        .all()
    )
    return [
        FolderResponse.model_validate(folder).model_copy(update={"task_count": count})
        for folder, count in rows
    ]


@router.post("/", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
def create_folder(
    folder_in: FolderCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    folder = Folder(name=folder_in.name, color=folder_in.color, user_id=current_user.user_id)
    try:
        db.add(folder)
        db.commit()
        db.refresh(folder)
    except Exception:
        db.rollback()
        raise
    return folder


@router.post("/{folder_id}/tasks")
def move_tasks_to_folder(
    folder_id: int,
    payload: FolderTaskMove,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Move the user's tasks into a folder; tasks owned by others are skipped"""
    folder = get_owned_folder(db, folder_id, current_user.user_id)
    tasks = db.scalars(
        select(Task).where(and_(Task.id.in_(payload.task_ids), Task.user_id == current_user.user_id))
    ).all()

    try:
        for task in tasks:
            if task.folder_id != folder.id:
                task.folder_id = folder.id
                task.logs.append(TaskLog(message=f"Moved to folder {folder.name}"))
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {"message": f"{len(tasks)} tasks moved to folder", "moved": len(tasks)}


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_folder(
    folder_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a folder; its tasks stay, without a folder"""
    folder = get_owned_folder(db, folder_id, current_user.user_id)
    try:
        db.execute(update(Task).where(Task.folder_id == folder.id).values(folder_id=None))
        db.delete(folder)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted folder {folder_id} for user {current_user.user_id}")
