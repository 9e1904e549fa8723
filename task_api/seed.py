"""
Populate the database with demo users, folders and tasks.

Run with ``python -m task_api.seed``. Running it again leaves existing
rows alone and only adds what is missing.
"""
import logging
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .core.database import SessionLocal, init_db
from .core.security import get_password_hash
from .models.folder import Folder
from .models.task import Task, TaskLog, TaskPriority
from .models.user import User, UserRole

logger = logging.getLogger(__name__)

SEED_PASSWORD = "Password123!"
SEED_USERS = (
    ("Manager", "manager@example.com", UserRole.MANAGER),
    ("User One", "user1@example.com", UserRole.USER),
    ("User Two", "user2@example.com", UserRole.USER),
)
SEED_FOLDERS = (("Work", "#3b82f6"), ("Personal", "#10b981"))
TASK_COUNT = 50
FOLDERED_TASKS = 20
PRIORITIES = (TaskPriority.LOW, TaskPriority.MEDIUM, TaskPriority.HIGH)


def _upsert_user(db: Session, name: str, email: str, role: UserRole) -> User:
    email = email.lower()
    user = db.scalar(select(User).where(User.email == email))
    if user is None:
        user = User(name=name, email=email, hashed_password=get_password_hash(SEED_PASSWORD))
        db.add(user)
    user.role = role.value
    db.flush()
    return user


def _ensure_folders(db: Session, owner: User) -> List[Folder]:
    folders = []
    for name, color in SEED_FOLDERS:
        folder = db.scalar(select(Folder).where(Folder.user_id == owner.id, Folder.name == name))
        if folder is None:
            folder = Folder(name=name, color=color, user_id=owner.id)
            db.add(folder)
        folders.append(folder)
    db.flush()
    return folders


def seed(db: Session) -> Dict[str, int]:
    """Insert the demo data, returning how many users, folders and tasks exist for it"""
    users = {email: _upsert_user(db, name, email, role) for name, email, role in SEED_USERS}
    user1 = users["user1@example.com"]
    user2 = users["user2@example.com"]
    folders = _ensure_folders(db, user1)

    existing = set(db.scalars(
        select(Task.title).where(Task.user_id.in_([user1.id, user2.id]))
    ).all())

    created = 0
    for number in range(1, TASK_COUNT + 1):
        title = f"Seed task {number}"
        if title in existing:
            continue
        # user1 owns the first half so every foldered task has a folder of its own
        owner = user1 if number <= TASK_COUNT // 2 else user2
        task = Task(
            title=title,
            description=f"Demo task number {number}",
            priority=PRIORITIES[number % len(PRIORITIES)].value,
            user_id=owner.id,
        )
        if number <= FOLDERED_TASKS:
            task.folder_id = folders[number % len(folders)].id
        if number % 3 == 0:
            task.mark_completed()
        task.logs.append(TaskLog(message="Task created"))
        db.add(task)
        created += 1

    db.commit()
    logger.info(f"Seed created {created} tasks")
    return {"users": len(users), "folders": len(folders), "tasks": TASK_COUNT}


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    if not init_db():
        raise SystemExit("Database is not available")

    db = SessionLocal()
    try:
        seed(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    for _, email, role in SEED_USERS:
        logger.info(f"{role.value}: {email} / {SEED_PASSWORD}")


if __name__ == "__main__":
    main()
