"""Database models for Task API."""
from .user import User, UserRole
from .folder import Folder
from .task import Task, TaskLog, TaskStatus, TaskPriority

__all__ = ["User", "UserRole", "Folder", "Task", "TaskLog", "TaskStatus", "TaskPriority"]
