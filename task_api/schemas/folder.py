from datetime import datetime
from typing import List
from pydantic import BaseModel, ConfigDict, Field

from ..models.folder import DEFAULT_FOLDER_COLOR


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(DEFAULT_FOLDER_COLOR, pattern=r"^#[0-9a-fA-F]{6}$")


class FolderResponse(BaseModel):
    id: int
    name: str
    color: str
    user_id: int
    created_at: datetime
    task_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class FolderTaskMove(BaseModel):
    task_ids: List[int] = Field(..., min_length=1)
