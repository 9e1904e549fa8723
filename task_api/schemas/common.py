"""
Shared response schemas.
"""
from typing import Any, Dict, List
from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """Pagination metadata for list endpoints"""
    page: int = Field(..., description="Current page (1-based)")
    limit: int = Field(..., description="Page size")
    total: int = Field(..., description="Total number of matching items")
    pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether a following page exists")
    has_prev: bool = Field(..., description="Whether a previous page exists")


class Page(BaseModel):
    """Paginated list of serialized items"""
    data: List[Dict[str, Any]]
    pagination: Pagination


class Message(BaseModel):
    message: str
