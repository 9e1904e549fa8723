"""
Page/limit pagination shared by list endpoints.
"""
import math
from typing import List, Tuple

from fastapi import Query
from sqlalchemy.orm import Query as SQLQuery

from .config import get_settings
from ..schemas.common import Pagination

settings = get_settings()


class PageParams:
    """Dependency parsing ?page= and ?limit="""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number, starting at 1"),
        limit: int = Query(
            settings.default_page_size,
            ge=1,
            le=settings.max_page_size,
            description="Items per page"
        ),
    ):
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def build_pagination(params: PageParams, total: int) -> Pagination:
    return Pagination(
        page=params.page,
        limit=params.limit,
        total=total,
        pages=math.ceil(total / params.limit),
        has_next=params.page * params.limit < total,
        has_prev=params.page > 1,
    )


def paginate(query: SQLQuery, params: PageParams) -> Tuple[List, Pagination]:
    """Run a query for one page, returning the items and the pagination block"""
    total = query.order_by(None).count()
    items = query.offset(params.skip).limit(params.limit).all()
    return items, build_pagination(params, total)
