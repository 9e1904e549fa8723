from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, ensure_self_or_manager, get_current_user
from ..core.database import get_db
from ..core.query import parse_fields
from ..models.user import User
from ..schemas.user import UserOut

router = APIRouter()

USER_FIELDS = ("id", "name", "email", "role", "created_at")


@router.get("/{user_id}")
def get_user(
    user_id: int,
    fields: Optional[str] = Query(None, description="Comma separated fields to return"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Get a user's profile, optionally limited to some fields"""
    ensure_self_or_manager(current_user, user_id)

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    selected = parse_fields(fields, USER_FIELDS)
    return UserOut.model_validate(user).model_dump(mode="json", include=selected)
