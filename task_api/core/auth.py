"""
Authentication dependencies for Task API.
Accepts a JWT either as a Bearer token or in the auth cookie; cookie
requests that change state must echo the CSRF token from the JWT.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db
from .security import decode_token
from ..models.user import User, UserRole

# Configure logging
logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(
    scheme_name="Bearer Token",
    description="JWT issued by /auth/login",
    auto_error=False,
)

settings = get_settings()

CSRF_PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE", "CONNECT"}


class CurrentUser:
    """Represents the current authenticated user."""

    def __init__(self, user_id: int, email: str, name: str, role: str,
                 csrf_token: Optional[str] = None, via_cookie: bool = False):
        self.user_id = user_id
        self.email = email
        self.name = name
        self.role = role
        self.csrf_token = csrf_token
        self.via_cookie = via_cookie

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER.value

    def __str__(self):
        return f"User(id={self.user_id}, email={self.email})"

    def __repr__(self):
        return self.__str__()

    @classmethod
    def from_user(cls, user: User, payload: dict, via_cookie: bool) -> "CurrentUser":
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            csrf_token=payload.get("csrf"),
            via_cookie=via_cookie,
        )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """
    Dependency to get current authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, invalid, fails the
        CSRF check or belongs to a user that no longer exists
    """
    via_cookie = False
    if credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(settings.cookie_name)
        via_cookie = True

    if not token:
        raise _unauthorized("Not authenticated")

    payload = decode_token(token)

    if via_cookie and request.method in CSRF_PROTECTED_METHODS:
        sent = request.headers.get(settings.csrf_header)
        if not sent or sent != payload.get("csrf"):
            logger.warning(f"CSRF check failed for {request.method} {request.url.path}")
            raise _unauthorized("Unauthorized")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid or expired token")

    user = db.get(User, user_id)
    if not user:
        logger.warning(f"Token for unknown user {user_id}")
        raise _unauthorized("User not found")

    current_user = CurrentUser.from_user(user, payload, via_cookie)
    logger.debug(f"Authenticated user: {current_user}")
    return current_user


def require_role(*roles: str):
    """Dependency factory restricting a route to the given roles"""
    async def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return checker


def ensure_self_or_manager(current_user: CurrentUser, user_id: int) -> None:
    if current_user.user_id != user_id and not current_user.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
