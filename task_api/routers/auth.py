import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.auth import CurrentUser, get_current_user
from ..core.database import get_db
from ..core.events import event_publisher
from ..core.google import google_verifier
from ..core.security import (
    clear_auth_cookie, get_password_hash, issue_user_token, set_auth_cookie, verify_password
)
from ..models.task import Task, TaskLog, TaskPriority
from ..models.user import User, UserRole
from ..schemas.common import Message
from ..schemas.user import (
    AuthResponse, GoogleLogin, RegisterResponse, UserCreate, UserLogin, UserOut
)

logger = logging.getLogger(__name__)

router = APIRouter()

WELCOME_TASKS = (
    ("Complete your profile", TaskPriority.HIGH),
    ("Add your first task", TaskPriority.MEDIUM),
    ("Explore the app features", TaskPriority.LOW),
)


def _auth_response(user: User, response: Response) -> AuthResponse:
    token, csrf_token = issue_user_token(user)
    set_auth_cookie(response, token)
    return AuthResponse(
        access_token=token,
        csrf_token=csrf_token,
        user=UserOut.model_validate(user),
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(user_in: UserCreate, response: Response, db: Session = Depends(get_db)):
    """Create an account together with a set of starter tasks"""
    existing = db.scalar(select(User).where(User.email == user_in.email))
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    try:
        user = User(
            name=user_in.name,
            email=user_in.email,
            hashed_password=get_password_hash(user_in.password),
            role=UserRole.USER.value,
        )
        db.add(user)
        db.flush()

        for title, priority in WELCOME_TASKS:
            task = Task(title=title, priority=priority.value, user_id=user.id)
            task.logs.append(TaskLog(message="Welcome task created"))
            db.add(task)

        db.commit()
        db.refresh(user)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Registered user {user.id} with {len(WELCOME_TASKS)} welcome tasks")
    event_publisher.publish_event("user.registered", {"user_id": user.id, "email": user.email})

    token, csrf_token = issue_user_token(user)
    set_auth_cookie(response, token)
    return RegisterResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        tasks_created=len(WELCOME_TASKS),
        access_token=token,
        csrf_token=csrf_token,
    )


@router.post("/login", response_model=AuthResponse)
def login(credentials: UserLogin, response: Response, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.email == credentials.email))
    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Failed login for {credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _auth_response(user, response)


@router.post("/google", response_model=AuthResponse)
async def google_login(payload: GoogleLogin, response: Response, db: Session = Depends(get_db)):
    """Sign in with a Google ID token, creating the account on first use"""
    claims = await google_verifier.verify(payload.id_token)
    if not claims:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Google token")

    google_id = claims.get("sub")
    email = claims["email"].lower()

    user = None
    if google_id:
        user = db.scalar(select(User).where(User.google_id == google_id))
    if not user:
        user = db.scalar(select(User).where(User.email == email))
        if user and google_id and user.google_id and user.google_id != google_id:
            logger.warning(f"Google account {google_id} does not match the one linked to user {user.id}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email is linked to another Google account"
            )
        if user and google_id and not user.google_id:
            user.google_id = google_id
            db.commit()
    if not user:
        name = (claims.get("name") or "Google User").strip()[:30]
        if len(name) < 3:
            name = "Google User"
        user = User(name=name, email=email, google_id=google_id, role=UserRole.USER.value)
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Created user {user.id} from Google sign-in")
        event_publisher.publish_event("user.registered", {"user_id": user.id, "email": user.email})

    return _auth_response(user, response)


@router.post("/logout", response_model=Message)
def logout(response: Response, current_user: CurrentUser = Depends(get_current_user)):
    clear_auth_cookie(response)
    logger.info(f"User {current_user.user_id} logged off")
    return {"message": "Logoff successful"}


@router.get("/me", response_model=UserOut)
def me(current_user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.get(User, current_user.user_id)
