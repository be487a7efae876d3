import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.errors import InvalidArgument, NotFound, Unauthenticated
from app.schemas import DataResponse
from app.users.models import User
from app.auth.schemas import UserCreate, UserLogin, UserUpdate, UserResponse
from app.auth.utils import (
    create_session_token,
    get_password_hash,
    get_session_user_id,
    verify_password,
)

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/users", tags=["Users"])


def _set_session_cookie(response: Response, user_id: int) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=create_session_token(user_id),
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
    )


@router.post("/register", response_model=DataResponse[UserResponse], status_code=status.HTTP_201_CREATED)
def register(user_in: UserCreate, db: Session = Depends(get_db)):
    """Create an account. Does not log the new user in."""
    if not user_in.email or not user_in.password or not user_in.name:
        raise InvalidArgument("Email, password, and name are required")

    existing = db.query(User).filter(User.email == user_in.email).first()
    if existing:
        raise InvalidArgument("User with this email already exists")

    user = User(
        email=user_in.email,
        name=user_in.name,
        password_hash=get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.id}")
    return {"data": user}


@router.post("/login", response_model=DataResponse[UserResponse])
def login(credentials: UserLogin, response: Response, db: Session = Depends(get_db)):
    if not credentials.email or not credentials.password:
        raise InvalidArgument("Email and password are required")

    user = db.query(User).filter(User.email == credentials.email).first()
    if not user or not verify_password(credentials.password, user.password_hash):
        raise Unauthenticated("Invalid email or password")

    _set_session_cookie(response, user.id)
    return {"data": user}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout():
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response


@router.get("/me", response_model=DataResponse[UserResponse])
def get_me(user_id: int = Depends(get_session_user_id), db: Session = Depends(get_db)):
    """
    Identity lookup used by every other service.

    The deck, study and sharing services forward the browser's cookie here and
    trust only a 200 response carrying ``data.id``.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    return {"data": user}


@router.put("/me", response_model=DataResponse[UserResponse])
def update_me(
    user_update: UserUpdate,
    user_id: int = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")

    if user_update.email is not None:
        taken = db.query(User).filter(User.email == user_update.email, User.id != user_id).first()
        if taken:
            raise InvalidArgument("Email is already taken")
        user.email = user_update.email

    if user_update.name is not None:
        user.name = user_update.name

    if user_update.password is not None:
        user.password_hash = get_password_hash(user_update.password)

    db.commit()
    db.refresh(user)
    return {"data": user}
