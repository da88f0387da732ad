"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.api.serializers import serialize_user
from app.core.errors import AuthenticationError
from app.core.security import issue, verify_password
from app.database import get_db
from app.models import User
from app.schemas import AuthResult, Envelope, LoginRequest, RegisterRequest, UserRead
from app.services import UserDirectory

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/register", response_model=Envelope[AuthResult], status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)) -> Envelope[AuthResult]:
    """Register a new account and return a token for it."""

    user = UserDirectory(db).create(
        username=payload.username,
        email=payload.email,
        password=payload.password,
        name=payload.name,
    )
    return Envelope(
        message="User registered successfully",
        data=AuthResult(user=serialize_user(user), token=issue(user.id)),
    )


@router.post("/login", response_model=Envelope[AuthResult])
def login_user(credentials: LoginRequest, db: Session = Depends(get_db)) -> Envelope[AuthResult]:
    """Authenticate a user and return a JWT access token."""

    users = UserDirectory(db)
    user = users.find_by_email(credentials.email)
    if user is None or not verify_password(credentials.password, user.hashed_password):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    users.set_online_status(user.id, True)
    db.refresh(user)
    logger.info("User %s logged in", user.id)
    return Envelope(
        message="Login successful",
        data=AuthResult(user=serialize_user(user), token=issue(user.id)),
    )


@router.post("/logout", response_model=Envelope[None])
def logout_user(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Envelope[None]:
    UserDirectory(db).set_online_status(current_user.id, False)
    return Envelope(message="Logout successful", data=None)


@router.get("/me", response_model=Envelope[UserRead])
def read_current_user(current_user: User = Depends(get_current_user)) -> Envelope[UserRead]:
    return Envelope(data=serialize_user(current_user))


@router.post("/refresh", response_model=Envelope[AuthResult])
def refresh_access_token(current_user: User = Depends(get_current_user)) -> Envelope[AuthResult]:
    """Issue a fresh access token while the current one is still valid."""

    return Envelope(
        message="Token refreshed",
        data=AuthResult(user=serialize_user(current_user), token=issue(current_user.id)),
    )
