"""FastAPI dependencies for the API layer."""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError
from app.core.security import verify
from app.database import get_db
from app.models import User
from app.services import ConversationStore, MessageStore, UserDirectory

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the JWT token."""

    return get_user_from_token(token, db)


def get_user_from_token(token: str | None, db: Session) -> User:
    """Resolve an active user from a JWT token or raise ``AuthenticationError``."""

    identity = verify(token)
    user = UserDirectory(db).find_by_id(identity.user_id)
    if user is None:
        raise AuthenticationError("User not found or inactive")
    return user


def get_user_directory(db: Session = Depends(get_db)) -> UserDirectory:
    return UserDirectory(db)


def get_conversation_store(db: Session = Depends(get_db)) -> ConversationStore:
    return ConversationStore(db)


def get_message_store(db: Session = Depends(get_db)) -> MessageStore:
    return MessageStore(db)
