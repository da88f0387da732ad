"""Account lookups and profile mutations."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.core.security import get_password_hash
from app.models import User
from app.models.chat import utcnow

logger = logging.getLogger(__name__)


class UserDirectory:
    """Thin query layer over the ``users`` table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_id(self, user_id: int) -> User | None:
        """Return the user when it exists and is still active."""

        user = self.db.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user

    def get(self, user_id: int) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username.strip())
        return self.db.execute(stmt).scalar_one_or_none()

    def email_exists(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def username_exists(self, username: str) -> bool:
        return self.find_by_username(username) is not None

    def existing_ids(self, user_ids: Iterable[int]) -> set[int]:
        """Return the subset of *user_ids* that resolve to active users."""

        ids = set(user_ids)
        if not ids:
            return set()
        stmt = select(User.id).where(User.id.in_(ids), User.is_active.is_(True))
        return set(self.db.execute(stmt).scalars().all())

    def create(self, *, username: str, email: str, password: str, name: str) -> User:
        if self.email_exists(email):
            raise ConflictError("User with this email already exists")
        if self.username_exists(username):
            raise ConflictError("Username is already taken")

        user = User(
            username=username.strip(),
            email=email.strip().lower(),
            name=name.strip(),
            hashed_password=get_password_hash(password),
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("User with this email or username already exists") from exc
        self.db.refresh(user)
        logger.info("Registered user %s", user.id)
        return user

    def set_online_status(self, user_id: int, online: bool) -> None:
        """Flip the presence flag; ``last_seen`` always moves forward."""

        self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_online=online, last_seen=utcnow())
        )
        self.db.commit()

    def update_profile(
        self,
        user: User,
        *,
        name: str | None = None,
        avatar: str | None = None,
        bio: str | None = None,
    ) -> User:
        values: dict[str, str] = {}
        if name is not None:
            values["name"] = name.strip()
        if avatar is not None:
            values["avatar"] = avatar
        if bio is not None:
            values["bio"] = bio
        if values:
            self.db.execute(update(User).where(User.id == user.id).values(**values))
            self.db.commit()
            self.db.refresh(user)
        return user

    def deactivate(self, user_id: int) -> None:
        """Soft delete an account."""

        self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_active=False, is_online=False, last_seen=utcnow())
        )
        self.db.commit()

    def list_online(self, limit: int = 100) -> list[User]:
        stmt = (
            select(User)
            .where(User.is_online.is_(True), User.is_active.is_(True))
            .order_by(User.name.asc(), User.id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_users(self, page: int = 1, limit: int = 20) -> tuple[list[User], int]:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        total = self.db.execute(
            select(func.count(User.id)).where(User.is_active.is_(True))
        ).scalar_one()
        stmt = (
            select(User)
            .where(User.is_active.is_(True))
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), int(total)

    def search(self, query: str, *, limit: int = 20, exclude_id: int | None = None) -> list[User]:
        term = query.strip()
        if not term:
            return []
        pattern = f"%{term}%"
        stmt = (
            select(User)
            .where(
                User.is_active.is_(True),
                or_(User.username.ilike(pattern), User.name.ilike(pattern), User.email.ilike(pattern)),
            )
            .order_by(User.username.asc())
            .limit(min(max(limit, 1), 50))
        )
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return list(self.db.execute(stmt).scalars().all())
