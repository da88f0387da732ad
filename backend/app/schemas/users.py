"""Schemas related to user profiles."""

from datetime import datetime

from pydantic import Field, constr

from app.schemas.base import CamelModel


class PublicUser(CamelModel):
    """Minimal public-facing user information."""

    id: int
    username: str
    name: str
    avatar: str | None = None
    bio: str | None = None
    is_online: bool = False
    last_seen: datetime | None = None


class UserRead(PublicUser):
    """Detailed representation of the current user profile."""

    email: str
    created_at: datetime
    updated_at: datetime


class UserProfileUpdate(CamelModel):
    """Payload for updating profile fields."""

    name: constr(strip_whitespace=True, min_length=1, max_length=50) | None = Field(
        default=None, description="New display name"
    )
    avatar: constr(max_length=512) | None = Field(default=None, description="Avatar URL")
    bio: constr(max_length=500) | None = Field(default=None, description="Short biography")


class UserPage(CamelModel):
    """Paginated list of users."""

    users: list[PublicUser] = Field(default_factory=list)
    page: int
    limit: int
    total: int
