"""Schemas related to conversations."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from app.models.enums import ConversationKind, ParticipantRole
from app.schemas.base import CamelModel
from app.schemas.messages import MessageRead


class ParticipantRead(CamelModel):
    user_id: int
    role: ParticipantRole
    joined_at: datetime


class ConversationRead(CamelModel):
    """Serialized conversation with its ordered participant list."""

    id: int
    type: ConversationKind
    name: str | None = None
    description: str | None = None
    avatar: str | None = None
    participants: list[ParticipantRead] = Field(default_factory=list)
    created_by: int
    is_active: bool = True
    last_message: MessageRead | None = None
    dedupe_key: str | None = None
    created_at: datetime
    updated_at: datetime


class ConversationCreate(CamelModel):
    """Payload for opening a direct chat or creating a group."""

    type: ConversationKind = Field(default=ConversationKind.DIRECT)
    participants: list[int | str] = Field(..., description="Other participant ids")
    name: str | None = Field(default=None, description="Required for group chats")
    description: str | None = Field(default=None, max_length=500)
    avatar: str | None = Field(default=None, max_length=512)
