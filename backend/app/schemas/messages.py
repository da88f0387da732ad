"""Schemas related to chat messages."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from app.models.enums import AttachmentKind
from app.schemas.base import CamelModel


class AttachmentRead(CamelModel):
    """Attachment metadata; the file itself lives in external storage."""

    type: AttachmentKind
    url: str | None = None
    name: str | None = None
    size: int | None = None


class ReadReceiptRead(CamelModel):
    user_id: int
    read_at: datetime


class MessageRead(CamelModel):
    """Serialized representation of a chat message."""

    id: int
    chat_id: int
    sender_id: int
    content: str | None = None
    attachment: AttachmentRead | None = None
    read_by: list[ReadReceiptRead] = Field(default_factory=list)
    deleted: bool = False
    created_at: datetime
    updated_at: datetime


class MessageCreate(CamelModel):
    """Payload for sending a message over HTTP.

    Content and attachment are checked by the message store so HTTP and
    realtime clients receive identical field errors.
    """

    chat_id: Any = Field(..., description="Target conversation")
    content: Any = Field(default=None, description="Text body")
    attachment: Any = Field(default=None, description="Attachment metadata object")


class MarkReadRequest(CamelModel):
    up_to: int | None = Field(default=None, description="Mark messages up to and including this id")


class MarkReadResult(CamelModel):
    modified: int


class UnreadCount(CamelModel):
    count: int


class ReadEvent(CamelModel):
    """Broadcast after a participant marks messages as read."""

    chat_id: int
    user_id: int
    up_to: int | None = None
    modified: int
