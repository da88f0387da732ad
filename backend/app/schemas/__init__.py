"""Pydantic schemas for API payloads."""

from .auth import AuthResult, LoginRequest, RegisterRequest
from .base import CamelModel, Envelope
from .chats import ConversationCreate, ConversationRead, ParticipantRead
from .messages import (
    AttachmentRead,
    MarkReadRequest,
    MarkReadResult,
    MessageCreate,
    MessageRead,
    ReadEvent,
    ReadReceiptRead,
    UnreadCount,
)
from .users import PublicUser, UserPage, UserProfileUpdate, UserRead

__all__ = [
    "AuthResult",
    "LoginRequest",
    "RegisterRequest",
    "CamelModel",
    "Envelope",
    "ConversationCreate",
    "ConversationRead",
    "ParticipantRead",
    "AttachmentRead",
    "MarkReadRequest",
    "MarkReadResult",
    "MessageCreate",
    "MessageRead",
    "ReadEvent",
    "ReadReceiptRead",
    "UnreadCount",
    "PublicUser",
    "UserPage",
    "UserProfileUpdate",
    "UserRead",
]
