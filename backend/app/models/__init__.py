"""Database models package."""

from .base import Base
from .chat import (
    Conversation,
    ConversationParticipant,
    Message,
    MessageReceipt,
    User,
)
from .enums import AttachmentKind, ConversationKind, ParticipantRole

__all__ = [
    "Base",
    "User",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "MessageReceipt",
    "AttachmentKind",
    "ConversationKind",
    "ParticipantRole",
]
