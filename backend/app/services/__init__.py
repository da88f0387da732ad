"""Application service helpers."""

from .conversations import ConversationStore, dedupe_key_for
from .messages import MessageStore
from .users import UserDirectory

__all__ = [
    "ConversationStore",
    "MessageStore",
    "UserDirectory",
    "dedupe_key_for",
]
