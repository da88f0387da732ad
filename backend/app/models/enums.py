from __future__ import annotations

from enum import Enum


class ConversationKind(str, Enum):
    """Kinds of conversations a user can take part in."""

    DIRECT = "direct"
    GROUP = "group"


class ParticipantRole(str, Enum):
    """Roles a participant can hold inside a conversation."""

    ADMIN = "admin"
    MEMBER = "member"


class AttachmentKind(str, Enum):
    """Media categories accepted for message attachments."""

    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"
    AUDIO = "audio"
