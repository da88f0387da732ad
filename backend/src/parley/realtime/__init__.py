"""Realtime helpers for websocket chat sessions."""

from .commands import (  # noqa: F401
    CommandRouter,
    close_chat,
    publish_chat_created,
    publish_message,
    publish_read,
)
from .hub import BroadcastHub, broadcast_hub, chat_group, get_broadcast_hub, safe_send_json, user_group  # noqa: F401
from .session import ChannelSession, SessionState, SessionStateError  # noqa: F401

__all__ = [
    "BroadcastHub",
    "broadcast_hub",
    "get_broadcast_hub",
    "chat_group",
    "user_group",
    "safe_send_json",
    "ChannelSession",
    "SessionState",
    "SessionStateError",
    "CommandRouter",
    "close_chat",
    "publish_chat_created",
    "publish_message",
    "publish_read",
]
