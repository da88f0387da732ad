"""In-process broadcast groups for realtime chat sessions."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Dict, Set

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

if TYPE_CHECKING:  # pragma: no cover - typing helpers only
    from .session import ChannelSession


logger = logging.getLogger(__name__)


def user_group(user_id: int) -> str:
    return f"user:{user_id}"


def chat_group(chat_id: int) -> str:
    return f"chat:{chat_id}"


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


class BroadcastHub:
    """Track live sessions, their owners and the groups they subscribe to.

    The table is per process and never persisted; a session that is gone
    simply stops receiving events.
    """

    def __init__(self) -> None:
        self._groups: Dict[str, Set[ChannelSession]] = defaultdict(set)
        self._subscriptions: Dict[ChannelSession, Set[str]] = defaultdict(set)
        self._users: Dict[int, Set[ChannelSession]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, session: ChannelSession) -> int:
        """Record a live session for its user and return that user's session count."""

        async with self._lock:
            sessions = self._users[session.user_id]
            sessions.add(session)
            return len(sessions)

    async def unregister(self, session: ChannelSession) -> int:
        """Forget *session* entirely and return how many sessions its user still has."""

        async with self._lock:
            self._drop_locked(session)
            sessions = self._users.get(session.user_id)
            if sessions is None:
                return 0
            sessions.discard(session)
            if not sessions:
                self._users.pop(session.user_id, None)
                return 0
            return len(sessions)

    async def join(self, group: str, session: ChannelSession) -> None:
        async with self._lock:
            self._groups[group].add(session)
            self._subscriptions[session].add(group)

    async def leave(self, group: str, session: ChannelSession) -> bool:
        async with self._lock:
            return self._leave_locked(group, session)

    def _leave_locked(self, group: str, session: ChannelSession) -> bool:
        members = self._groups.get(group)
        if not members or session not in members:
            return False
        members.discard(session)
        if not members:
            self._groups.pop(group, None)
        groups = self._subscriptions.get(session)
        if groups is not None:
            groups.discard(group)
            if not groups:
                self._subscriptions.pop(session, None)
        return True

    def _drop_locked(self, session: ChannelSession) -> set[str]:
        groups = set(self._subscriptions.pop(session, set()))
        for group in groups:
            members = self._groups.get(group)
            if members is None:
                continue
            members.discard(session)
            if not members:
                self._groups.pop(group, None)
        return groups

    async def drop(self, session: ChannelSession) -> set[str]:
        """Remove every subscription held by *session*."""

        async with self._lock:
            return self._drop_locked(session)

    async def broadcast(self, group: str, payload: dict[str, Any]) -> int:
        """Send *payload* to every live member of *group*; returns deliveries."""

        async with self._lock:
            targets = list(self._groups.get(group, ()))
        delivered = 0
        for session in targets:
            if await session.send(payload):
                delivered += 1
        return delivered

    async def close_group(self, group: str, payload: dict[str, Any] | None = None) -> int:
        """Force every member out of *group*, optionally notifying them first."""

        async with self._lock:
            targets = list(self._groups.get(group, ()))
            for session in targets:
                self._leave_locked(group, session)
        if payload is not None:
            for session in targets:
                await session.send(payload)
        if targets:
            logger.info("Closed group %s with %d subscribers", group, len(targets))
        return len(targets)

    def members(self, group: str) -> set[ChannelSession]:
        return set(self._groups.get(group, ()))

    def groups_for(self, session: ChannelSession) -> set[str]:
        return set(self._subscriptions.get(session, ()))

    def session_count(self, user_id: int) -> int:
        return len(self._users.get(user_id, ()))


broadcast_hub = BroadcastHub()
"""Singleton hub shared by HTTP routes and websocket sessions."""


def get_broadcast_hub() -> BroadcastHub:
    return broadcast_hub
