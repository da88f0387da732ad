"""Per-connection realtime session state."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from fastapi.websockets import WebSocket

from .hub import safe_send_json


class SessionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.CONNECTING: {SessionState.AUTHENTICATED, SessionState.CLOSED},
    SessionState.AUTHENTICATED: {SessionState.ACTIVE, SessionState.CLOSED},
    SessionState.ACTIVE: {SessionState.CLOSED},
    SessionState.CLOSED: set(),
}


class SessionStateError(RuntimeError):
    """Raised on an illegal session state transition."""


class ChannelSession:
    """One websocket connection bound to at most one user identity."""

    __slots__ = ("websocket", "session_id", "user_id", "state")

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.session_id = uuid.uuid4().hex
        self.user_id: int | None = None
        self.state = SessionState.CONNECTING

    def __repr__(self) -> str:
        return f"ChannelSession(id={self.session_id!r}, user_id={self.user_id!r}, state={self.state.value!r})"

    def _transition(self, target: SessionState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise SessionStateError(f"Cannot move session from {self.state.value} to {target.value}")
        self.state = target

    def authenticate(self, user_id: int) -> None:
        self._transition(SessionState.AUTHENTICATED)
        self.user_id = user_id

    def activate(self) -> None:
        self._transition(SessionState.ACTIVE)

    def close(self) -> None:
        if self.state is not SessionState.CLOSED:
            self._transition(SessionState.CLOSED)

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    async def send(self, payload: dict[str, Any]) -> bool:
        if self.state is SessionState.CLOSED:
            return False
        return await safe_send_json(self.websocket, payload)
