"""WebSocket endpoint for real-time chat communication."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from parley.realtime import (
    ChannelSession,
    CommandRouter,
    get_broadcast_hub,
    safe_send_json,
    user_group,
)
from parley.realtime import protocol

from app.api.deps import get_user_from_token
from app.config import get_settings
from app.core.errors import AuthenticationError
from app.database import get_db_session
from app.services import UserDirectory

router = APIRouter(tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

hub = get_broadcast_hub()
commands = CommandRouter(hub)

T = TypeVar("T")

BEARER_SUBPROTOCOL = "bearer"


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver* while sending keepalive pings when idle."""

    ping_payload = ping_payload or protocol.PING_FRAME
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            should_ping = False
            if interval <= 0:
                should_ping = True
            else:
                if now - last_activity >= interval and (
                    last_ping_sent is None or now - last_ping_sent >= interval
                ):
                    should_ping = True

            if should_ping:
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


def _extract_token(websocket: WebSocket) -> tuple[str | None, str | None]:
    """Return ``(token, subprotocol)`` from header, subprotocol pair or query string."""

    auth_header = websocket.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.removeprefix("Bearer ").strip()
        if token:
            return token, None

    offered = [
        item.strip()
        for item in websocket.headers.get("sec-websocket-protocol", "").split(",")
        if item.strip()
    ]
    if len(offered) >= 2 and offered[0].lower() == BEARER_SUBPROTOCOL:
        return offered[1], offered[0]

    return websocket.query_params.get("token") or None, None


def _set_online(user_id: int, online: bool) -> None:
    with get_db_session() as db:
        UserDirectory(db).set_online_status(user_id, online)


async def _authenticate(session: ChannelSession) -> str | None:
    """Bind *session* to its user; closes the socket and returns None on failure."""

    websocket = session.websocket
    token, subprotocol = _extract_token(websocket)
    try:
        with get_db_session() as db:
            user_id = get_user_from_token(token, db).id
    except AuthenticationError as exc:
        logger.info("Rejected websocket handshake: %s", exc.message)
        session.close()
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)
        return None
    session.authenticate(user_id)
    return subprotocol or ""


@router.websocket("/ws")
async def websocket_chat(websocket: WebSocket) -> None:
    """Authenticate, then route chat commands until the client goes away."""

    session = ChannelSession(websocket)
    subprotocol = await _authenticate(session)
    if subprotocol is None:
        return

    await websocket.accept(subprotocol=subprotocol or None)
    session.activate()
    user_id = session.user_id
    await hub.register(session)
    await hub.join(user_group(user_id), session)
    _set_online(user_id, True)
    logger.info("User %s connected (session %s)", user_id, session.session_id)

    await session.send(
        protocol.event(protocol.SESSION_READY, {"userId": user_id, "sessionId": session.session_id})
    )

    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            try:
                frame = protocol.parse_frame(raw_message)
            except protocol.ProtocolError as exc:
                await session.send(protocol.error_event(str(exc)))
                continue

            if frame.event == protocol.PING:
                await session.send(protocol.PONG_FRAME)
                continue
            if frame.event == protocol.PONG:
                continue
            await commands.dispatch(session, frame)
    finally:
        session.close()
        remaining = await hub.unregister(session)
        if remaining == 0:
            _set_online(user_id, False)
        logger.info(
            "User %s disconnected (session %s, %d sessions left)",
            user_id,
            session.session_id,
            remaining,
        )
