"""Translate realtime client commands into store operations and fan-out."""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any, Awaitable, Callable

from sqlalchemy.orm import Session

from app.api.serializers import serialize_conversation, serialize_message, to_wire
from app.config import Settings, get_settings
from app.core.errors import AccessDeniedError, AppError, error_payload
from app.core.validators import parse_chat_reference, parse_read_payload, parse_send_payload
from app.database import get_db_session
from app.models import Conversation, Message
from app.schemas import ReadEvent
from app.services import ConversationStore, MessageStore

from . import protocol
from .hub import BroadcastHub, chat_group, user_group
from .session import ChannelSession

logger = logging.getLogger(__name__)

Handler = Callable[[ChannelSession, Any], Awaitable["dict[str, Any] | None"]]


async def publish_message(hub: BroadcastHub, message: Message) -> dict[str, Any]:
    """Fan a freshly stored message out to the conversation group."""

    payload = to_wire(serialize_message(message))
    await hub.broadcast(chat_group(message.conversation_id), protocol.event(protocol.MESSAGE_NEW, payload))
    return payload


async def publish_read(
    hub: BroadcastHub, chat_id: int, user_id: int, up_to: int | None, modified: int
) -> None:
    read = ReadEvent(chat_id=chat_id, user_id=user_id, up_to=up_to, modified=modified)
    await hub.broadcast(chat_group(chat_id), protocol.event(protocol.MESSAGE_READ, to_wire(read)))


async def publish_chat_created(hub: BroadcastHub, conversation: Conversation) -> None:
    """Tell every participant's personal group about a new conversation."""

    payload = protocol.event(protocol.CHAT_CREATED, to_wire(serialize_conversation(conversation)))
    for user_id in conversation.participant_ids:
        await hub.broadcast(user_group(user_id), payload)


async def close_chat(hub: BroadcastHub, chat_id: int) -> int:
    """Force all subscribers out of a deactivated conversation."""

    return await hub.close_group(
        chat_group(chat_id), protocol.event(protocol.CHAT_CLOSED, {"chatId": chat_id})
    )


class CommandRouter:
    """Dispatch client frames of an active session to their handlers.

    Every command opens its own short database session. Failures are
    reported on the acknowledgement channel only; the connection survives.
    """

    def __init__(
        self,
        hub: BroadcastHub,
        *,
        session_factory: Callable[[], AbstractContextManager[Session]] = get_db_session,
        settings: Settings | None = None,
    ) -> None:
        self.hub = hub
        self._session_factory = session_factory
        self.settings = settings or get_settings()
        self._handlers: dict[str, Handler] = {
            protocol.CHAT_JOIN: self.join_chat,
            protocol.CHAT_LEAVE: self.leave_chat,
            protocol.MESSAGE_SEND: self.send_message,
            protocol.MESSAGE_READ: self.mark_read,
        }

    async def dispatch(self, session: ChannelSession, frame: protocol.ClientFrame) -> None:
        handler = self._handlers.get(frame.event)
        if handler is None:
            await session.send(protocol.error_event(f"Unknown event '{frame.event}'", "unknown_event"))
            return
        if not session.is_active:
            result: dict[str, Any] | None = {
                "success": False,
                "error": "Session is not active",
                "code": "session_inactive",
            }
        else:
            try:
                result = await handler(session, frame.data)
            except AppError as exc:
                if not exc.is_operational:
                    logger.exception("Command %s failed for user %s", frame.event, session.user_id)
                else:
                    logger.debug(
                        "Command %s rejected for user %s: %s", frame.event, session.user_id, exc.message
                    )
                result = error_payload(exc)
            except Exception as exc:
                logger.exception("Command %s crashed for user %s", frame.event, session.user_id)
                result = error_payload(exc)
        if frame.ack_id is not None and result is not None:
            await session.send(protocol.ack(frame.ack_id, result))

    async def join_chat(self, session: ChannelSession, data: Any) -> dict[str, Any]:
        chat_id = parse_chat_reference(data)
        with self._session_factory() as db:
            member = ConversationStore(db).is_member(chat_id, session.user_id)
        if not member:
            raise AccessDeniedError("Not a member of this chat")
        await self.hub.join(chat_group(chat_id), session)
        logger.debug("User %s joined chat %s", session.user_id, chat_id)
        return protocol.ack_ok(chatId=chat_id)

    async def leave_chat(self, session: ChannelSession, data: Any) -> None:
        chat_id = parse_chat_reference(data)
        await self.hub.leave(chat_group(chat_id), session)
        return None

    async def send_message(self, session: ChannelSession, data: Any) -> dict[str, Any]:
        draft = parse_send_payload(
            data, session.user_id, max_length=self.settings.chat_message_max_length
        )
        with self._session_factory() as db:
            message = MessageStore(db, settings=self.settings).send_draft(draft)
            payload = await publish_message(self.hub, message)
        return protocol.ack_ok(message=payload)

    async def mark_read(self, session: ChannelSession, data: Any) -> dict[str, Any]:
        chat_id, up_to = parse_read_payload(data)
        with self._session_factory() as db:
            modified = MessageStore(db, settings=self.settings).mark_read(chat_id, session.user_id, up_to)
        await publish_read(self.hub, chat_id, session.user_id, up_to, modified)
        return protocol.ack_ok(modified=modified)
