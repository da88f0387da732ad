"""Message persistence, cursor pagination and read receipts."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import exists, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.config import Settings, get_settings
from app.core.errors import AccessDeniedError, NotFoundError
from app.core.validators import MessageDraft, build_message_draft, parse_id
from app.models import Message, MessageReceipt
from app.models.chat import utcnow
from app.services.conversations import ConversationStore

logger = logging.getLogger(__name__)

MARK_READ_ATTEMPTS = 2


class MessageStore:
    """Owns messages and their per-user read state."""

    def __init__(
        self,
        db: Session,
        conversations: ConversationStore | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.conversations = conversations or ConversationStore(db)
        self.settings = settings or get_settings()

    def _load(self, message_id: int) -> Message:
        stmt = (
            select(Message)
            .options(selectinload(Message.receipts))
            .where(Message.id == message_id)
        )
        return self.db.execute(stmt).scalar_one()

    def _require_member(self, chat_id: int, user_id: int) -> None:
        if not self.conversations.is_member(chat_id, user_id):
            raise AccessDeniedError("Not a member of this chat")

    def send(
        self,
        chat_id: Any,
        sender_id: Any,
        content: Any = None,
        attachment: Any = None,
    ) -> Message:
        """Validate and persist a new message from *sender_id*."""

        draft = build_message_draft(
            chat_id,
            sender_id,
            content,
            attachment,
            max_length=self.settings.chat_message_max_length,
        )
        return self.send_draft(draft)

    def send_draft(self, draft: MessageDraft) -> Message:
        if not self.conversations.is_member(draft.chat_id, draft.sender_id):
            raise NotFoundError("Chat not found or access denied")

        message = Message(
            conversation_id=draft.chat_id,
            sender_id=draft.sender_id,
            content=draft.content,
        )
        if draft.attachment is not None:
            message.attachment_type = draft.attachment.kind
            message.attachment_url = draft.attachment.url
            message.attachment_name = draft.attachment.name
            message.attachment_size = draft.attachment.size
        # the sender has always read their own message
        message.receipts.append(MessageReceipt(user_id=draft.sender_id))

        self.db.add(message)
        self.db.flush()
        self.conversations.set_last_message(draft.chat_id, message.id)
        self.db.commit()
        return self._load(message.id)

    def _clamp_limit(self, limit: Any) -> int:
        default = self.settings.chat_history_default_limit
        if isinstance(limit, bool):
            value = default
        elif isinstance(limit, int):
            value = limit
        elif isinstance(limit, str) and limit.strip().lstrip("-").isdigit():
            value = int(limit)
        else:
            value = default
        if value == 0:
            value = default
        return min(max(value, 1), self.settings.chat_history_max_limit)

    def list_messages(
        self,
        chat_id: Any,
        requesting_user_id: int,
        *,
        limit: Any = None,
        before: Any = None,
    ) -> list[Message]:
        """Return up to *limit* messages older than *before*, in chronological order."""

        chat = parse_id(chat_id, "chatId")
        cursor = parse_id(before, "before") if before is not None else None
        self._require_member(chat, requesting_user_id)

        stmt = (
            select(Message)
            .options(selectinload(Message.receipts))
            .where(Message.conversation_id == chat)
            .order_by(Message.id.desc())
            .limit(self._clamp_limit(limit))
        )
        if cursor is not None:
            stmt = stmt.where(Message.id < cursor)
        page = list(self.db.execute(stmt).scalars().all())
        page.reverse()
        return page

    def _unread_filter(self, user_id: int):
        receipt_exists = exists().where(
            MessageReceipt.message_id == Message.id,
            MessageReceipt.user_id == user_id,
        )
        return ~receipt_exists

    def mark_read(self, chat_id: Any, user_id: int, up_to: Any = None) -> int:
        """Add a receipt for every unread message (optionally up to *up_to*).

        Returns the number of receipts created; calling it again is a no-op.
        """

        chat = parse_id(chat_id, "chatId")
        cursor = parse_id(up_to, "upTo") if up_to is not None else None
        self._require_member(chat, user_id)

        stmt = select(Message.id).where(
            Message.conversation_id == chat,
            self._unread_filter(user_id),
        )
        if cursor is not None:
            stmt = stmt.where(Message.id <= cursor)

        for attempt in range(1, MARK_READ_ATTEMPTS + 1):
            message_ids = list(self.db.execute(stmt).scalars().all())
            if not message_ids:
                return 0
            read_at = utcnow()
            try:
                self.db.execute(
                    insert(MessageReceipt),
                    [
                        {"message_id": message_id, "user_id": user_id, "read_at": read_at}
                        for message_id in message_ids
                    ],
                )
                self.db.commit()
            except IntegrityError:
                # another session marked some of these concurrently
                self.db.rollback()
                if attempt == MARK_READ_ATTEMPTS:
                    raise
                logger.debug("Retrying mark_read for chat %s user %s", chat, user_id)
                continue
            return len(message_ids)

    def unread_count(self, chat_id: Any, user_id: int) -> int:
        """Count messages in the chat that *user_id* has no receipt for."""

        chat = parse_id(chat_id, "chatId")
        self._require_member(chat, user_id)
        stmt = select(func.count(Message.id)).where(
            Message.conversation_id == chat,
            self._unread_filter(user_id),
        )
        return int(self.db.execute(stmt).scalar_one())
