"""Convert ORM entities into wire schemas."""

from __future__ import annotations

from typing import Any

from app.models import Conversation, Message, User
from app.schemas import (
    AttachmentRead,
    ConversationRead,
    MessageRead,
    ParticipantRead,
    PublicUser,
    ReadReceiptRead,
    UserRead,
)


def serialize_public_user(user: User) -> PublicUser:
    return PublicUser.model_validate(user)


def serialize_user(user: User) -> UserRead:
    return UserRead.model_validate(user)


def serialize_message(message: Message) -> MessageRead:
    attachment = None
    if message.has_attachment:
        attachment = AttachmentRead(
            type=message.attachment_type,
            url=message.attachment_url,
            name=message.attachment_name,
            size=message.attachment_size,
        )
    return MessageRead(
        id=message.id,
        chat_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        attachment=attachment,
        read_by=[
            ReadReceiptRead(user_id=receipt.user_id, read_at=receipt.read_at)
            for receipt in message.receipts
        ],
        deleted=message.deleted,
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


def serialize_conversation(conversation: Conversation) -> ConversationRead:
    last_message = conversation.last_message
    return ConversationRead(
        id=conversation.id,
        type=conversation.kind,
        name=conversation.name,
        description=conversation.description,
        avatar=conversation.avatar,
        participants=[
            ParticipantRead(
                user_id=participant.user_id,
                role=participant.role,
                joined_at=participant.joined_at,
            )
            for participant in conversation.participants
        ],
        created_by=conversation.created_by_id,
        is_active=conversation.is_active,
        last_message=serialize_message(last_message) if last_message is not None else None,
        dedupe_key=conversation.dedupe_key,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def to_wire(schema: Any) -> dict[str, Any]:
    """JSON-ready camelCase dict for realtime frames."""

    return schema.model_dump(mode="json", by_alias=True)
