"""Message history, sending and read tracking endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_user, get_message_store
from app.api.serializers import serialize_message
from app.models import User
from app.schemas import (
    Envelope,
    MarkReadRequest,
    MarkReadResult,
    MessageCreate,
    MessageRead,
    UnreadCount,
)
from app.services import MessageStore
from parley.realtime import get_broadcast_hub, publish_message, publish_read
from parley.realtime.hub import BroadcastHub

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=Envelope[MessageRead], status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    current_user: User = Depends(get_current_user),
    messages: MessageStore = Depends(get_message_store),
    hub: BroadcastHub = Depends(get_broadcast_hub),
) -> Envelope[MessageRead]:
    message = messages.send(
        payload.chat_id,
        current_user.id,
        content=payload.content,
        attachment=payload.attachment,
    )
    await publish_message(hub, message)
    return Envelope(message="Message sent", data=serialize_message(message))


@router.get("/{chat_id}", response_model=Envelope[list[MessageRead]])
def list_messages(
    chat_id: int,
    limit: int | None = Query(None, description="Page size, clamped to 1..100"),
    before: int | None = Query(None, description="Only return messages older than this id"),
    current_user: User = Depends(get_current_user),
    messages: MessageStore = Depends(get_message_store),
) -> Envelope[list[MessageRead]]:
    """Return a chronological page of history, paginating backwards."""

    page = messages.list_messages(chat_id, current_user.id, limit=limit, before=before)
    return Envelope(data=[serialize_message(message) for message in page])


@router.post("/{chat_id}/read", response_model=Envelope[MarkReadResult])
async def mark_messages_read(
    chat_id: int,
    payload: MarkReadRequest | None = None,
    current_user: User = Depends(get_current_user),
    messages: MessageStore = Depends(get_message_store),
    hub: BroadcastHub = Depends(get_broadcast_hub),
) -> Envelope[MarkReadResult]:
    up_to = payload.up_to if payload is not None else None
    modified = messages.mark_read(chat_id, current_user.id, up_to)
    await publish_read(hub, chat_id, current_user.id, up_to, modified)
    return Envelope(message="Messages marked as read", data=MarkReadResult(modified=modified))


@router.get("/{chat_id}/unread-count", response_model=Envelope[UnreadCount])
def unread_count(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    messages: MessageStore = Depends(get_message_store),
) -> Envelope[UnreadCount]:
    return Envelope(data=UnreadCount(count=messages.unread_count(chat_id, current_user.id)))
