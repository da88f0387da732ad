"""Direct and group conversation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.api.deps import get_conversation_store, get_current_user
from app.api.serializers import serialize_conversation
from app.models import ConversationKind, User
from app.schemas import ConversationCreate, ConversationRead, Envelope
from app.services import ConversationStore
from parley.realtime import close_chat, get_broadcast_hub, publish_chat_created
from parley.realtime.hub import BroadcastHub

router = APIRouter(prefix="/chats", tags=["chats"])


@router.post("", response_model=Envelope[ConversationRead], status_code=status.HTTP_201_CREATED)
async def create_chat(
    payload: ConversationCreate,
    current_user: User = Depends(get_current_user),
    conversations: ConversationStore = Depends(get_conversation_store),
    hub: BroadcastHub = Depends(get_broadcast_hub),
) -> Envelope[ConversationRead]:
    """Open the direct chat with another user, or create a group chat."""

    if payload.type == ConversationKind.DIRECT:
        others = list(
            dict.fromkeys(
                str(item) for item in payload.participants if str(item) != str(current_user.id)
            )
        )
        # a direct chat needs exactly one counterpart; the store reports the exact failure
        counterpart = others[0] if len(others) == 1 else current_user.id
        conversation = conversations.create_direct(current_user.id, counterpart)
    else:
        conversation = conversations.create_group(
            current_user.id,
            list(payload.participants),
            payload.name,
            description=payload.description,
            avatar=payload.avatar,
        )
    await publish_chat_created(hub, conversation)
    return Envelope(message="Chat ready", data=serialize_conversation(conversation))


@router.get("", response_model=Envelope[list[ConversationRead]])
def list_chats(
    current_user: User = Depends(get_current_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> Envelope[list[ConversationRead]]:
    """Return the caller's conversations, most recently active first."""

    return Envelope(
        data=[serialize_conversation(item) for item in conversations.list_for_user(current_user.id)]
    )


@router.get("/{chat_id}", response_model=Envelope[ConversationRead])
def read_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> Envelope[ConversationRead]:
    return Envelope(data=serialize_conversation(conversations.require(chat_id, current_user.id)))


@router.delete("/{chat_id}", response_model=Envelope[None])
async def delete_chat(
    chat_id: int,
    current_user: User = Depends(get_current_user),
    conversations: ConversationStore = Depends(get_conversation_store),
    hub: BroadcastHub = Depends(get_broadcast_hub),
) -> Envelope[None]:
    """Deactivate a conversation and disconnect its live subscribers."""

    conversations.deactivate(chat_id, current_user.id)
    await close_chat(hub, chat_id)
    return Envelope(message="Chat deleted", data=None)
