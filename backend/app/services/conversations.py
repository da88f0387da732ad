"""Conversation ownership: direct chat deduplication, groups and membership."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import Select, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.errors import AccessDeniedError, FieldError, NotFoundError, ValidationError
from app.core.validators import check_group_name, parse_id, parse_ids
from app.models import (
    Conversation,
    ConversationKind,
    ConversationParticipant,
    ParticipantRole,
)
from app.models.chat import utcnow
from app.services.users import UserDirectory

logger = logging.getLogger(__name__)

DEDUPE_SEPARATOR = ":"


def dedupe_key_for(user_a: int, user_b: int) -> str:
    """Canonical key of an unordered user pair, sorted as strings."""

    return DEDUPE_SEPARATOR.join(sorted((str(user_a), str(user_b))))


class ConversationStore:
    """Single source of truth for conversations and their participants."""

    def __init__(self, db: Session, users: UserDirectory | None = None) -> None:
        self.db = db
        self.users = users or UserDirectory(db)

    def _select(self) -> Select[tuple[Conversation]]:
        return select(Conversation).options(
            selectinload(Conversation.participants),
            selectinload(Conversation.last_message),
        )

    def _load(self, chat_id: int) -> Conversation:
        self.db.expire_all()
        return self.db.execute(self._select().where(Conversation.id == chat_id)).scalar_one()

    def _find_by_dedupe_key(self, key: str) -> Conversation | None:
        stmt = self._select().where(
            Conversation.kind == ConversationKind.DIRECT,
            Conversation.dedupe_key == key,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def _ensure_users_exist(self, user_ids: Sequence[int]) -> None:
        known = self.users.existing_ids(user_ids)
        missing = [user_id for user_id in user_ids if user_id not in known]
        if missing:
            raise ValidationError(
                "User not found",
                [FieldError("participants", "User not found", user_id) for user_id in missing],
            )

    def create_direct(self, user_a: Any, user_b: Any) -> Conversation:
        """Return the pair's direct conversation, creating it on first request."""

        members = set(parse_ids([user_a, user_b], "participants"))
        if len(members) != 2:
            raise ValidationError.for_field(
                "participants", "Direct chat must have exactly two distinct participants"
            )
        first, second = sorted(members, key=str)
        key = dedupe_key_for(first, second)

        existing = self._find_by_dedupe_key(key)
        if existing is not None and existing.is_active:
            return existing

        self._ensure_users_exist([first, second])

        if existing is not None:
            self.db.execute(
                update(Conversation)
                .where(Conversation.id == existing.id)
                .values(is_active=True, updated_at=utcnow())
            )
            self.db.commit()
            logger.info("Reactivated direct chat %s for pair %s", existing.id, key)
            return self._load(existing.id)

        creator_id = parse_id(user_a, "participants")
        conversation = Conversation(
            kind=ConversationKind.DIRECT,
            created_by_id=creator_id,
            dedupe_key=key,
            participants=[
                ConversationParticipant(user_id=user_id, role=ParticipantRole.MEMBER, position=index)
                for index, user_id in enumerate((first, second))
            ],
        )
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            winner = self._find_by_dedupe_key(key)
            if winner is None:
                raise
            logger.info("Direct chat for pair %s created concurrently, using %s", key, winner.id)
            return winner
        return self._load(conversation.id)

    def create_group(
        self,
        creator_id: Any,
        other_ids: Any,
        name: Any,
        description: str | None = None,
        avatar: str | None = None,
    ) -> Conversation:
        """Create a group with the creator as admin followed by the others in order."""

        title = check_group_name(name)
        creator = parse_id(creator_id, "createdBy")
        others = [user_id for user_id in parse_ids(other_ids, "participants") if user_id != creator]
        self._ensure_users_exist([creator, *others])

        participants = [
            ConversationParticipant(user_id=creator, role=ParticipantRole.ADMIN, position=0)
        ]
        participants.extend(
            ConversationParticipant(user_id=user_id, role=ParticipantRole.MEMBER, position=index)
            for index, user_id in enumerate(others, start=1)
        )
        conversation = Conversation(
            kind=ConversationKind.GROUP,
            name=title,
            description=description,
            avatar=avatar,
            created_by_id=creator,
            participants=participants,
        )
        self.db.add(conversation)
        self.db.commit()
        logger.info("Created group chat %s with %d participants", conversation.id, len(participants))
        return self._load(conversation.id)

    def list_for_user(self, user_id: int) -> list[Conversation]:
        """Active conversations of *user_id*, most recently updated first."""

        stmt = (
            self._select()
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .where(
                ConversationParticipant.user_id == user_id,
                Conversation.is_active.is_(True),
            )
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        )
        return list(self.db.execute(stmt).scalars().unique().all())

    def get_by_id(self, chat_id: Any, requesting_user_id: int) -> Conversation | None:
        """Return the conversation only when it is active and the requester takes part."""

        chat = parse_id(chat_id, "chatId")
        stmt = (
            self._select()
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .where(
                Conversation.id == chat,
                Conversation.is_active.is_(True),
                ConversationParticipant.user_id == requesting_user_id,
            )
        )
        return self.db.execute(stmt).scalars().unique().one_or_none()

    def require(self, chat_id: Any, requesting_user_id: int) -> Conversation:
        conversation = self.get_by_id(chat_id, requesting_user_id)
        if conversation is None:
            raise NotFoundError("Chat not found")
        return conversation

    def _membership(self, chat_id: int, user_id: int) -> ConversationParticipant | None:
        stmt = (
            select(ConversationParticipant)
            .join(Conversation, Conversation.id == ConversationParticipant.conversation_id)
            .where(
                ConversationParticipant.conversation_id == chat_id,
                ConversationParticipant.user_id == user_id,
                Conversation.is_active.is_(True),
            )
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def is_member(self, chat_id: int, user_id: int) -> bool:
        return self._membership(chat_id, user_id) is not None

    def participant_ids(self, chat_id: int) -> list[int]:
        stmt = (
            select(ConversationParticipant.user_id)
            .where(ConversationParticipant.conversation_id == chat_id)
            .order_by(ConversationParticipant.position, ConversationParticipant.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def set_last_message(self, chat_id: int, message_id: int) -> None:
        """Point the conversation at its newest message.

        Runs inside the caller's transaction; the caller commits.
        """

        self.db.execute(
            update(Conversation)
            .where(Conversation.id == chat_id)
            .values(last_message_id=message_id, updated_at=utcnow())
        )

    def deactivate(self, chat_id: Any, user_id: int) -> Conversation:
        """Soft delete a conversation; group chats require an admin."""

        chat = parse_id(chat_id, "chatId")
        membership = self._membership(chat, user_id)
        if membership is None:
            raise NotFoundError("Chat not found")
        conversation = self._load(chat)
        if conversation.kind == ConversationKind.GROUP and membership.role != ParticipantRole.ADMIN:
            raise AccessDeniedError("Only chat admins can delete this chat")
        self.db.execute(
            update(Conversation)
            .where(Conversation.id == chat)
            .values(is_active=False, updated_at=utcnow())
        )
        self.db.commit()
        logger.info("Chat %s deactivated by user %s", chat, user_id)
        return self._load(chat)
