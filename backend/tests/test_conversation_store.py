"""Tests for direct chat deduplication, groups and membership queries."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from app.core.errors import AccessDeniedError, NotFoundError, ValidationError
from app.models import Conversation, ConversationKind, ParticipantRole
from app.services import ConversationStore, MessageStore, dedupe_key_for


@pytest.fixture()
def store(db_session) -> ConversationStore:
    return ConversationStore(db_session)


def _conversation_count(db_session) -> int:
    return db_session.execute(select(func.count(Conversation.id))).scalar_one()


def test_dedupe_key_sorts_ids_as_strings():
    assert dedupe_key_for(2, 10) == "10:2"
    assert dedupe_key_for(10, 2) == "10:2"


def test_create_direct_is_order_independent(store, db_session, make_user):
    alice, bob = make_user("alice"), make_user("bob")

    first = store.create_direct(alice.id, bob.id)
    second = store.create_direct(bob.id, alice.id)

    assert first.id == second.id
    assert first.kind is ConversationKind.DIRECT
    assert first.dedupe_key == dedupe_key_for(alice.id, bob.id)
    assert sorted(first.participant_ids) == sorted([alice.id, bob.id])
    assert {p.role for p in first.participants} == {ParticipantRole.MEMBER}
    assert _conversation_count(db_session) == 1


def test_create_direct_requires_two_distinct_users(store, make_user):
    alice = make_user("alice")

    with pytest.raises(ValidationError) as exc:
        store.create_direct(alice.id, alice.id)

    assert exc.value.details[0].field == "participants"


def test_create_direct_lists_unresolvable_user(store, db_session, make_user):
    alice = make_user("alice")

    with pytest.raises(ValidationError) as exc:
        store.create_direct(alice.id, 404)

    details = exc.value.details
    assert [(d.field, d.message, d.value) for d in details] == [("participants", "User not found", 404)]
    assert _conversation_count(db_session) == 0


def test_create_direct_converges_on_concurrent_insert(session_factory, make_user):
    alice, bob = make_user("alice"), make_user("bob")

    with session_factory() as first_db, session_factory() as second_db:
        winner = ConversationStore(first_db).create_direct(alice.id, bob.id)
        loser_store = ConversationStore(second_db)
        # simulate the racing request having missed the winner's row on its first lookup
        original_lookup = loser_store._find_by_dedupe_key
        calls = {"count": 0}

        def stale_lookup(key):
            calls["count"] += 1
            if calls["count"] == 1:
                return None
            return original_lookup(key)

        loser_store._find_by_dedupe_key = stale_lookup
        converged = loser_store.create_direct(bob.id, alice.id)

    assert converged.id == winner.id
    assert calls["count"] == 2


def test_create_group_orders_creator_first(store, make_user):
    u1, u2, u3 = make_user("u1"), make_user("u2"), make_user("u3")

    group = store.create_group(u1.id, [u2.id, u3.id, u1.id, u2.id], "Team")

    assert group.kind is ConversationKind.GROUP
    assert group.name == "Team"
    assert group.dedupe_key is None
    assert [(p.user_id, p.role) for p in group.participants] == [
        (u1.id, ParticipantRole.ADMIN),
        (u2.id, ParticipantRole.MEMBER),
        (u3.id, ParticipantRole.MEMBER),
    ]


def test_create_group_with_only_the_creator(store, make_user):
    u1 = make_user("u1")

    for others in ([], [u1.id]):
        group = store.create_group(u1.id, others, "Solo")

        assert group.name == "Solo"
        assert [(p.user_id, p.role) for p in group.participants] == [(u1.id, ParticipantRole.ADMIN)]
        assert store.is_member(group.id, u1.id)


def test_create_group_validates_name_and_members(store, make_user):
    u1, u2 = make_user("u1"), make_user("u2")

    with pytest.raises(ValidationError) as exc:
        store.create_group(u1.id, [u2.id], "   ")
    assert exc.value.details[0].field == "name"

    with pytest.raises(ValidationError) as exc:
        store.create_group(u1.id, [u2.id, 999], "Team")
    assert [d.value for d in exc.value.details] == [999]


def test_list_for_user_orders_by_recent_activity(store, db_session, make_user):
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
    older = store.create_direct(alice.id, bob.id)
    newer = store.create_direct(alice.id, carol.id)

    assert [c.id for c in store.list_for_user(alice.id)] == [newer.id, older.id]

    MessageStore(db_session, store).send(older.id, bob.id, "ping")

    assert [c.id for c in store.list_for_user(alice.id)] == [older.id, newer.id]
    assert [c.id for c in store.list_for_user(carol.id)] == [newer.id]


def test_get_by_id_hides_chats_from_non_members(store, make_user):
    alice, bob, eve = make_user("alice"), make_user("bob"), make_user("eve")
    chat = store.create_direct(alice.id, bob.id)

    assert store.get_by_id(chat.id, alice.id).id == chat.id
    assert store.get_by_id(chat.id, eve.id) is None
    assert store.get_by_id(chat.id + 100, alice.id) is None
    with pytest.raises(NotFoundError):
        store.require(chat.id, eve.id)


def test_deactivated_chat_is_excluded_and_reactivated(store, make_user):
    alice, bob = make_user("alice"), make_user("bob")
    chat = store.create_direct(alice.id, bob.id)

    store.deactivate(chat.id, bob.id)

    assert store.is_member(chat.id, alice.id) is False
    assert store.list_for_user(alice.id) == []
    assert store.get_by_id(chat.id, alice.id) is None

    reopened = store.create_direct(alice.id, bob.id)
    assert reopened.id == chat.id
    assert reopened.is_active is True


def test_only_group_admins_can_deactivate(store, make_user):
    u1, u2 = make_user("u1"), make_user("u2")
    group = store.create_group(u1.id, [u2.id], "Team")

    with pytest.raises(AccessDeniedError):
        store.deactivate(group.id, u2.id)

    assert store.deactivate(group.id, u1.id).is_active is False
