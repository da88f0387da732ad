"""Tests for message persistence, pagination and read tracking."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from app.api.serializers import serialize_message, to_wire
from app.core.errors import AccessDeniedError, AuthenticationError, NotFoundError, ValidationError
from app.models import AttachmentKind, Conversation, Message
from app.services import ConversationStore, MessageStore


@pytest.fixture()
def stores(db_session):
    conversations = ConversationStore(db_session)
    return conversations, MessageStore(db_session, conversations)


@pytest.fixture()
def pair(stores, make_user):
    conversations, _ = stores
    alice, bob = make_user("alice"), make_user("bob")
    chat = conversations.create_direct(alice.id, bob.id)
    return alice, bob, chat


def test_send_records_self_read_and_last_message(stores, pair, db_session):
    _, messages = stores
    alice, _, chat = pair

    message = messages.send(chat.id, alice.id, "hello")

    assert message.content == "hello"
    assert [receipt.user_id for receipt in message.receipts] == [alice.id]
    db_session.expire_all()
    assert db_session.get(Conversation, chat.id).last_message_id == message.id


def test_send_with_attachment_only(stores, pair):
    _, messages = stores
    alice, _, chat = pair

    message = messages.send(
        chat.id, alice.id, attachment={"type": "image", "url": "https://cdn/p.png", "name": "p.png", "size": 12}
    )

    assert message.content is None
    assert message.has_attachment
    assert message.attachment_type is AttachmentKind.IMAGE
    assert message.attachment_size == 12

    wire = to_wire(serialize_message(message))
    assert wire["attachment"] == {"type": "image", "url": "https://cdn/p.png", "name": "p.png", "size": 12}
    assert wire["content"] is None


def test_text_message_serializes_without_attachment(stores, pair):
    _, messages = stores
    alice, _, chat = pair

    message = messages.send(chat.id, alice.id, "hello")

    assert not message.has_attachment
    assert to_wire(serialize_message(message))["attachment"] is None


def test_send_without_content_fails_on_content_field(stores, pair):
    _, messages = stores
    alice, _, chat = pair

    with pytest.raises(ValidationError) as exc:
        messages.send(chat.id, alice.id)

    assert [detail.field for detail in exc.value.details] == ["content"]


def test_send_rejects_malformed_ids(stores):
    _, messages = stores

    with pytest.raises(ValidationError) as exc:
        messages.send("abc", 0, "hi")

    assert [detail.field for detail in exc.value.details] == ["chatId", "senderId"]


def test_non_member_send_leaves_no_trace(stores, pair, make_user, db_session):
    _, messages = stores
    _, _, chat = pair
    eve = make_user("eve")

    with pytest.raises(NotFoundError):
        messages.send(chat.id, eve.id, "intrusion")

    assert db_session.execute(select(func.count(Message.id))).scalar_one() == 0
    db_session.expire_all()
    assert db_session.get(Conversation, chat.id).last_message_id is None


def test_history_pages_backwards_without_gaps(stores, pair):
    _, messages = stores
    alice, bob, chat = pair
    sent = [messages.send(chat.id, (alice.id, bob.id)[i % 2], f"m{i}").id for i in range(7)]

    first_page = messages.list_messages(chat.id, alice.id, limit=3)
    assert [m.id for m in first_page] == sent[4:]

    collected = [m.id for m in first_page]
    cursor = first_page[0].id
    while True:
        page = messages.list_messages(chat.id, alice.id, limit=3, before=cursor)
        if not page:
            break
        ids = [m.id for m in page]
        assert ids == sorted(ids)
        assert ids[-1] < cursor
        collected = ids + collected
        cursor = ids[0]

    assert collected == sent


def test_history_limit_is_clamped(stores, pair):
    _, messages = stores
    alice, _, chat = pair
    for i in range(3):
        messages.send(chat.id, alice.id, f"m{i}")

    assert len(messages.list_messages(chat.id, alice.id, limit=-5)) == 1
    assert len(messages.list_messages(chat.id, alice.id, limit="junk")) == 3
    assert messages._clamp_limit(1000) == 100
    assert messages._clamp_limit(None) == 50


def test_history_requires_membership(stores, pair, make_user):
    _, messages = stores
    _, _, chat = pair
    eve = make_user("eve")

    with pytest.raises(AuthenticationError):
        messages.list_messages(chat.id, eve.id)


def test_mark_read_is_idempotent(stores, pair):
    _, messages = stores
    alice, bob, chat = pair
    ids = [messages.send(chat.id, alice.id, f"m{i}").id for i in range(3)]

    assert messages.mark_read(chat.id, bob.id, up_to=ids[1]) == 2
    assert messages.mark_read(chat.id, bob.id, up_to=ids[1]) == 0
    assert messages.mark_read(chat.id, bob.id, up_to=ids[0]) == 0
    assert messages.unread_count(chat.id, bob.id) == 1
    assert messages.mark_read(chat.id, bob.id) == 1
    assert messages.unread_count(chat.id, bob.id) == 0


def test_unread_count_scenario(stores, pair):
    _, messages = stores
    u1, u2, chat = pair

    hello = messages.send(chat.id, u1.id, "hello")
    messages.mark_read(chat.id, u2.id, up_to=hello.id)
    assert messages.unread_count(chat.id, u2.id) == 0

    messages.send(chat.id, u1.id, "again")
    assert messages.unread_count(chat.id, u2.id) == 1
    messages.send(chat.id, u1.id, "and again")
    assert messages.unread_count(chat.id, u2.id) == 2
    assert messages.unread_count(chat.id, u1.id) == 0


def test_read_state_requires_membership(stores, pair, make_user):
    _, messages = stores
    _, _, chat = pair
    eve = make_user("eve")

    with pytest.raises(AccessDeniedError):
        messages.mark_read(chat.id, eve.id)
    with pytest.raises(AccessDeniedError):
        messages.unread_count(chat.id, eve.id)
