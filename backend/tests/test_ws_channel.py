"""End-to-end tests for the realtime chat websocket."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient
from starlette.testclient import WebSocketTestSession
from starlette.websockets import WebSocketDisconnect

from app.api import ws as ws_module
from app.models import User
from app.services import ConversationStore


def _connect(client: TestClient, token: str) -> WebSocketTestSession:
    return client.websocket_connect(f"/ws?token={token}")


def _ready(connection: WebSocketTestSession) -> dict:
    frame = connection.receive_json()
    assert frame["event"] == "session:ready"
    return frame["data"]


def _ack(connection: WebSocketTestSession) -> dict:
    frame = connection.receive_json()
    assert frame["event"] == "ack", frame
    return frame


@pytest.fixture()
def direct_chat(session_factory, make_user):
    alice, bob = make_user("alice"), make_user("bob")
    with session_factory() as db:
        chat_id = ConversationStore(db).create_direct(alice.id, bob.id).id
    return alice, bob, chat_id


@pytest.mark.parametrize("query", ["", "?token=garbage"])
def test_handshake_without_valid_token_is_refused(client, query):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/ws{query}"):
            pass

    assert exc.value.code == 1008


def test_handshake_refuses_inactive_user(client, make_user, token_for):
    ghost = make_user("ghost", is_active=False)

    with pytest.raises(WebSocketDisconnect):
        with _connect(client, token_for(ghost)):
            pass


def test_token_sources_follow_precedence(client, make_user, token_for):
    alice, bob = make_user("alice"), make_user("bob")

    with client.websocket_connect(
        f"/ws?token={token_for(bob)}", headers={"Authorization": f"Bearer {token_for(alice)}"}
    ) as connection:
        assert _ready(connection)["userId"] == alice.id

    with client.websocket_connect("/ws", subprotocols=["bearer", token_for(bob)]) as connection:
        assert connection.accepted_subprotocol == "bearer"
        assert _ready(connection)["userId"] == bob.id


def test_presence_follows_session_lifecycle(client, session_factory, make_user, token_for):
    alice = make_user("alice")

    with _connect(client, token_for(alice)) as connection:
        _ready(connection)
        with session_factory() as db:
            assert db.get(User, alice.id).is_online is True

    with session_factory() as db:
        assert db.get(User, alice.id).is_online is False


def test_message_send_and_read_fan_out(client, direct_chat, token_for):
    alice, bob, chat_id = direct_chat

    with _connect(client, token_for(alice)) as alice_ws, _connect(client, token_for(bob)) as bob_ws:
        _ready(alice_ws)
        _ready(bob_ws)
        for connection, ack_id in ((alice_ws, 1), (bob_ws, 2)):
            connection.send_json({"event": "chat:join", "data": {"chatId": chat_id}, "id": ack_id})
            ack = _ack(connection)
            assert ack["id"] == ack_id
            assert ack["data"] == {"success": True, "chatId": chat_id}

        alice_ws.send_json({"event": "message:send", "data": {"chatId": chat_id, "content": "hello"}, "id": "m1"})
        new_for_alice = alice_ws.receive_json()
        ack = _ack(alice_ws)
        new_for_bob = bob_ws.receive_json()

        assert new_for_alice["event"] == new_for_bob["event"] == "message:new"
        message = new_for_bob["data"]
        assert message["content"] == "hello"
        assert message["senderId"] == alice.id
        assert ack["id"] == "m1"
        assert ack["data"]["success"] is True
        assert ack["data"]["message"]["id"] == message["id"]

        bob_ws.send_json({"event": "message:read", "data": {"chatId": chat_id, "upTo": message["id"]}, "id": 3})
        read_for_bob = bob_ws.receive_json()
        assert _ack(bob_ws)["data"] == {"success": True, "modified": 1}
        read_for_alice = alice_ws.receive_json()

        expected = {"chatId": chat_id, "userId": bob.id, "upTo": message["id"], "modified": 1}
        assert read_for_bob == read_for_alice == {"event": "message:read", "data": expected}


def test_join_without_membership_creates_no_subscription(client, direct_chat, make_user, token_for):
    alice, _, chat_id = direct_chat
    eve = make_user("eve")

    with _connect(client, token_for(alice)) as alice_ws, _connect(client, token_for(eve)) as eve_ws:
        _ready(alice_ws)
        _ready(eve_ws)

        eve_ws.send_json({"event": "chat:join", "data": chat_id, "id": 1})
        denied = _ack(eve_ws)["data"]
        assert denied["success"] is False
        assert denied["code"] == "access_denied"

        alice_ws.send_json({"event": "chat:join", "data": chat_id, "id": 1})
        _ack(alice_ws)
        alice_ws.send_json({"event": "message:send", "data": {"chatId": chat_id, "content": "secret"}, "id": 2})
        assert alice_ws.receive_json()["event"] == "message:new"
        _ack(alice_ws)

        # the next frame eve sees must be the pong, not the broadcast
        eve_ws.send_json({"event": "ping"})
        assert eve_ws.receive_json() == {"event": "pong"}


def test_failed_commands_keep_connection_open(client, direct_chat, make_user, token_for):
    alice, _, chat_id = direct_chat
    eve = make_user("eve")

    with _connect(client, token_for(alice)) as connection:
        _ready(connection)

        connection.send_json({"event": "message:send", "data": {"chatId": chat_id}, "id": 1})
        invalid = _ack(connection)["data"]
        assert invalid["success"] is False
        assert invalid["code"] == "validation_error"
        assert [detail["field"] for detail in invalid["details"]] == ["content"]

        connection.send_json(
            {"event": "message:send", "data": {"chatId": chat_id, "attachment": {"type": "gif"}}, "id": 2}
        )
        assert _ack(connection)["data"]["details"][0]["field"] == "attachment.type"

        connection.send_text("{not json")
        assert connection.receive_json()["event"] == "error"

        connection.send_json({"event": "typing:start", "data": {}})
        unknown = connection.receive_json()
        assert unknown["event"] == "error"
        assert unknown["data"]["code"] == "unknown_event"

        connection.send_json({"event": "message:read", "data": {"chatId": chat_id}, "id": 3})
        assert _ack(connection)["data"]["success"] is True

    with _connect(client, token_for(eve)) as connection:
        _ready(connection)
        connection.send_json({"event": "message:send", "data": {"chatId": chat_id, "content": "hi"}, "id": 1})
        refused = _ack(connection)["data"]
        assert refused["success"] is False
        assert refused["code"] == "not_found"


def test_leave_stops_delivery(client, direct_chat, token_for):
    alice, bob, chat_id = direct_chat

    with _connect(client, token_for(alice)) as alice_ws, _connect(client, token_for(bob)) as bob_ws:
        _ready(alice_ws)
        _ready(bob_ws)
        for connection in (alice_ws, bob_ws):
            connection.send_json({"event": "chat:join", "data": {"chatId": chat_id}, "id": 1})
            _ack(connection)

        bob_ws.send_json({"event": "chat:leave", "data": {"chatId": chat_id}})
        alice_ws.send_json({"event": "message:send", "data": {"chatId": chat_id, "content": "bye"}, "id": 2})
        alice_ws.receive_json()
        _ack(alice_ws)

        bob_ws.send_json({"event": "ping"})
        assert bob_ws.receive_json() == {"event": "pong"}


def test_deactivating_chat_evicts_subscribers(client, direct_chat, token_for):
    alice, bob, chat_id = direct_chat

    with _connect(client, token_for(bob)) as bob_ws:
        _ready(bob_ws)
        bob_ws.send_json({"event": "chat:join", "data": chat_id, "id": 1})
        _ack(bob_ws)

        response = client.delete(
            f"/api/chats/{chat_id}", headers={"Authorization": f"Bearer {token_for(alice)}"}
        )
        assert response.status_code == 200

        assert bob_ws.receive_json() == {"event": "chat:closed", "data": {"chatId": chat_id}}
        bob_ws.send_json({"event": "chat:join", "data": chat_id, "id": 2})
        assert _ack(bob_ws)["data"]["code"] == "access_denied"


def test_chat_creation_notifies_personal_group(client, make_user, token_for):
    alice, bob = make_user("alice"), make_user("bob")

    with _connect(client, token_for(bob)) as bob_ws:
        _ready(bob_ws)
        response = client.post(
            "/api/chats",
            json={"participants": [bob.id]},
            headers={"Authorization": f"Bearer {token_for(alice)}"},
        )
        assert response.status_code == 201

        created = bob_ws.receive_json()
        assert created["event"] == "chat:created"
        assert created["data"]["id"] == response.json()["data"]["id"]


def test_connection_survives_keepalive_timeout(client, make_user, token_for) -> None:
    """Ensure that the server side keepalive pings keep the socket open."""

    user = make_user("keepalive")
    settings = ws_module.settings
    original_timeout = settings.websocket_keepalive_timeout_seconds
    original_interval = settings.websocket_keepalive_ping_interval_seconds

    settings.websocket_keepalive_timeout_seconds = 0.1
    settings.websocket_keepalive_ping_interval_seconds = 0.05

    try:
        with _connect(client, token_for(user)) as connection:
            _ready(connection)

            time.sleep(0.15)
            assert connection.receive_json() == {"event": "ping"}
            connection.send_json({"event": "pong"})

            time.sleep(0.12)
            assert connection.receive_json() == {"event": "ping"}
            connection.send_json({"event": "pong"})

            connection.send_json({"event": "ping"})
            assert connection.receive_json() == {"event": "pong"}
    finally:
        settings.websocket_keepalive_timeout_seconds = original_timeout
        settings.websocket_keepalive_ping_interval_seconds = original_interval
