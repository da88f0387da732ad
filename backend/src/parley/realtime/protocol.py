"""Wire format of realtime frames.

Clients send ``{"event": name, "data": payload, "id": ack_id}``; the ``id``
is optional and, when present, the server answers with an ``ack`` frame
carrying the same id.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

CHAT_JOIN = "chat:join"
CHAT_LEAVE = "chat:leave"
MESSAGE_SEND = "message:send"
MESSAGE_READ = "message:read"

SESSION_READY = "session:ready"
MESSAGE_NEW = "message:new"
CHAT_CREATED = "chat:created"
CHAT_CLOSED = "chat:closed"
ACK = "ack"
ERROR = "error"
PING = "ping"
PONG = "pong"

PING_FRAME = {"event": PING}
PONG_FRAME = {"event": PONG}


class ProtocolError(ValueError):
    """Raised when an inbound frame cannot be understood."""


@dataclass(slots=True, frozen=True)
class ClientFrame:
    event: str
    data: Any = None
    ack_id: Any = None


def parse_frame(raw: str) -> ClientFrame:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError("Invalid message format") from exc
    if not isinstance(payload, dict):
        raise ProtocolError("Message payload must be a JSON object")
    name = payload.get("event")
    if not isinstance(name, str) or not name:
        raise ProtocolError("Message must name an event")
    ack_id = payload.get("id")
    if ack_id is not None and (isinstance(ack_id, bool) or not isinstance(ack_id, (int, str))):
        raise ProtocolError("Acknowledgement id must be a string or integer")
    return ClientFrame(event=name, data=payload.get("data"), ack_id=ack_id)


def event(name: str, data: Any = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"event": name}
    if data is not None:
        frame["data"] = data
    return frame


def ack(ack_id: Any, data: dict[str, Any]) -> dict[str, Any]:
    return {"event": ACK, "id": ack_id, "data": data}


def ack_ok(**fields: Any) -> dict[str, Any]:
    return {"success": True, **fields}


def error_event(message: str, code: str = "protocol_error") -> dict[str, Any]:
    return event(ERROR, {"error": message, "code": code})
