"""Explicit validation of inbound chat and message commands.

Each validator collects field level failures and raises a single
``ValidationError`` so clients receive every problem at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from app.core.errors import FieldError, ValidationError
from app.models.enums import AttachmentKind

ALLOWED_ATTACHMENT_TYPES = ", ".join(kind.value for kind in AttachmentKind)
MAX_GROUP_NAME_LENGTH = 100


@dataclass(slots=True, frozen=True)
class AttachmentSpec:
    """Attachment metadata; the bytes live in external storage."""

    kind: AttachmentKind
    url: str | None = None
    name: str | None = None
    size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind.value, "url": self.url, "name": self.name, "size": self.size}


@dataclass(slots=True, frozen=True)
class MessageDraft:
    """Validated request to persist a message."""

    chat_id: int
    sender_id: int
    content: str | None
    attachment: AttachmentSpec | None


def _check_id(value: Any, field: str, errors: list[FieldError]) -> int | None:
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.isdigit():
        parsed = int(value)
    else:
        parsed = None
    if parsed is None or parsed <= 0:
        errors.append(FieldError(field, f"Invalid {field}", value))
        return None
    return parsed


def parse_id(value: Any, field: str) -> int:
    """Return *value* as a positive integer identifier or raise ``ValidationError``."""

    errors: list[FieldError] = []
    parsed = _check_id(value, field, errors)
    if errors:
        raise ValidationError(errors[0].message, errors)
    return parsed  # type: ignore[return-value]


def parse_ids(values: Any, field: str) -> list[int]:
    """Validate a list of identifiers, preserving order and dropping repeats."""

    if not isinstance(values, (list, tuple)):
        raise ValidationError.for_field(field, f"{field} must be a list of ids")
    errors: list[FieldError] = []
    seen: dict[int, None] = {}
    for value in values:
        parsed = _check_id(value, field, errors)
        if parsed is not None:
            seen.setdefault(parsed, None)
    if errors:
        raise ValidationError(errors[0].message, errors)
    return list(seen)


def _check_attachment(raw: Any, errors: list[FieldError]) -> AttachmentSpec | None:
    if isinstance(raw, AttachmentSpec):
        return raw
    if not isinstance(raw, Mapping):
        errors.append(FieldError("attachment", "attachment must be an object"))
        return None

    start = len(errors)
    kind_raw = raw.get("type")
    try:
        kind = AttachmentKind(kind_raw)
    except ValueError:
        kind = None
        errors.append(
            FieldError(
                "attachment.type",
                f"Invalid attachment type. Allowed types: {ALLOWED_ATTACHMENT_TYPES}",
                kind_raw,
            )
        )

    url = raw.get("url")
    if url is not None and not isinstance(url, str):
        errors.append(FieldError("attachment.url", "attachment url must be a string"))
    name = raw.get("name")
    if name is not None and not isinstance(name, str):
        errors.append(FieldError("attachment.name", "attachment name must be a string"))
    size = raw.get("size")
    if size is not None and (isinstance(size, bool) or not isinstance(size, int) or size < 0):
        errors.append(
            FieldError("attachment.size", "attachment size must be a non-negative integer", size)
        )

    if len(errors) > start or kind is None:
        return None
    return AttachmentSpec(kind=kind, url=url, name=name, size=size)


def build_message_draft(
    chat_id: Any,
    sender_id: Any,
    content: Any = None,
    attachment: Any = None,
    *,
    max_length: int,
) -> MessageDraft:
    """Validate identifiers and the content/attachment pairing of a new message."""

    errors: list[FieldError] = []
    parsed_chat_id = _check_id(chat_id, "chatId", errors)
    parsed_sender_id = _check_id(sender_id, "senderId", errors)

    text: str | None = None
    if content is not None:
        if not isinstance(content, str):
            errors.append(FieldError("content", "content must be a string"))
        else:
            text = content.strip() or None
            if text is not None and len(text) > max_length:
                errors.append(
                    FieldError("content", f"content must be at most {max_length} characters")
                )

    spec: AttachmentSpec | None = None
    if attachment is not None:
        spec = _check_attachment(attachment, errors)

    has_content = text is not None or (content is not None and not isinstance(content, str))
    if not has_content and attachment is None:
        errors.append(FieldError("content", "content or attachment is required"))
    elif has_content and attachment is not None:
        errors.append(FieldError("content", "Provide either content or attachment, not both"))

    if errors:
        raise ValidationError("Validation failed", errors)
    return MessageDraft(
        chat_id=parsed_chat_id,  # type: ignore[arg-type]
        sender_id=parsed_sender_id,  # type: ignore[arg-type]
        content=text,
        attachment=spec,
    )


def _require_mapping(payload: Any) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_field("payload", "Payload must be an object")
    return payload


def parse_send_payload(payload: Any, sender_id: int, *, max_length: int) -> MessageDraft:
    """Validate a realtime ``message:send`` payload."""

    data = _require_mapping(payload)
    return build_message_draft(
        data.get("chatId"),
        sender_id,
        data.get("content"),
        data.get("attachment"),
        max_length=max_length,
    )


def parse_read_payload(payload: Any) -> tuple[int, int | None]:
    """Validate a realtime ``message:read`` payload into ``(chat_id, up_to)``."""

    data = _require_mapping(payload)
    errors: list[FieldError] = []
    chat_id = _check_id(data.get("chatId"), "chatId", errors)
    up_to = None
    if data.get("upTo") is not None:
        up_to = _check_id(data.get("upTo"), "upTo", errors)
    if errors:
        raise ValidationError("Validation failed", errors)
    return chat_id, up_to  # type: ignore[return-value]


def parse_chat_reference(payload: Any) -> int:
    """Accept either a bare chat id or ``{"chatId": ...}``."""

    if isinstance(payload, Mapping):
        payload = payload.get("chatId")
    return parse_id(payload, "chatId")


def check_group_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError.for_field("name", "Group chat name is required", name)
    if len(name.strip()) > MAX_GROUP_NAME_LENGTH:
        raise ValidationError.for_field(
            "name", f"Group chat name must be at most {MAX_GROUP_NAME_LENGTH} characters"
        )
    return name.strip()
