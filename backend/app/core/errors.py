"""Operational error taxonomy shared by the stores, HTTP and realtime layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import status

_UNSET = object()


@dataclass(slots=True)
class FieldError:
    """Single field level validation failure."""

    field: str
    message: str
    value: Any = _UNSET

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.field, "message": self.message}
        if self.value is not _UNSET:
            data["value"] = self.value
        return data


class AppError(Exception):
    """Base class for expected, user facing failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    is_operational: bool = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def details(self) -> list[FieldError] | None:
        return None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        details = self.details
        if details:
            payload["details"] = [detail.to_dict() for detail in details]
        return payload


class ValidationError(AppError):
    """Raised when input fields are malformed or missing."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"

    def __init__(self, message: str = "Validation failed", details: list[FieldError] | None = None) -> None:
        super().__init__(message)
        self._details = list(details or [])

    @classmethod
    def for_field(cls, field_name: str, message: str, value: Any = _UNSET) -> "ValidationError":
        return cls(message, [FieldError(field_name, message, value)])

    @property
    def details(self) -> list[FieldError]:
        return self._details


class AuthenticationError(AppError):
    """Missing or invalid credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "authentication_error"

    def __init__(self, message: str = "Could not validate credentials") -> None:
        super().__init__(message)


class AccessDeniedError(AuthenticationError):
    """Valid identity that is not a participant of the requested conversation."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "access_denied"

    def __init__(self, message: str = "Not a member of this chat") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message)


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Render any exception into a client safe payload."""

    if isinstance(exc, AppError) and exc.is_operational:
        return exc.to_payload()
    return {"success": False, "error": GENERIC_ERROR_MESSAGE, "code": "internal_error"}
