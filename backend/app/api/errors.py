"""Translate exceptions into the JSON error envelope."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import GENERIC_ERROR_MESSAGE, AppError, FieldError, ValidationError

logger = logging.getLogger(__name__)


def _render(status_code: int, payload: dict[str, Any]) -> JSONResponse:
    body = {
        **payload,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(status_code=status_code, content=body)


def _field_path(location: tuple[Any, ...]) -> str:
    parts = [str(part) for part in location if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def translate_request_errors(exc: RequestValidationError) -> ValidationError:
    details = []
    for error in exc.errors():
        field = _field_path(tuple(error.get("loc", ())))
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        details.append(FieldError(field, message))
    return ValidationError("Validation failed", details)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if not exc.is_operational:
        logger.error("Non-operational error on %s %s: %s", request.method, request.url.path, exc)
        return _render(
            exc.status_code,
            {"success": False, "error": GENERIC_ERROR_MESSAGE, "code": "internal_error"},
        )
    return _render(exc.status_code, exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = translate_request_errors(exc)
    return _render(error.status_code, error.to_payload())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _render(
        exc.status_code,
        {"success": False, "error": str(exc.detail), "code": "http_error"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _render(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"success": False, "error": GENERIC_ERROR_MESSAGE, "code": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
