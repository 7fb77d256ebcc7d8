"""Error taxonomy and the handlers that turn it into the response envelope.

Domain code raises one of the ``PropertyHubError`` subclasses; the handlers
registered by :func:`register_exception_handlers` render every failure as
``{"success": false, "message": ..., "errors": [...]}``.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

log = logging.getLogger(__name__)

_LOCATION_PREFIXES = {"body", "query", "path", "header", "form"}


class PropertyHubError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, errors: list[dict[str, Any]] | None = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(PropertyHubError):
    status_code = 400
    default_message = "Validation failed"


class AuthError(PropertyHubError):
    status_code = 401
    default_message = "Not authorized"


class AccountLockedError(AuthError):
    status_code = 423
    default_message = (
        "Account is temporarily locked due to too many failed login attempts. Please try again later."
    )


class ForbiddenError(AuthError):
    status_code = 403
    default_message = "Admin access required"


class NotFoundError(PropertyHubError):
    status_code = 404
    default_message = "Not found"


class StorageError(PropertyHubError):
    status_code = 500


def _field_name(loc: tuple | list) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(parts)


def field_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten pydantic error dicts into ``{"field", "message"}`` pairs."""
    out = []
    for err in errors:
        msg = err.get("msg", "Invalid value")
        # pydantic prefixes custom validator messages
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        out.append({"field": _field_name(err.get("loc", ())), "message": msg})
    return out


def from_pydantic(exc: PydanticValidationError) -> ValidationError:
    return ValidationError(errors=field_errors(exc.errors()))


def error_body(message: str, errors: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


async def _handle_domain_error(request: Request, exc: PropertyHubError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request failed: %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(PropertyHubError.default_message))
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error_body("Validation failed", field_errors(exc.errors())))


async def _handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    # unique constraints, e.g. uq_users_email
    log.warning("integrity error: %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=400, content=error_body("Duplicate value violates a unique constraint"))


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(PropertyHubError.default_message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PropertyHubError, _handle_domain_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(IntegrityError, _handle_integrity_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(Exception, _handle_unexpected)
