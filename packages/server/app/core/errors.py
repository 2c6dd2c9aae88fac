"""
Domain errors and their HTTP rendering.

Services raise ModstoreError subclasses; the handlers registered here turn
them (and FastAPI's own HTTP/validation errors) into the standard envelope:

    {"error": {"code": "...", "message": "...", "status": 403}}
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------

class ModstoreError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        self.message = message or self.message
        if code:
            self.code = code
        super().__init__(self.message)


class BadRequestError(ModstoreError):
    status_code = 400
    code = "BAD_REQUEST"
    message = "Malformed request"


class InvalidScopeTargetError(BadRequestError):
    code = "INVALID_SCOPE_TARGET"
    message = "Exactly one of publisher_id or modpack_id must be provided"


class AuthenticationError(ModstoreError):
    status_code = 401
    code = "USER_NOT_AUTHENTICATED"
    message = "Authentication required"


class ForbiddenError(ModstoreError):
    status_code = 403
    code = "FORBIDDEN"
    message = "You do not have permission to perform this action"


class NotFoundError(ModstoreError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class ConflictError(ModstoreError):
    status_code = 409
    code = "CONFLICT"
    message = "Resource conflict"


class UpstreamError(ModstoreError):
    """An external service failed; never reported to callers as a denial."""

    status_code = 502
    code = "UPSTREAM_ERROR"
    message = "Upstream service error"


class TwitchUnavailableError(UpstreamError):
    status_code = 503
    code = "TWITCH_UNAVAILABLE"
    message = "Twitch subscription check is temporarily unavailable"


class TwitchTokenExpiredError(UpstreamError):
    status_code = 409
    code = "TWITCH_TOKEN_EXPIRED"
    message = "Twitch access token expired; re-link your Twitch account"


class PaymentGatewayError(UpstreamError):
    code = "PAYMENT_GATEWAY_ERROR"
    message = "Payment gateway request failed"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def error_body(code: str, message: str, status: int, details: Any = None) -> dict:
    body = {"error": {"code": code, "message": message, "status": status}}
    if details is not None:
        body["error"]["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Install JSON error handlers using the standard envelope."""

    @app.exception_handler(ModstoreError)
    async def modstore_error_handler(request: Request, exc: ModstoreError):
        event = "request.upstream_error" if isinstance(exc, UpstreamError) else "request.rejected"
        log_fn = log.error if exc.status_code >= 500 else log.info
        log_fn(
            event,
            method=request.method,
            path=request.url.path,
            status=exc.status_code,
            code=exc.code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.code, exc.message, exc.status_code),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        return JSONResponse(
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
            content=error_body(f"HTTP_{exc.status_code}", message, exc.status_code),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        # Unique constraints back every find-then-create path
        log.warning("request.integrity_conflict", method=request.method, path=request.url.path)
        return JSONResponse(
            status_code=409,
            content=error_body("CONFLICT", "Resource already exists or was modified concurrently", 409),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        log.info("request.invalid", method=request.method, path=request.url.path)
        return JSONResponse(
            status_code=400,
            content=error_body(
                "VALIDATION_ERROR",
                "Request validation failed",
                400,
                details=jsonable_errors(exc),
            ),
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Strip non-serializable context (e.g. the raised ValueError) from pydantic errors."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
