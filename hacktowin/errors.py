"""
Error taxonomy for the payment and account handlers.

Every error carries the HTTP status it maps to and a message that is safe to
show to clients. Handlers registered by ``register_error_handlers`` translate
them into ``{"error": message}`` responses so nothing reaches the client as a
stack trace.
"""
from typing import Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Missing or invalid request fields."""

    status_code = 400


class AuthenticationError(ServiceError):
    """Signature or credential check failed. No state was changed."""

    status_code = 400


class UpstreamError(ServiceError):
    """The payment gateway call failed. No local state was changed."""

    status_code = 500


class PersistenceError(ServiceError):
    """A storage operation failed; upstream state may already exist."""

    status_code = 500


class TokenError(ServiceError):
    """Signing an access token failed."""

    status_code = 500


def _describe_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())[1:])
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return "; ".join(parts) or "Invalid request body."


def register_error_handlers(app: FastAPI, message_keys: Optional[Dict[str, str]] = None) -> None:
    """
    ``message_keys`` maps a path prefix to the JSON key errors are reported
    under for routes below it; everything else uses ``"error"``.
    """
    message_keys = message_keys or {}

    def error_body(request: Request, message: str) -> dict:
        path = request.url.path
        for prefix, key in message_keys.items():
            if path.startswith(prefix):
                return {key: message}
        return {"error": message}

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            status_code=exc.status_code,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=error_body(request, exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message = _describe_validation_errors(exc)
        logger.warning("request_invalid", path=request.url.path, error=message)
        return JSONResponse(status_code=400, content=error_body(request, message))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("request_crashed", path=request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content=error_body(request, "Internal server error."))
