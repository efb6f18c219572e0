"""
Error taxonomy and HTTP error classification.

Domain exceptions carry their HTTP status. `ErrorClassifier` maps every
exception that escapes a request handler to a status code and a public
message, and logs it at the severity its class deserves.
"""

import asyncio
from typing import List, Optional, Tuple

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import (
    DBAPIError,
    DataError,
    IntegrityError,
    InterfaceError,
    NoResultFound,
    OperationalError,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..constants import get_current_timestamp
from ..infrastructure.redis.exceptions import RedisConnectionException

logger = structlog.get_logger().bind(component="error_classifier")


class IncidentServiceError(Exception):
    """Base class for errors raised by the incident service."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRequestError(IncidentServiceError):
    status_code = 400


class AccessDeniedError(IncidentServiceError):
    status_code = 403


class IncidentNotFoundError(IncidentServiceError):
    status_code = 404


class IncidentConflictError(IncidentServiceError):
    status_code = 409


class InvalidWebhookTaskError(InvalidRequestError):
    """Raised when a non-dangerous check result is offered to the webhook queue."""


# (pattern, public message, status, is client error)
DB_ERROR_PATTERNS: List[Tuple[str, str, int, bool]] = [
    ("violates foreign key", "invalid request", 400, True),
    ("invalid input", "invalid request", 400, True),
    ("invalid format", "invalid request", 400, True),
    ("duplicate key value", "already exists", 409, True),
    ("value too long", "value too long", 400, True),
    ("connection refused", "service unavailable", 503, False),
    ("no such host", "service unavailable", 503, False),
    ("too many clients", "service unavailable", 503, False),
    ("shutting down", "service unavailable", 503, False),
    ("network is unreachable", "service unavailable", 503, False),
    ("does not exist", "service unavailable", 503, False),
    ("syntax", "service unavailable", 503, False),
]


def error_body(message: str) -> dict:
    return {
        "status": "error",
        "error_text": message,
        "date": str(get_current_timestamp()),
    }


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(message))


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid" or (
        first.get("type") == "missing" and tuple(first.get("loc", ())) == ("body",)
    ):
        return "body empty"
    message = str(first.get("msg", "invalid request"))
    if message.startswith("Value error, "):
        return message[len("Value error, ") :]
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    if location and first.get("type") != "value_error":
        return f"{'.'.join(location)}: {message}"
    return message


class ErrorClassifier:
    """Maps exceptions to (status code, public message)."""

    def __init__(self, log_user_errors: bool = True):
        self.log_user_errors = log_user_errors

    def classify(self, exc: BaseException) -> Tuple[int, Optional[str]]:
        if isinstance(exc, IncidentServiceError):
            self._log_user_error(exc.status_code, exc)
            return exc.status_code, exc.message

        if isinstance(exc, RequestValidationError):
            message = _validation_message(exc)
            self._log_user_error(400, message)
            return 400, message

        if isinstance(exc, NoResultFound):
            self._log_user_error(404, exc)
            return 404, "not found id"

        if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
            logger.error("request deadline exceeded", error=str(exc))
            return 504, "request timeout"

        if isinstance(exc, RedisConnectionException):
            logger.error("redis unavailable", error=exc.message)
            return 503, "service unavailable"

        if isinstance(exc, (IntegrityError, DataError, OperationalError, DBAPIError)):
            text = str(exc.orig if getattr(exc, "orig", None) else exc).lower()
            for pattern, message, status_code, is_user in DB_ERROR_PATTERNS:
                if pattern in text:
                    if is_user:
                        self._log_user_error(status_code, exc)
                    else:
                        logger.error(
                            "database error", status_code=status_code, error=str(exc)
                        )
                    return status_code, message
            if isinstance(exc, (OperationalError, InterfaceError)) or (
                isinstance(exc, DBAPIError) and exc.connection_invalidated
            ):
                logger.error("database unavailable", error=str(exc))
                return 503, "service unavailable"

        logger.critical(
            "unknown error", error=str(exc), error_type=type(exc).__name__
        )
        return 500, "internal server error"

    def _log_user_error(self, status_code: int, error) -> None:
        if self.log_user_errors:
            logger.info("user error", status_code=status_code, error=str(error))


def register_exception_handlers(app: FastAPI, classifier: ErrorClassifier) -> None:
    """Install handlers that render every error as the standard error body."""

    async def handle(request: Request, exc: Exception) -> Response:
        status_code, message = classifier.classify(exc)
        return error_response(message, status_code)

    async def handle_http(request: Request, exc: StarletteHTTPException) -> Response:
        return error_response(str(exc.detail), exc.status_code)

    app.add_exception_handler(IncidentServiceError, handle)
    app.add_exception_handler(RequestValidationError, handle)
    app.add_exception_handler(NoResultFound, handle)
    app.add_exception_handler(DBAPIError, handle)
    app.add_exception_handler(RedisConnectionException, handle)
    app.add_exception_handler(asyncio.TimeoutError, handle)
    app.add_exception_handler(StarletteHTTPException, handle_http)
    app.add_exception_handler(Exception, handle)
