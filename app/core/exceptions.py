from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.security import clear_session_cookie

logger = logging.getLogger("printshelf")

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


class AppError(Exception):
    """Base class for errors rendered as `{success: false, message, errors}`."""

    status_code = 500
    default_message = GENERIC_ERROR_MESSAGE

    def __init__(self, message: str | None = None, errors: dict[str, str] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload: dict = {"success": False, "message": self.message}
        if self.errors:
            payload["errors"] = dict(self.errors)
        return payload


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"

    def __init__(self, message: str | None = None, errors: dict[str, str] | None = None, *, clear_session: bool = False) -> None:
        super().__init__(message, errors)
        # Set when the session cookie points at a user that no longer exists.
        self.clear_session = clear_session


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Already exists"


class PayloadTooLargeError(AppError):
    status_code = 413
    default_message = "File too large"


class UnexpectedError(AppError):
    status_code = 500


def _field_name(location: tuple) -> str:
    # ("body", "email") -> "email"; ("query", "limit") -> "limit"
    parts = [str(part) for part in location if part not in ("body", "query", "path", "form", "cookie", "header")]
    return ".".join(parts) or "general"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("event=request_failed path=%s status=%s message=%s", request.url.path, exc.status_code, exc.message)
        response = JSONResponse(exc.to_payload(), status_code=exc.status_code)
        if getattr(exc, "clear_session", False):
            clear_session_cookie(response)
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors: dict[str, str] = {}
        for issue in exc.errors():
            errors.setdefault(_field_name(tuple(issue.get("loc", ()))), issue.get("msg", "Invalid value"))
        return JSONResponse(
            {"success": False, "message": "Validation failed", "errors": errors},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("event=unhandled_error path=%s", request.url.path)
        return JSONResponse({"success": False, "message": GENERIC_ERROR_MESSAGE}, status_code=500)
