from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any] | None:
        """Structured detail rendered alongside the message."""
        return None


class ValidationError(AppError):
    """Bad input: inverted date range, missing reason, negative hours."""

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.fields = fields or {}

    @property
    def context(self) -> dict[str, Any] | None:
        return {"fields": self.fields} if self.fields else None


class AuthorizationError(AppError):
    """The acting principal may not perform this operation."""

    def __init__(self, message: str = "Admin access required") -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class NotFoundError(AppError):
    """Unknown user, leave request or TOIL entry."""

    def __init__(self, resource: str, resource_id: object) -> None:
        super().__init__(f"{resource} not found", status_code=status.HTTP_404_NOT_FOUND)
        self.resource = resource
        self.resource_id = resource_id

    @property
    def context(self) -> dict[str, Any] | None:
        return {"resource": self.resource, "id": str(self.resource_id)}


class ConflictError(AppError):
    """The record has already moved on; re-read before deciding again."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class InsufficientBalanceError(AppError):
    """Requested amount exceeds what the ledger says is left."""

    def __init__(self, message: str, *, current: float, required: float) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)
        self.current = current
        self.required = required

    @property
    def context(self) -> dict[str, Any] | None:
        return {"current": self.current, "required": self.required}


class InfrastructureError(AppError):
    """Persistence or cache could not be reached."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        self.operation = operation


class CompensationError(InfrastructureError):
    """A failed write could not be rolled back; manual reconciliation is needed."""

    def __init__(self, message: str, step: str) -> None:
        super().__init__(message, operation=step)
        self.step = step


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InfrastructureError):
        logger.error("Infrastructure failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message if not isinstance(exc, InfrastructureError) else "Service temporarily unavailable",
            status_code=exc.status_code,
            context=exc.context,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
