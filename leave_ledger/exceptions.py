from __future__ import annotations

from decimal import Decimal

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed command, rejected before touching the ledger."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class NotFoundError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class CategoryNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Leave category not found")


class LedgerRowMissingError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Leave balance record not found for this employee and leave category")


class ApplicationNotFoundError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Leave application not found")


class InsufficientBalanceError(AppError):
    """Requested days exceed the current balance. Never truncated silently."""

    def __init__(self, available: Decimal, requested: Decimal | int) -> None:
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient leave balance. Available: {available}, Requested: {requested}",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class ForbiddenError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class InvalidStateError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class DirectoryUnavailableError(AppError):
    """Employee could not be resolved through the employee directory."""

    def __init__(self, employee_id: object) -> None:
        self.employee_id = employee_id
        super().__init__(
            f"Employee {employee_id} not found in directory",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
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
