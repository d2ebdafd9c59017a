from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    field: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code
        super().__init__(self.message)


class InvalidInput(AppError):
    """Malformed request data, rejected before any state change."""

    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PolicyValidationError(AppError):
    """Policy configuration violates an invariant."""

    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")


class InsufficientBalance(AppError):
    """Reservation denied because the balance cannot cover it."""

    default_status_code = status.HTTP_409_CONFLICT


class InvalidRange(AppError):
    """Bad or overlapping leave dates."""

    default_status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotAuthorized(AppError):
    """Actor's role does not permit the operation."""

    default_status_code = status.HTTP_403_FORBIDDEN


class InvalidState(AppError):
    """Operation attempted on an application or token in the wrong state."""

    default_status_code = status.HTTP_409_CONFLICT


class PendingReservationsExist(AppError):
    """Rollover blocked for a balance that still holds reservations."""

    default_status_code = status.HTTP_409_CONFLICT


class TypeInUse(AppError):
    """Leave type is referenced by history and cannot be changed or removed."""

    default_status_code = status.HTTP_409_CONFLICT


class NotFound(AppError):
    default_status_code = status.HTTP_404_NOT_FOUND


class Conflict(AppError):
    default_status_code = status.HTTP_409_CONFLICT


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            field=getattr(exc, "field", None),
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
