from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class StockError(Exception):
    """Base class for failures raised by the stock domain operations."""

    code = "stock_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(StockError):
    """A required field is missing or a value is out of range. Nothing was written."""

    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(StockError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(StockError):
    """Duplicate key on create, or an operation not allowed in the record's current state."""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class OperationFailed(StockError):
    """A multi-step write failed and was rolled back as a whole."""

    code = "operation_failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def stock_error_handler(request: Request, exc: StockError):
    if isinstance(exc, OperationFailed):
        logger.error("operation.failed", extra={"extra_data": {"path": request.url.path, "error": exc.message}})
    return ErrorEnvelope(status_code=exc.status_code, code=exc.code, message=exc.message, details=exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )


__all__ = [
    "ConflictError",
    "ErrorEnvelope",
    "NotFoundError",
    "OperationFailed",
    "StockError",
    "ValidationError",
    "http_exception_handler",
    "stock_error_handler",
    "validation_exception_handler",
]
