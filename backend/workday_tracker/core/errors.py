# FILE: backend/workday_tracker/core/errors.py
# ARCHIVE ENGINE - ERROR TAXONOMY
# 1. NotFoundError and ValidationError are client-facing and pass through every layer.
# 2. Anything else escaping an operation becomes a ServiceError with the cause chained.

import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


class ErrorCodes:
    DATA_NOT_FOUND = "data/not-found"
    DATA_ALREADY_EXISTS = "data/already-exists"
    DATA_INVALID = "data/invalid"
    DATA_STALE = "data/stale"

    VALIDATION_INVALID_INPUT = "validation/invalid-input"

    SERVICE_UNAVAILABLE = "service/unavailable"

    UNKNOWN_ERROR = "unknown/error"


class AppError(Exception):
    """Base application error carrying a code, an HTTP-style status and details."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCodes.UNKNOWN_ERROR,
        status: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "status": self.status, "details": self.details}


class NotFoundError(AppError):
    def __init__(self, message: str, code: str = ErrorCodes.DATA_NOT_FOUND, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, 404, details)


class ValidationError(AppError):
    def __init__(self, message: str, code: str = ErrorCodes.DATA_INVALID, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, 400, details)


class ServiceError(AppError):
    """Store or infrastructure failure. Safe for the caller to retry with backoff."""

    def __init__(
        self,
        message: str,
        service: str,
        code: str = ErrorCodes.SERVICE_UNAVAILABLE,
        status: int = 503,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code, status, details)
        self.service = service


def validate_request(model: Type[M], data: Dict[str, Any]) -> M:
    """Builds a request model, turning pydantic failures into a ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        issues = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError(
            f"Invalid {model.__name__} parameters",
            ErrorCodes.VALIDATION_INVALID_INPUT,
            details={"errors": issues},
        ) from e


def service_operation(operation: str, service: str = "archiveService") -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Wraps a public async operation in the error boundary.
    NotFoundError / ValidationError are re-raised unchanged, as is a ServiceError
    raised deeper down. Everything else is logged and re-raised as
    ServiceError("Failed to <operation>").
    """
    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(fn)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await fn(*args, **kwargs)
            except (NotFoundError, ValidationError, ServiceError):
                raise
            except Exception as e:
                logger.error(f"--- [{service}] {operation} failed: {e} ---", exc_info=True)
                raise ServiceError(
                    f"Failed to {operation}",
                    service,
                    details={"operation": operation, "originalError": str(e)},
                ) from e
        return wrapper
    return decorator
