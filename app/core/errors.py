import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_error(self) -> dict[str, Any]:
        error: dict[str, Any] = {"type": self.code}
        if self.details is not None:
            error["details"] = self.details
        return error


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class DuplicateEmailError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "EMAIL_DUPLICATE"
    default_message = "Email already exists"


class ActiveOtpConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    code = "ACTIVE_OTP_CONFLICT"
    default_message = "An active OTP already exists for this user. Try again later."


class DatabaseError(ServiceError):
    code = "DATABASE_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, operation: str | None = None):
        super().__init__(message)
        self.operation = operation

    def to_error(self) -> dict[str, Any]:
        # the operation label stays in the logs
        return {"type": self.code}


class OtpGatewayError(ServiceError):
    code = "OTP_SERVICE_ERROR"
    default_message = "OTP service unavailable"


class InternalError(ServiceError):
    default_message = "Internal server error"


@contextmanager
def wrap_db_errors(operation: str, entity: str) -> Iterator[None]:
    """Re-raise storage failures as a single ``DatabaseError`` labelled with the operation."""
    try:
        yield
    except ServiceError:
        raise
    except SQLAlchemyError as exc:
        logger.exception("Database failure while %s %s", operation, entity, extra={"operation": operation})
        raise DatabaseError(f"Error {operation} {entity}", operation=operation) from exc
