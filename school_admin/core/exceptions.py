from typing import Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotFoundError(ServiceError):
    """Referenced record does not exist."""

    def __init__(self, message: str = "Record not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ValidationError(ServiceError):
    """Malformed input or duplicate unique key. `field` names the offending input when known."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_CONTENT)
        self.field = field


class StateConflictError(ServiceError):
    """Operation not allowed in the record's current state, or a concurrent modification. Retryable."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ReferentialIntegrityError(ServiceError):
    """Delete refused while protected dependents still reference the record."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class PermissionDeniedError(ServiceError):
    def __init__(self, message: str = "You do not have access to this record") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


CONCURRENT_MODIFICATION_MESSAGE = "Record not found or was modified by another request; reload and retry."
