from typing import Dict, List, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def detail(self):
        return self.message


class TenantResolutionError(ServiceError):
    """No usable school_id claim on the verified token. Never retried."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFoundOrForbidden(ServiceError):
    """Entity is missing or owned by another school. Callers cannot tell which."""

    def __init__(self, entity: str) -> None:
        super().__init__(f"{entity} not found", status.HTTP_404_NOT_FOUND)
        self.entity = entity


class ValidationError(ServiceError):
    """Malformed or missing fields. Carries field-level detail."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [{"field": field, "message": message}])

    @property
    def detail(self):
        return {"message": self.message, "errors": self.errors}


class ConflictError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class TransactionFailure(ServiceError):
    """A batch write failed at the storage layer and was rolled back entirely."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} failed; no changes were applied", status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.operation = operation
