"""
Domain Exceptions

Typed exceptions for business rule violations in the skill matrix. Each
carries an ``ErrorType`` discriminator so the API layer can map it to an HTTP
status without inspecting the concrete class.
"""

from enum import Enum
from uuid import UUID


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    VALIDATION = "validation"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    REPOSITORY = "repository"


class DomainError(Exception):
    """Base class for all domain errors with type discrimination."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, str | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for API responses."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DomainError):
    """Raised when domain validation rules are violated."""

    def __init__(
        self,
        field_name: str,
        value: str | int | float | bool | None,
        message: str,
        error_code: str | None = None,
    ) -> None:
        self.field_name = field_name
        self.value = value
        self.error_code = error_code or "VALIDATION_ERROR"
        details: dict[str, str | int | bool | None] = {
            "field": field_name,
            "value": str(value) if value is not None else None,
            "error_code": self.error_code,
        }
        super().__init__(message, ErrorType.VALIDATION, details)


class PermissionDeniedError(DomainError):
    """Raised when the current user may not perform an action."""

    def __init__(self, action: str, message: str | None = None) -> None:
        self.action = action
        super().__init__(
            message or f"You do not have permission to {action}.",
            ErrorType.PERMISSION,
            {"action": action},
        )


class EntityNotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, entity_type: str, entity_id: UUID | str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            ErrorType.NOT_FOUND,
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class DuplicateNameError(DomainError):
    """Raised when a name must be unique within its parent and is not."""

    def __init__(self, message: str, name: str) -> None:
        self.name = name
        super().__init__(message, ErrorType.CONFLICT, {"name": name})


class ValidationTimeoutError(DomainError):
    """Raised when a bounded validation query does not finish in time."""

    def __init__(self, message: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message, ErrorType.TIMEOUT, {"timeout_seconds": str(timeout_seconds)}
        )


# Repository exceptions
class RepositoryError(DomainError):
    """Raised when the backing store fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorType.REPOSITORY)


class EntityAlreadyExistsError(DomainError):
    """Raised when a write violates a uniqueness constraint."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorType.CONFLICT)
