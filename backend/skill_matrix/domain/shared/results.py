"""Result envelopes for operations that report failure instead of raising."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from .exceptions import ErrorType

T = TypeVar("T")


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a write: ``error`` is set exactly when ``success`` is False."""

    success: bool
    error: str | None = None
    error_type: ErrorType | None = None

    @classmethod
    def ok(cls) -> "MutationResult":
        return cls(success=True)

    @classmethod
    def failed(
        cls, error: str, error_type: ErrorType = ErrorType.REPOSITORY
    ) -> "MutationResult":
        return cls(success=False, error=error, error_type=error_type)


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Outcome of a read. Never carries partial data alongside an error."""

    data: T | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None
