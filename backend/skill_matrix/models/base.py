"""Shared enums and helpers for skill matrix models."""

from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    """Application role of a login account."""

    ADMIN = "admin"
    USER = "user"


class EmployeeRole(str, Enum):
    """Job role of an employee within a team."""

    OPERATOR = "Operator"
    TRAINER = "Trainer"
    HANCHO = "Hancho"
    TEAMLEADER = "Teamleader"

    @property
    def is_leadership(self) -> bool:
        return self in (EmployeeRole.HANCHO, EmployeeRole.TEAMLEADER)

    @property
    def is_workforce(self) -> bool:
        return self in (EmployeeRole.TRAINER, EmployeeRole.OPERATOR)


class ContractType(str, Enum):
    """Employment contract of an employee."""

    PERMANENT = "Permanent"
    TEMPORARY = "Temporary"


# Ratings are stored as integers 1..5; "no rating" is the absence of a row.
MIN_RATING = 1
MAX_RATING = 5
