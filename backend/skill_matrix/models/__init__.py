"""SQLModel database models for the application."""

from sqlmodel import Field, SQLModel

from .access import (
    TeamAccess,
    TeamAccessFlags,
    TeamAccessGrant,
    TeamAccessPublic,
    TeamAccessSync,
    User,
    UserCreate,
    UserPermission,
    UserPublic,
    UsersPublic,
    UserUpdate,
)
from .base import ContractType, EmployeeRole, UserRole
from .employee import (
    Employee,
    EmployeeCreate,
    EmployeeImportRow,
    EmployeePublic,
    EmployeeSkill,
    EmployeeSkillPublic,
    EmployeeUpdate,
    RatingUpdate,
)
from .organization import (
    Department,
    DepartmentCreate,
    DepartmentPublic,
    DepartmentUpdate,
    ProductionLine,
    ProductionLineCreate,
    ProductionLinePublic,
    ProductionLineUpdate,
    Station,
    StationCreate,
    StationPublic,
    StationUpdate,
    Team,
    TeamCreate,
    TeamPublic,
    TeamUpdate,
)


# Generic message
class Message(SQLModel):
    message: str


# JSON payload containing access token
class Token(SQLModel):
    access_token: str
    token_type: str = "bearer"


# Contents of JWT token
class TokenPayload(SQLModel):
    sub: str | None = None


class ContactRequest(SQLModel):
    email: str | None = None
    subject: str | None = None
    message: str | None = None


class QuoteRequest(SQLModel):
    company: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    message: str | None = Field(default=None)


__all__ = [
    "SQLModel",
    "ContractType",
    "EmployeeRole",
    "UserRole",
    # Organization
    "Department",
    "DepartmentCreate",
    "DepartmentPublic",
    "DepartmentUpdate",
    "ProductionLine",
    "ProductionLineCreate",
    "ProductionLinePublic",
    "ProductionLineUpdate",
    "Team",
    "TeamCreate",
    "TeamPublic",
    "TeamUpdate",
    "Station",
    "StationCreate",
    "StationPublic",
    "StationUpdate",
    # Employees
    "Employee",
    "EmployeeCreate",
    "EmployeeImportRow",
    "EmployeePublic",
    "EmployeeSkill",
    "EmployeeSkillPublic",
    "EmployeeUpdate",
    "RatingUpdate",
    # Access
    "User",
    "UserCreate",
    "UserUpdate",
    "UserPublic",
    "UsersPublic",
    "TeamAccess",
    "TeamAccessFlags",
    "TeamAccessGrant",
    "TeamAccessPublic",
    "TeamAccessSync",
    "UserPermission",
    # API payloads
    "Message",
    "Token",
    "TokenPayload",
    "ContactRequest",
    "QuoteRequest",
]
