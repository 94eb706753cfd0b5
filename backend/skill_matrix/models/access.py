"""Login accounts and team-scoped access grants."""

import uuid
from datetime import datetime

from pydantic import EmailStr
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import UserRole, utcnow


# Shared properties
class UserBase(SQLModel):
    email: EmailStr = Field(unique=True, index=True, max_length=255)
    role: UserRole = Field(default=UserRole.USER)
    is_active: bool = True
    full_name: str | None = Field(default=None, max_length=255)


# Properties to receive via API on creation
class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)


class UserUpdate(SQLModel):
    role: UserRole | None = None
    is_active: bool | None = None
    full_name: str | None = Field(default=None, max_length=255)


# Database model
class User(UserBase, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # Supabase-managed accounts have no local password
    hashed_password: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserPublic(UserBase):
    id: uuid.UUID


class UsersPublic(SQLModel):
    data: list[UserPublic]
    count: int


class TeamAccess(SQLModel, table=True):
    """Per-user, per-team read/write grant. Absence means no access."""

    __tablename__ = "team_access"
    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_team_access_user_team"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    team_id: uuid.UUID = Field(foreign_key="teams.id", ondelete="CASCADE", index=True)
    can_read: bool = True
    can_write: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )


class UserPermission(SQLModel, table=True):
    """
    Legacy fine-grained permission row.

    Derived from ``team_access`` on every grant so older readers keep working;
    never read by the access checks.
    """

    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "team_id", name="uq_user_permissions_user_team"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    team_id: uuid.UUID = Field(foreign_key="teams.id", ondelete="CASCADE", index=True)
    can_view_team: bool = False
    can_edit_team_details: bool = False
    can_manage_employees: bool = False
    can_manage_skills: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )


class TeamAccessFlags(SQLModel):
    can_read: bool = True
    can_write: bool = False


class TeamAccessGrant(TeamAccessFlags):
    team_id: uuid.UUID


class TeamAccessPublic(TeamAccessGrant):
    user_id: uuid.UUID


class TeamAccessSync(SQLModel):
    """Desired full set of grants for one user."""

    grants: list[TeamAccessGrant]
