"""Employee and skill rating models."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import MAX_RATING, MIN_RATING, ContractType, EmployeeRole, utcnow


class EmployeeBase(SQLModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: EmployeeRole = Field(default=EmployeeRole.OPERATOR)
    contract_type: ContractType = Field(default=ContractType.PERMANENT)


class Employee(EmployeeBase, table=True):
    __tablename__ = "employees"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    team_id: uuid.UUID | None = Field(
        default=None, foreign_key="teams.id", ondelete="CASCADE", index=True
    )
    user_id: uuid.UUID | None = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class EmployeeCreate(EmployeeBase):
    team_id: uuid.UUID


class EmployeeUpdate(SQLModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    role: EmployeeRole | None = None
    contract_type: ContractType | None = None
    team_id: uuid.UUID | None = None


class EmployeePublic(EmployeeBase):
    id: uuid.UUID
    team_id: uuid.UUID | None
    user_id: uuid.UUID | None = None


class EmployeeImportRow(SQLModel):
    """One already-parsed row of a bulk employee import."""

    first_name: str | None = None
    last_name: str | None = None
    role: str | None = None
    contract_type: str | None = None


class EmployeeSkill(SQLModel, table=True):
    """Current rating of one employee at one station."""

    __tablename__ = "employee_skills"
    __table_args__ = (
        UniqueConstraint(
            "employee_id", "station_id", name="uq_employee_skills_employee_station"
        ),
        CheckConstraint(
            f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}",
            name="ck_employee_skills_rating_range",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    employee_id: uuid.UUID = Field(
        foreign_key="employees.id", ondelete="CASCADE", index=True
    )
    station_id: uuid.UUID = Field(
        foreign_key="stations.id", ondelete="CASCADE", index=True
    )
    rating: int
    last_updated_by_user_id: uuid.UUID | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )


class EmployeeSkillPublic(SQLModel):
    employee_id: uuid.UUID
    station_id: uuid.UUID
    rating: int


class RatingUpdate(SQLModel):
    employee_id: uuid.UUID
    station_id: uuid.UUID
    # None clears the rating
    rating: int | None = Field(default=None, ge=MIN_RATING, le=MAX_RATING)
