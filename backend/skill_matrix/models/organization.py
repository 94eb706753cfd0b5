"""Organizational hierarchy: departments, production lines, teams and stations."""

import uuid
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import utcnow


class DepartmentBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)


class Department(DepartmentBase, table=True):
    __tablename__ = "departments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)


class DepartmentCreate(DepartmentBase):
    pass


class DepartmentUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)


class DepartmentPublic(DepartmentBase):
    id: uuid.UUID


class ProductionLineBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    department_id: uuid.UUID = Field(
        foreign_key="departments.id", ondelete="CASCADE", index=True
    )


class ProductionLine(ProductionLineBase, table=True):
    __tablename__ = "production_lines"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)


class ProductionLineCreate(ProductionLineBase):
    pass


class ProductionLineUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)


class ProductionLinePublic(ProductionLineBase):
    id: uuid.UUID


class TeamBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    production_line_id: uuid.UUID = Field(
        foreign_key="production_lines.id", ondelete="CASCADE", index=True
    )


class Team(TeamBase, table=True):
    __tablename__ = "teams"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )


class TeamCreate(TeamBase):
    pass


class TeamUpdate(SQLModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)


class TeamPublic(TeamBase):
    id: uuid.UUID


class StationBase(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    department_id: uuid.UUID = Field(
        foreign_key="departments.id", ondelete="CASCADE", index=True
    )


class Station(StationBase, table=True):
    """A work position owned by a department; the column axis of the matrix."""

    __tablename__ = "stations"
    __table_args__ = (
        UniqueConstraint("department_id", "name", name="uq_stations_department_name"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )


class StationCreate(SQLModel):
    # Length and uniqueness are checked by the hierarchy service after trimming
    name: str
    department_id: uuid.UUID


class StationUpdate(SQLModel):
    name: str | None = None


class StationPublic(StationBase):
    id: uuid.UUID
