"""Repositories for the organization hierarchy and employees."""

from collections.abc import Collection
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select

from skill_matrix.domain.shared.exceptions import RepositoryError
from skill_matrix.models import (
    Department,
    Employee,
    ProductionLine,
    Station,
    Team,
)

from .base import BaseRepository

PlacementRow = tuple[Employee, Team | None, ProductionLine | None, Department | None]


class DepartmentRepository(BaseRepository[Department]):
    @property
    def entity_class(self) -> type[Department]:
        return Department

    def list_ordered(self) -> list[Department]:
        try:
            return list(self.session.exec(select(Department).order_by(Department.name)))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list departments: {e}") from e


class ProductionLineRepository(BaseRepository[ProductionLine]):
    @property
    def entity_class(self) -> type[ProductionLine]:
        return ProductionLine

    def list_ordered(self) -> list[ProductionLine]:
        try:
            statement = select(ProductionLine).order_by(ProductionLine.name)
            return list(self.session.exec(statement))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list production lines: {e}") from e


class TeamRepository(BaseRepository[Team]):
    @property
    def entity_class(self) -> type[Team]:
        return Team

    def list_ordered(self, team_ids: Collection[UUID] | None = None) -> list[Team]:
        """All teams, or only ``team_ids`` when given."""
        try:
            statement = select(Team).order_by(Team.name)
            if team_ids is not None:
                statement = statement.where(col(Team.id).in_(list(team_ids)))
            return list(self.session.exec(statement))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list teams: {e}") from e

    def resolve_department_id(self, team_id: UUID) -> UUID | None:
        """Follow team -> production line -> department."""
        try:
            statement = (
                select(ProductionLine.department_id)
                .join(Team, col(Team.production_line_id) == col(ProductionLine.id))
                .where(Team.id == team_id)
            )
            return self.session.exec(statement).first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to resolve team department: {e}") from e


class StationRepository(BaseRepository[Station]):
    @property
    def entity_class(self) -> type[Station]:
        return Station

    def list_ordered(self, department_id: UUID | None = None) -> list[Station]:
        try:
            statement = select(Station).order_by(Station.name)
            if department_id is not None:
                statement = statement.where(Station.department_id == department_id)
            return list(self.session.exec(statement))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list stations: {e}") from e

    def name_exists(
        self, department_id: UUID, name: str, exclude_id: UUID | None = None
    ) -> bool:
        try:
            statement = select(Station.id).where(
                Station.department_id == department_id, Station.name == name
            )
            if exclude_id is not None:
                statement = statement.where(Station.id != exclude_id)
            return self.session.exec(statement).first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to check station name: {e}") from e


class EmployeeRepository(BaseRepository[Employee]):
    @property
    def entity_class(self) -> type[Employee]:
        return Employee

    def list_by_team(self, team_id: UUID) -> list[Employee]:
        try:
            statement = (
                select(Employee)
                .where(Employee.team_id == team_id)
                .order_by(Employee.last_name, Employee.first_name)
            )
            return list(self.session.exec(statement))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list team employees: {e}") from e

    def list_placements(
        self, team_ids: Collection[UUID] | None = None
    ) -> list[PlacementRow]:
        """Employees outer-joined up to their department.

        Links that no longer resolve come back as None rather than dropping
        the employee.
        """
        try:
            statement = (
                select(Employee, Team, ProductionLine, Department)
                .join(Team, col(Employee.team_id) == col(Team.id), isouter=True)
                .join(
                    ProductionLine,
                    col(Team.production_line_id) == col(ProductionLine.id),
                    isouter=True,
                )
                .join(
                    Department,
                    col(ProductionLine.department_id) == col(Department.id),
                    isouter=True,
                )
                .order_by(Employee.last_name, Employee.first_name)
            )
            if team_ids is not None:
                statement = statement.where(col(Employee.team_id).in_(list(team_ids)))
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load employee placements: {e}") from e
