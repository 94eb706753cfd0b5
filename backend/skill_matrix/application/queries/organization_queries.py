"""Organization tree for the company structure screen."""

from collections import defaultdict
from uuid import UUID

from sqlmodel import Session, SQLModel

from skill_matrix.domain.access.evaluator import AccessEvaluator
from skill_matrix.domain.reporting.aggregator import (
    TeamStatistics,
    calculate_team_statistics,
)
from skill_matrix.infrastructure.database.mappers import to_employee_record
from skill_matrix.infrastructure.database.repositories.organization import (
    DepartmentRepository,
    EmployeeRepository,
    ProductionLineRepository,
    StationRepository,
    TeamRepository,
)
from skill_matrix.models import EmployeePublic, StationPublic


class TeamNode(SQLModel):
    id: UUID
    name: str
    can_write: bool
    statistics: TeamStatistics
    employees: list[EmployeePublic]


class ProductionLineNode(SQLModel):
    id: UUID
    name: str
    teams: list[TeamNode]


class DepartmentNode(SQLModel):
    id: UUID
    name: str
    production_lines: list[ProductionLineNode]
    stations: list[StationPublic]


class OrganizationTree(SQLModel):
    departments: list[DepartmentNode]


def build_organization_tree(
    session: Session, evaluator: AccessEvaluator
) -> OrganizationTree:
    """Departments -> lines -> teams -> employees, pruned to readable teams.

    Admins see every node. Other users only see teams they can read and the
    lines and departments above them.
    """
    visible = None if evaluator.is_admin else evaluator.readable_team_ids()
    teams = TeamRepository(session).list_ordered(visible)
    employees = EmployeeRepository(session).list_placements(
        [t.id for t in teams] if visible is not None else None
    )
    employees_by_team: dict[UUID | None, list] = defaultdict(list)
    for employee, *_ in employees:
        employees_by_team[employee.team_id].append(employee)

    teams_by_line: dict[UUID, list[TeamNode]] = defaultdict(list)
    for team in teams:
        members = employees_by_team.get(team.id, [])
        teams_by_line[team.production_line_id].append(
            TeamNode(
                id=team.id,
                name=team.name,
                can_write=evaluator.can_write(team.id),
                statistics=calculate_team_statistics(
                    to_employee_record(e) for e in members
                ),
                employees=[EmployeePublic.model_validate(e) for e in members],
            )
        )

    lines_by_department: dict[UUID, list[ProductionLineNode]] = defaultdict(list)
    for line in ProductionLineRepository(session).list_ordered():
        line_teams = teams_by_line.get(line.id, [])
        if visible is not None and not line_teams:
            continue
        lines_by_department[line.department_id].append(
            ProductionLineNode(id=line.id, name=line.name, teams=line_teams)
        )

    stations_by_department: dict[UUID, list[StationPublic]] = defaultdict(list)
    for station in StationRepository(session).list_ordered():
        stations_by_department[station.department_id].append(
            StationPublic.model_validate(station)
        )

    departments = []
    for department in DepartmentRepository(session).list_ordered():
        lines = lines_by_department.get(department.id, [])
        if visible is not None and not lines:
            continue
        departments.append(
            DepartmentNode(
                id=department.id,
                name=department.name,
                production_lines=lines,
                stations=stations_by_department.get(department.id, []),
            )
        )
    return OrganizationTree(departments=departments)
