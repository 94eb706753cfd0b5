"""Map ORM rows to the typed records the aggregator works on."""

from collections.abc import Iterable

from skill_matrix.domain.access.evaluator import TeamGrant
from skill_matrix.domain.reporting.aggregator import (
    EmployeePlacement,
    EmployeeRecord,
    RatingRecord,
    StationRecord,
)
from skill_matrix.models import (
    Department,
    Employee,
    EmployeeSkill,
    ProductionLine,
    Station,
    Team,
    TeamAccess,
)


def to_employee_record(employee: Employee) -> EmployeeRecord:
    return EmployeeRecord(
        id=employee.id,
        first_name=employee.first_name,
        last_name=employee.last_name,
        role=employee.role,
        contract_type=employee.contract_type,
        team_id=employee.team_id,
    )


def to_placement(
    employee: Employee,
    team: Team | None,
    line: ProductionLine | None,
    department: Department | None,
) -> EmployeePlacement:
    """Build a placement from an outer-joined employee row; missing links stay None."""
    return EmployeePlacement(
        employee=to_employee_record(employee),
        team_id=team.id if team else None,
        team_name=team.name if team else None,
        production_line_id=line.id if line else None,
        production_line_name=line.name if line else None,
        department_id=department.id if department else None,
        department_name=department.name if department else None,
    )


def to_placements(
    rows: Iterable[
        tuple[Employee, Team | None, ProductionLine | None, Department | None]
    ],
) -> list[EmployeePlacement]:
    return [to_placement(*row) for row in rows]


def to_station_record(station: Station) -> StationRecord:
    return StationRecord(
        id=station.id, name=station.name, department_id=station.department_id
    )


def to_rating_record(skill: EmployeeSkill) -> RatingRecord:
    return RatingRecord(
        employee_id=skill.employee_id,
        station_id=skill.station_id,
        rating=skill.rating,
    )


def to_team_grant(access: TeamAccess) -> TeamGrant:
    return TeamGrant(
        team_id=access.team_id, can_read=access.can_read, can_write=access.can_write
    )
