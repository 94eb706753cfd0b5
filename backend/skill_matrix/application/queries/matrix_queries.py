"""Read side of the skill matrix screen."""

from dataclasses import dataclass, field
from uuid import UUID

from sqlmodel import Session

from skill_matrix.core.observability import get_logger
from skill_matrix.domain.access.evaluator import AccessEvaluator
from skill_matrix.domain.reporting.aggregator import (
    EmployeeRecord,
    RatingRecord,
    StationRecord,
)
from skill_matrix.domain.shared.exceptions import DomainError
from skill_matrix.domain.shared.results import QueryResult
from skill_matrix.infrastructure.database.mappers import (
    to_employee_record,
    to_rating_record,
    to_station_record,
)
from skill_matrix.infrastructure.database.repositories.organization import (
    EmployeeRepository,
    StationRepository,
    TeamRepository,
)
from skill_matrix.infrastructure.database.repositories.skills import (
    SkillRatingRepository,
)

logger = get_logger(__name__)

TEAM_ID_REQUIRED = "Team ID is required."


@dataclass(frozen=True)
class TeamData:
    employees: list[EmployeeRecord]
    ratings: list[RatingRecord]


@dataclass(frozen=True)
class MatrixView:
    team_id: UUID
    department_id: UUID | None
    can_write: bool
    employees: list[EmployeeRecord] = field(default_factory=list)
    stations: list[StationRecord] = field(default_factory=list)
    ratings: list[RatingRecord] = field(default_factory=list)


@dataclass(frozen=True)
class DefaultSelection:
    team_id: UUID | None = None
    department_id: UUID | None = None


class MatrixQueries:
    def __init__(self, session: Session) -> None:
        self.teams = TeamRepository(session)
        self.employees = EmployeeRepository(session)
        self.stations = StationRepository(session)
        self.ratings = SkillRatingRepository(session)

    def get_team_data(self, team_id: UUID | None) -> QueryResult[TeamData]:
        """Employees of a team and every rating they hold."""
        if team_id is None:
            return QueryResult(error=TEAM_ID_REQUIRED)
        try:
            employees = [to_employee_record(e) for e in self.employees.list_by_team(team_id)]
            ratings = [
                to_rating_record(r)
                for r in self.ratings.list_for_employees([e.id for e in employees])
            ]
        except DomainError as e:
            logger.error("Failed to load team data", team_id=str(team_id), error=e.message)
            return QueryResult(error=e.message)
        return QueryResult(data=TeamData(employees=employees, ratings=ratings))

    def get_matrix_view(
        self, team_id: UUID, evaluator: AccessEvaluator
    ) -> QueryResult[MatrixView]:
        """Team data plus the stations of the team's department.

        Stations only show once the department is known; a team whose line or
        department no longer resolves gets an empty station axis.
        """
        team_data = self.get_team_data(team_id)
        if team_data.data is None:
            return QueryResult(error=team_data.error)
        try:
            department_id = self.teams.resolve_department_id(team_id)
            stations = (
                [to_station_record(s) for s in self.stations.list_ordered(department_id)]
                if department_id is not None
                else []
            )
        except DomainError as e:
            logger.error("Failed to load stations", team_id=str(team_id), error=e.message)
            return QueryResult(error=e.message)

        station_ids = {s.id for s in stations}
        return QueryResult(
            data=MatrixView(
                team_id=team_id,
                department_id=department_id,
                can_write=evaluator.can_write(team_id),
                employees=team_data.data.employees,
                stations=stations,
                # Ratings at stations of other departments are not shown
                ratings=[r for r in team_data.data.ratings if r.station_id in station_ids],
            )
        )

    def default_selection(self, evaluator: AccessEvaluator) -> DefaultSelection:
        """Pre-select the team for a non-admin who can read exactly one team."""
        if evaluator.is_admin:
            return DefaultSelection()
        readable = evaluator.readable_team_ids()
        if len(readable) != 1:
            return DefaultSelection()
        (team_id,) = readable
        return DefaultSelection(
            team_id=team_id, department_id=self.teams.resolve_department_id(team_id)
        )
