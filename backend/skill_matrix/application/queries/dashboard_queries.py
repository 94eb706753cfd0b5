"""
Dashboard queries.

Each query loads rows, maps them to typed records and hands them to the pure
aggregator functions. Store failures come back as ``QueryResult.error`` with
no data so the caller never renders a partial view.
"""

from collections.abc import Collection, Mapping
from uuid import UUID

from sqlmodel import Session

from skill_matrix.core.config import settings
from skill_matrix.core.observability import get_logger
from skill_matrix.domain.access.evaluator import AccessEvaluator
from skill_matrix.domain.reporting.aggregator import (
    AggregateScope,
    StationGap,
    StationRatingAggregate,
    TeamStatistics,
    WorkforceBreakdown,
    aggregate_station_ratings,
    build_gap_report,
    calculate_team_statistics,
    calculate_workforce_breakdown,
)
from skill_matrix.domain.shared.exceptions import DomainError, ErrorType
from skill_matrix.domain.shared.results import QueryResult
from skill_matrix.infrastructure.database.mappers import (
    to_employee_record,
    to_placements,
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


class DashboardQueries:
    def __init__(self, session: Session) -> None:
        self.teams = TeamRepository(session)
        self.employees = EmployeeRepository(session)
        self.stations = StationRepository(session)
        self.ratings = SkillRatingRepository(session)

    def team_statistics(self, team_id: UUID) -> QueryResult[TeamStatistics]:
        try:
            employees = [to_employee_record(e) for e in self.employees.list_by_team(team_id)]
        except DomainError as e:
            logger.error("Team statistics failed", team_id=str(team_id), error=e.message)
            return QueryResult(error=e.message)
        return QueryResult(data=calculate_team_statistics(employees))

    def station_ratings(
        self, scope: AggregateScope
    ) -> QueryResult[list[StationRatingAggregate]]:
        try:
            placements = to_placements(
                self.employees.list_placements(scope.visible_team_ids)
            )
            stations = [to_station_record(s) for s in self.stations.list_ordered()]
            ratings = [
                to_rating_record(r)
                for r in self.ratings.list_for_employees(
                    [p.employee.id for p in placements]
                )
            ]
        except DomainError as e:
            logger.error("Station rating aggregate failed", error=e.message)
            return QueryResult(error=e.message)
        return QueryResult(
            data=aggregate_station_ratings(placements, stations, ratings, scope)
        )

    def gap_report(
        self, team_id: UUID, targets: Mapping[UUID, int] | None = None
    ) -> QueryResult[list[StationGap]]:
        """Gap per station of the team's department against request-scoped targets."""
        try:
            department_id = self.teams.resolve_department_id(team_id)
            if department_id is None:
                return QueryResult(data=[])
            stations = [
                to_station_record(s) for s in self.stations.list_ordered(department_id)
            ]
            employees = [to_employee_record(e) for e in self.employees.list_by_team(team_id)]
            ratings = [
                to_rating_record(r)
                for r in self.ratings.list_for_employees([e.id for e in employees])
            ]
            report = build_gap_report(
                stations,
                employees,
                ratings,
                targets,
                qualifying_rating=settings.QUALIFYING_RATING,
            )
        except DomainError as e:
            if e.error_type != ErrorType.REPOSITORY:
                raise
            logger.error("Gap report failed", team_id=str(team_id), error=e.message)
            return QueryResult(error=e.message)
        return QueryResult(data=report)

    def workforce_breakdown(
        self, team_ids: Collection[UUID] | None = None
    ) -> QueryResult[WorkforceBreakdown]:
        try:
            placements = to_placements(self.employees.list_placements(team_ids))
        except DomainError as e:
            logger.error("Workforce breakdown failed", error=e.message)
            return QueryResult(error=e.message)
        return QueryResult(data=calculate_workforce_breakdown(placements))


def visible_scope(
    evaluator: AccessEvaluator,
    department_id: UUID | None = None,
    production_line_id: UUID | None = None,
    team_id: UUID | None = None,
) -> AggregateScope:
    """Filters for the station rating aggregate as seen by one user.

    Non-admins only aggregate over teams they can read. A user with a single
    readable team and no filters gets that team's breakdown.
    """
    if evaluator.is_admin:
        return AggregateScope(department_id, production_line_id, team_id)
    readable = evaluator.readable_team_ids()
    if team_id is not None:
        evaluator.require_read(team_id)
    elif len(readable) == 1 and department_id is None and production_line_id is None:
        (team_id,) = readable
    return AggregateScope(
        department_id=department_id,
        production_line_id=production_line_id,
        team_id=team_id,
        visible_team_ids=frozenset(readable),
    )
