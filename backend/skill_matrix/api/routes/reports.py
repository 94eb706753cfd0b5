"""Dashboard reports."""

import uuid

from fastapi import APIRouter, HTTPException, status
from sqlmodel import Field, SQLModel

from skill_matrix.api.deps import EvaluatorDep, SessionDep
from skill_matrix.application.queries.dashboard_queries import (
    DashboardQueries,
    visible_scope,
)
from skill_matrix.domain.reporting.aggregator import (
    StationGap,
    StationRatingAggregate,
    TeamStatistics,
    UpskillCandidate,
    WorkforceBreakdown,
)
from skill_matrix.domain.shared.results import QueryResult

router = APIRouter(prefix="/reports", tags=["reports"])


class GapReportRequest(SQLModel):
    targets: dict[uuid.UUID, int] = Field(default_factory=dict)


class UpskillCandidatePublic(SQLModel):
    employee_id: uuid.UUID
    name: str
    rating: int


class StationGapPublic(SQLModel):
    station_id: uuid.UUID
    station_name: str
    target: int
    qualified_count: int
    gap: int
    status: str
    label: str
    level_one_candidates: list[UpskillCandidatePublic]
    level_two_candidates: list[UpskillCandidatePublic]


def _unwrap(result: QueryResult):
    if result.data is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error
        )
    return result.data


def _candidates(candidates: list[UpskillCandidate]) -> list[UpskillCandidatePublic]:
    return [
        UpskillCandidatePublic(employee_id=c.employee_id, name=c.name, rating=c.rating)
        for c in candidates
    ]


def _public_gap(gap: StationGap) -> StationGapPublic:
    return StationGapPublic(
        station_id=gap.station_id,
        station_name=gap.station_name,
        target=gap.target,
        qualified_count=gap.qualified_count,
        gap=gap.gap,
        status=gap.status.value,
        label=gap.label,
        level_one_candidates=_candidates(gap.level_one_candidates),
        level_two_candidates=_candidates(gap.level_two_candidates),
    )


@router.get("/teams/{team_id}/statistics", response_model=TeamStatistics)
def read_team_statistics(
    team_id: uuid.UUID, session: SessionDep, evaluator: EvaluatorDep
) -> TeamStatistics:
    evaluator.require_read(team_id)
    return _unwrap(DashboardQueries(session).team_statistics(team_id))


@router.get("/station-ratings", response_model=list[StationRatingAggregate])
def read_station_ratings(
    session: SessionDep,
    evaluator: EvaluatorDep,
    department_id: uuid.UUID | None = None,
    production_line_id: uuid.UUID | None = None,
    team_id: uuid.UUID | None = None,
) -> list[StationRatingAggregate]:
    """
    Average rating per station at the granularity of the narrowest filter.
    """
    scope = visible_scope(evaluator, department_id, production_line_id, team_id)
    return _unwrap(DashboardQueries(session).station_ratings(scope))


@router.post("/teams/{team_id}/gap-report", response_model=list[StationGapPublic])
def create_gap_report(
    team_id: uuid.UUID,
    request: GapReportRequest,
    session: SessionDep,
    evaluator: EvaluatorDep,
) -> list[StationGapPublic]:
    """
    Qualified headcount per station against the submitted targets.

    Targets are not stored; stations without a target count as 0.
    """
    evaluator.require_read(team_id)
    report = _unwrap(DashboardQueries(session).gap_report(team_id, request.targets))
    return [_public_gap(gap) for gap in report]


@router.get("/workforce", response_model=WorkforceBreakdown)
def read_workforce(session: SessionDep, evaluator: EvaluatorDep) -> WorkforceBreakdown:
    """
    Headcount by department and by contract type over readable teams.
    """
    team_ids = None if evaluator.is_admin else evaluator.readable_team_ids()
    return _unwrap(DashboardQueries(session).workforce_breakdown(team_ids))
