"""
Hierarchy Aggregator

Read-only views over the organization tree and the flat rating table:
team statistics, per-station rating averages at a chosen hierarchy
granularity, and the station gap report with upskill candidates.

Every function here is pure and operates on the typed records produced by
``infrastructure.database.mappers``; none of them touch the database.
"""

from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from skill_matrix.domain.shared.exceptions import ValidationError
from skill_matrix.models.base import ContractType, EmployeeRole

DEFAULT_QUALIFYING_RATING = 3
UNASSIGNED_DEPARTMENT = "Unassigned/Other"


@dataclass(frozen=True)
class EmployeeRecord:
    id: UUID
    first_name: str
    last_name: str
    role: EmployeeRole
    contract_type: ContractType
    team_id: UUID | None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class EmployeePlacement:
    """An employee resolved through team -> production line -> department.

    Any link may be missing when the hierarchy was restructured; such
    employees are dropped from department-scoped aggregates.
    """

    employee: EmployeeRecord
    team_id: UUID | None = None
    team_name: str | None = None
    production_line_id: UUID | None = None
    production_line_name: str | None = None
    department_id: UUID | None = None
    department_name: str | None = None

    @property
    def is_resolved(self) -> bool:
        return bool(self.team_name and self.department_id)


@dataclass(frozen=True)
class StationRecord:
    id: UUID
    name: str
    department_id: UUID | None


@dataclass(frozen=True)
class RatingRecord:
    employee_id: UUID
    station_id: UUID
    rating: int


@dataclass(frozen=True)
class TeamStatistics:
    total: int = 0
    leadership: int = 0
    workforce: int = 0
    permanent: int = 0
    temporary: int = 0


def calculate_team_statistics(employees: Iterable[EmployeeRecord]) -> TeamStatistics:
    """Count headcount, leadership/workforce split and contract mix in one pass."""
    total = leadership = workforce = permanent = temporary = 0
    for employee in employees:
        total += 1
        if employee.role.is_leadership:
            leadership += 1
        elif employee.role.is_workforce:
            workforce += 1
        if employee.contract_type == ContractType.PERMANENT:
            permanent += 1
        elif employee.contract_type == ContractType.TEMPORARY:
            temporary += 1
    return TeamStatistics(
        total=total,
        leadership=leadership,
        workforce=workforce,
        permanent=permanent,
        temporary=temporary,
    )


@dataclass(frozen=True)
class WorkforceBreakdown:
    by_department: dict[str, int]
    by_contract: dict[str, int]
    total: int


def calculate_workforce_breakdown(
    placements: Iterable[EmployeePlacement],
) -> WorkforceBreakdown:
    by_department: Counter[str] = Counter()
    by_contract: Counter[str] = Counter()
    total = 0
    for placement in placements:
        total += 1
        by_department[placement.department_name or UNASSIGNED_DEPARTMENT] += 1
        by_contract[placement.employee.contract_type.value] += 1
    return WorkforceBreakdown(
        by_department=dict(sorted(by_department.items())),
        by_contract=dict(sorted(by_contract.items())),
        total=total,
    )


class AggregateLevel(str, Enum):
    """Granularity of the station rating grouping key."""

    STATION = "station"
    DEPARTMENT = "department"
    PRODUCTION_LINE = "production_line"
    TEAM = "team"


@dataclass(frozen=True)
class AggregateScope:
    """Active filters; ``None`` means "all" at that level."""

    department_id: UUID | None = None
    production_line_id: UUID | None = None
    team_id: UUID | None = None
    # Restricts the source employees without changing the grouping level
    visible_team_ids: frozenset[UUID] | None = None

    @property
    def level(self) -> AggregateLevel:
        if self.team_id is not None:
            return AggregateLevel.TEAM
        if self.production_line_id is not None:
            return AggregateLevel.PRODUCTION_LINE
        if self.department_id is not None:
            return AggregateLevel.DEPARTMENT
        return AggregateLevel.STATION

    def admits(self, placement: EmployeePlacement) -> bool:
        if (
            self.visible_team_ids is not None
            and placement.team_id not in self.visible_team_ids
        ):
            return False
        if self.department_id is not None and placement.department_id != self.department_id:
            return False
        if (
            self.production_line_id is not None
            and placement.production_line_id != self.production_line_id
        ):
            return False
        if self.team_id is not None and placement.team_id != self.team_id:
            return False
        return True


@dataclass(frozen=True)
class StationRatingAggregate:
    station_id: UUID
    station: str
    average_rating: float
    rating_count: int
    department: str | None = None
    production_line: str | None = None
    team: str | None = None


@dataclass
class _RatingBucket:
    station: StationRecord
    placement: EmployeePlacement
    total: int = 0
    count: int = 0


def _group_key(
    level: AggregateLevel, placement: EmployeePlacement, station_id: UUID
) -> tuple[UUID | None, ...]:
    if level == AggregateLevel.TEAM:
        return (
            placement.department_id,
            placement.production_line_id,
            placement.team_id,
            station_id,
        )
    if level == AggregateLevel.PRODUCTION_LINE:
        return (placement.department_id, placement.production_line_id, station_id)
    if level == AggregateLevel.DEPARTMENT:
        return (placement.department_id, station_id)
    return (station_id,)


def aggregate_station_ratings(
    placements: Iterable[EmployeePlacement],
    stations: Iterable[StationRecord],
    ratings: Iterable[RatingRecord],
    scope: AggregateScope | None = None,
) -> list[StationRatingAggregate]:
    """Average ratings per station, grouped at the scope's granularity.

    A rating contributes only when it is positive, the employee's placement
    is resolved, and the employee's department equals the station's
    department. Mismatches are skipped silently.
    """
    scope = scope or AggregateScope()
    level = scope.level
    by_employee = {p.employee.id: p for p in placements}
    by_station = {s.id: s for s in stations}

    buckets: dict[tuple[UUID | None, ...], _RatingBucket] = {}
    for rating in ratings:
        placement = by_employee.get(rating.employee_id)
        station = by_station.get(rating.station_id)
        if placement is None or station is None:
            continue
        if not scope.admits(placement):
            continue
        if not placement.is_resolved or station.department_id is None:
            continue
        if placement.department_id != station.department_id or rating.rating <= 0:
            continue

        key = _group_key(level, placement, station.id)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = _RatingBucket(station=station, placement=placement)
        bucket.total += rating.rating
        bucket.count += 1

    results = []
    for bucket in buckets.values():
        placement = bucket.placement
        results.append(
            StationRatingAggregate(
                station_id=bucket.station.id,
                station=bucket.station.name,
                average_rating=bucket.total / bucket.count,
                rating_count=bucket.count,
                department=placement.department_name
                if level != AggregateLevel.STATION
                else None,
                production_line=placement.production_line_name
                if level in (AggregateLevel.PRODUCTION_LINE, AggregateLevel.TEAM)
                else None,
                team=placement.team_name if level == AggregateLevel.TEAM else None,
            )
        )
    results.sort(
        key=lambda r: (
            r.department or "",
            r.production_line or "",
            r.team or "",
            r.station,
        )
    )
    return results


class GapStatus(str, Enum):
    SHORT = "short"
    MET = "met"
    SURPLUS = "surplus"


@dataclass(frozen=True)
class UpskillCandidate:
    employee_id: UUID
    name: str
    rating: int


@dataclass(frozen=True)
class StationGap:
    station_id: UUID
    station_name: str
    target: int
    qualified_count: int
    gap: int
    level_one_candidates: list[UpskillCandidate] = field(default_factory=list)
    level_two_candidates: list[UpskillCandidate] = field(default_factory=list)

    @property
    def status(self) -> GapStatus:
        if self.gap > 0:
            return GapStatus.SHORT
        if self.gap < 0:
            return GapStatus.SURPLUS
        return GapStatus.MET

    @property
    def label(self) -> str:
        if self.gap > 0:
            return f"{self.gap} Short"
        if self.gap < 0:
            return f"{-self.gap} Surplus"
        return "Target Met"


def build_gap_report(
    stations: Iterable[StationRecord],
    employees: Iterable[EmployeeRecord],
    ratings: Iterable[RatingRecord],
    targets: Mapping[UUID, int] | None = None,
    qualifying_rating: int = DEFAULT_QUALIFYING_RATING,
) -> list[StationGap]:
    """Compare qualified headcount per station with a target headcount.

    ``targets`` defaults to 0 for stations not listed. Upskill candidates
    (rating 1 and rating 2 employees) are only listed for stations that are
    short of their target.
    """
    targets = targets or {}
    for station_id, target in targets.items():
        if target < 0:
            raise ValidationError(
                "targets",
                target,
                f"Target for station {station_id} must not be negative",
            )

    employees_by_id = {e.id: e for e in employees}
    ratings_by_station: dict[UUID, list[tuple[EmployeeRecord, int]]] = defaultdict(list)
    for rating in ratings:
        employee = employees_by_id.get(rating.employee_id)
        if employee is not None:
            ratings_by_station[rating.station_id].append((employee, rating.rating))

    report = []
    for station in stations:
        rated = ratings_by_station.get(station.id, [])
        qualified = sum(1 for _, value in rated if value >= qualifying_rating)
        target = targets.get(station.id, 0)
        gap = target - qualified

        level_one: list[UpskillCandidate] = []
        level_two: list[UpskillCandidate] = []
        if gap > 0:
            for employee, value in sorted(rated, key=lambda r: r[0].full_name):
                candidate = UpskillCandidate(employee.id, employee.full_name, value)
                if value == 1:
                    level_one.append(candidate)
                elif value == 2:
                    level_two.append(candidate)

        report.append(
            StationGap(
                station_id=station.id,
                station_name=station.name,
                target=target,
                qualified_count=qualified,
                gap=gap,
                level_one_candidates=level_one,
                level_two_candidates=level_two,
            )
        )
    return report
