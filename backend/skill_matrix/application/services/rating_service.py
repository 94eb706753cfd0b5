"""Single-cell skill rating writes."""

from uuid import UUID

from sqlmodel import Session

from skill_matrix.core.observability import RATING_MUTATIONS, get_logger
from skill_matrix.domain.shared.exceptions import (
    DomainError,
    EntityNotFoundError,
    ErrorType,
)
from skill_matrix.domain.shared.results import MutationResult
from skill_matrix.infrastructure.database.repositories.organization import (
    EmployeeRepository,
    StationRepository,
)
from skill_matrix.infrastructure.database.repositories.skills import (
    RatingWrite,
    SkillRatingRepository,
)
from skill_matrix.infrastructure.events.change_feed import (
    ChangePublisher,
    ChangeType,
    change_event,
)
from skill_matrix.models import User
from skill_matrix.models.base import MAX_RATING, MIN_RATING

logger = get_logger(__name__)

AUTH_REQUIRED = "Authentication required to update ratings."


def validate_rating(value: object) -> str | None:
    """Return an error message if ``value`` is not a storable rating."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        return "Rating must be a whole number."
    if not MIN_RATING <= value <= MAX_RATING:
        return f"Rating must be between {MIN_RATING} and {MAX_RATING}."
    return None


class RatingMutationService:
    """
    Apply one edit to an (employee, station) rating cell.

    ``None`` clears the cell; any other value is upserted with the acting
    user recorded as last editor. Concurrent writes to the same cell are
    last-write-wins. Authorization is the caller's job: this service only
    checks that there is an authenticated actor.
    """

    def __init__(self, session: Session, publisher: ChangePublisher) -> None:
        self.session = session
        self.publisher = publisher
        self.ratings = SkillRatingRepository(session)
        self.employees = EmployeeRepository(session)
        self.stations = StationRepository(session)

    def update_rating(
        self,
        actor: User | None,
        employee_id: UUID,
        station_id: UUID,
        new_rating: int | None,
    ) -> MutationResult:
        operation = "clear" if new_rating is None else "set"
        if actor is None:
            RATING_MUTATIONS.labels(operation=operation, status="unauthenticated").inc()
            return MutationResult.failed(AUTH_REQUIRED, ErrorType.PERMISSION)

        invalid = validate_rating(new_rating)
        if invalid:
            RATING_MUTATIONS.labels(operation=operation, status="invalid").inc()
            return MutationResult.failed(invalid, ErrorType.VALIDATION)

        try:
            employee = self.employees.get_by_id(employee_id)
            if new_rating is None:
                write = self.ratings.delete_rating(employee_id, station_id)
            else:
                if employee is None:
                    raise EntityNotFoundError("Employee", employee_id)
                self.stations.get_by_id_required(station_id)
                write = self.ratings.upsert_rating(
                    employee_id, station_id, new_rating, actor.id
                )
        except DomainError as e:
            logger.error(
                "Rating update failed",
                employee_id=str(employee_id),
                station_id=str(station_id),
                error=e.message,
            )
            RATING_MUTATIONS.labels(operation=operation, status="error").inc()
            return MutationResult.failed(e.message, e.error_type)

        RATING_MUTATIONS.labels(operation=operation, status="success").inc()
        logger.info(
            "Rating updated",
            employee_id=str(employee_id),
            station_id=str(station_id),
            rating=new_rating,
            write=write.value,
        )
        if write != RatingWrite.NOOP:
            self.publisher.publish(
                change_event(
                    "employee_skills",
                    ChangeType(write.value),
                    employee_id=employee_id,
                    station_id=station_id,
                    team_id=employee.team_id if employee else None,
                    rating=new_rating,
                )
            )
        return MutationResult.ok()
