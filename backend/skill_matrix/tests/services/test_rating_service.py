from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlmodel import Session, select

from skill_matrix.application.queries.dashboard_queries import DashboardQueries
from skill_matrix.application.services.rating_service import (
    AUTH_REQUIRED,
    RatingMutationService,
    validate_rating,
)
from skill_matrix.domain.reporting.aggregator import AggregateScope, GapStatus
from skill_matrix.domain.shared.exceptions import (
    ErrorType,
    RepositoryError,
    ValidationError,
)
from skill_matrix.infrastructure.database.repositories.skills import (
    SkillRatingRepository,
)
from skill_matrix.infrastructure.events.change_feed import ChangeType
from skill_matrix.models import EmployeeSkill, User
from skill_matrix.tests.services.recorder import RecordingPublisher
from skill_matrix.tests.utils.factories import Org, create_employee, rate


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def service(db: Session, publisher: RecordingPublisher) -> RatingMutationService:
    return RatingMutationService(db, publisher)


def cells(db: Session) -> list[EmployeeSkill]:
    return list(db.exec(select(EmployeeSkill)).all())


class TestValidateRating:
    @pytest.mark.parametrize("value", [None, 1, 3, 5])
    def test_valid(self, value):
        assert validate_rating(value) is None

    @pytest.mark.parametrize("value", [0, 6, -1, 2.5, "3", True])
    def test_invalid(self, value):
        assert validate_rating(value) is not None


class TestUpdateRating:
    def test_insert_records_editor(self, db, service, writer: User, org: Org):
        employee = create_employee(db, org.team)
        result = service.update_rating(writer, employee.id, org.station.id, 4)
        assert result.success
        (cell,) = cells(db)
        assert cell.rating == 4
        assert cell.last_updated_by_user_id == writer.id

    def test_upsert_is_idempotent(self, db, service, writer: User, org: Org):
        """Setting the same value twice leaves exactly one row with that value."""
        employee = create_employee(db, org.team)
        service.update_rating(writer, employee.id, org.station.id, 3)
        service.update_rating(writer, employee.id, org.station.id, 3)
        (cell,) = cells(db)
        assert cell.rating == 3

    def test_overwrite_existing_cell(self, db, service, writer: User, org: Org):
        employee = create_employee(db, org.team)
        rate(db, employee, org.station, 1)
        service.update_rating(writer, employee.id, org.station.id, 5)
        (cell,) = cells(db)
        assert cell.rating == 5

    def test_clear_removes_row(self, db, service, writer: User, org: Org):
        employee = create_employee(db, org.team)
        rate(db, employee, org.station, 2)
        result = service.update_rating(writer, employee.id, org.station.id, None)
        assert result.success
        assert cells(db) == []

    def test_clear_missing_cell_is_noop(self, db, service, publisher, writer, org: Org):
        employee = create_employee(db, org.team)
        result = service.update_rating(writer, employee.id, org.station.id, None)
        assert result.success
        assert publisher.events == []

    def test_requires_actor(self, db, service, org: Org):
        employee = create_employee(db, org.team)
        result = service.update_rating(None, employee.id, org.station.id, 3)
        assert not result.success
        assert result.error == AUTH_REQUIRED
        assert cells(db) == []

    def test_out_of_range_rejected(self, db, service, writer, org: Org):
        employee = create_employee(db, org.team)
        result = service.update_rating(writer, employee.id, org.station.id, 7)
        assert not result.success
        assert cells(db) == []

    def test_publishes_change_with_team(self, db, service, publisher, writer, org: Org):
        employee = create_employee(db, org.team)
        service.update_rating(writer, employee.id, org.station.id, 2)
        (event,) = publisher.events
        assert event.table == "employee_skills"
        assert event.change_type == ChangeType.INSERT
        assert event.value("team_id") == str(org.team.id)
        assert event.value("employee_id") == str(employee.id)

    def test_unknown_employee_fails_without_raising(self, db, service, writer, org: Org):
        result = service.update_rating(writer, uuid4(), org.station.id, 3)
        assert not result.success
        assert result.error

    def test_unknown_station_is_not_found(self, db, service, writer, org: Org):
        employee = create_employee(db, org.team)
        result = service.update_rating(writer, employee.id, uuid4(), 3)
        assert not result.success
        assert result.error_type == ErrorType.NOT_FOUND
        assert db.exec(select(EmployeeSkill)).all() == []

    def test_store_error_is_reported(self, db, service, writer, org: Org):
        employee = create_employee(db, org.team)
        with patch.object(
            service.ratings, "upsert_rating", side_effect=RepositoryError("db down")
        ):
            result = service.update_rating(writer, employee.id, org.station.id, 3)
        assert not result.success
        assert result.error == "db down"


class TestRatingsInReports:
    def test_cleared_rating_no_longer_qualifies(self, db, service, writer, org: Org):
        employee = create_employee(db, org.team)
        queries = DashboardQueries(db)
        targets = {org.station.id: 1}

        service.update_rating(writer, employee.id, org.station.id, 4)
        (gap,) = queries.gap_report(org.team.id, targets).data
        assert gap.qualified_count == 1
        assert gap.status == GapStatus.MET

        service.update_rating(writer, employee.id, org.station.id, None)
        (gap,) = queries.gap_report(org.team.id, targets).data
        assert gap.qualified_count == 0
        assert gap.label == "1 Short"

    def test_repeated_upsert_keeps_average(self, db, service, writer, org: Org):
        first = create_employee(db, org.team)
        second = create_employee(db, org.team, first_name="Ben")
        rate(db, second, org.station, 2)
        queries = DashboardQueries(db)
        scope = AggregateScope(team_id=org.team.id)

        service.update_rating(writer, first.id, org.station.id, 4)
        (before,) = queries.station_ratings(scope).data
        service.update_rating(writer, first.id, org.station.id, 4)
        (after,) = queries.station_ratings(scope).data

        assert len(cells(db)) == 2
        assert before.average_rating == after.average_rating == 3.0
        assert after.rating_count == 2


class TestSkillRatingRepository:
    def test_dangling_station_is_a_validation_error(self, db, writer, org: Org):
        employee = create_employee(db, org.team)
        with pytest.raises(ValidationError) as exc_info:
            SkillRatingRepository(db).upsert_rating(employee.id, uuid4(), 3, writer.id)
        assert exc_info.value.field_name == "station_id"
        assert db.exec(select(EmployeeSkill)).all() == []
