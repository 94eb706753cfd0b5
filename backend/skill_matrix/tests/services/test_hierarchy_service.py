import threading

import pytest
from sqlmodel import Session, select

from skill_matrix.application.services.access_service import AccessControlService
from skill_matrix.application.services.hierarchy_service import (
    DUPLICATE_STATION_MESSAGE,
    STATION_CHECK_TIMEOUT_MESSAGE,
    HierarchyService,
    normalize_station_name,
    parse_import_rows,
)
from skill_matrix.core.config import settings
from skill_matrix.domain.shared.exceptions import (
    DuplicateNameError,
    PermissionDeniedError,
    ValidationError,
    ValidationTimeoutError,
)
from skill_matrix.infrastructure.database.repositories.organization import (
    StationRepository,
)
from skill_matrix.models import (
    ContractType,
    DepartmentCreate,
    Employee,
    EmployeeCreate,
    EmployeeImportRow,
    EmployeeRole,
    EmployeeSkill,
    EmployeeUpdate,
    Station,
    StationCreate,
    StationUpdate,
    Team,
    TeamCreate,
    User,
)
from skill_matrix.tests.services.recorder import RecordingPublisher
from skill_matrix.tests.utils.factories import (
    Org,
    create_employee,
    create_team,
    grant,
    rate,
)


def hierarchy_for(db: Session, user: User, publisher=None) -> HierarchyService:
    evaluator = AccessControlService(db, user).evaluator
    return HierarchyService(db, evaluator, publisher or RecordingPublisher())


class TestStationNames:
    def test_name_is_trimmed(self):
        assert normalize_station_name("  Press 4  ") == "Press 4"

    @pytest.mark.parametrize("raw", ["", "   ", "A", "x" * 51])
    def test_invalid_lengths(self, raw):
        with pytest.raises(ValidationError):
            normalize_station_name(raw)

    def test_create_station(self, db, admin: User, org: Org):
        station = hierarchy_for(db, admin).create_station(
            StationCreate(name="  Welding  ", department_id=org.department.id)
        )
        assert station.name == "Welding"

    def test_duplicate_name_in_department(self, db, admin: User, org: Org):
        service = hierarchy_for(db, admin)
        with pytest.raises(DuplicateNameError) as exc_info:
            service.create_station(
                StationCreate(name=org.station.name, department_id=org.department.id)
            )
        assert exc_info.value.message == DUPLICATE_STATION_MESSAGE

    def test_rename_to_own_name_is_allowed(self, db, admin: User, org: Org):
        station = hierarchy_for(db, admin).update_station(
            org.station.id, StationUpdate(name=f" {org.station.name} ")
        )
        assert station.name == org.station.name

    def test_duplicate_check_times_out(self, db, admin: User, org: Org, monkeypatch):
        release = threading.Event()

        def slow_name_exists(self, department_id, name, exclude_id=None):
            release.wait(5)
            return False

        monkeypatch.setattr(StationRepository, "name_exists", slow_name_exists)
        monkeypatch.setattr(settings, "STATION_NAME_CHECK_TIMEOUT_SECONDS", 0.05)
        try:
            with pytest.raises(ValidationTimeoutError) as exc_info:
                hierarchy_for(db, admin).create_station(
                    StationCreate(name="Paint", department_id=org.department.id)
                )
        finally:
            release.set()
        assert exc_info.value.message == STATION_CHECK_TIMEOUT_MESSAGE
        assert db.exec(select(Station).where(Station.name == "Paint")).first() is None

    def test_stations_are_admin_only(self, db, writer: User, org: Org):
        with pytest.raises(PermissionDeniedError):
            hierarchy_for(db, writer).create_station(
                StationCreate(name="Paint", department_id=org.department.id)
            )


class TestDepartments:
    def test_non_admin_cannot_create(self, db, writer: User):
        with pytest.raises(PermissionDeniedError):
            hierarchy_for(db, writer).create_department(DepartmentCreate(name="Paint"))

    def test_delete_cascades(self, db, admin: User, org: Org):
        employee = create_employee(db, org.team)
        rate(db, employee, org.station, 4)
        hierarchy_for(db, admin).delete_department(org.department.id)
        db.expire_all()
        assert db.exec(select(Team)).all() == []
        assert db.exec(select(Station)).all() == []
        assert db.exec(select(Employee)).all() == []
        assert db.exec(select(EmployeeSkill)).all() == []


class TestTeams:
    def test_any_writer_can_create_team(self, db, writer: User, org: Org):
        publisher = RecordingPublisher()
        team = hierarchy_for(db, writer, publisher).create_team(
            TeamCreate(name="Night Shift", production_line_id=org.line.id)
        )
        assert team.name == "Night Shift"
        assert publisher.tables() == ["teams"]

    def test_reader_cannot_create_team(self, db, reader: User, org: Org):
        with pytest.raises(PermissionDeniedError):
            hierarchy_for(db, reader).create_team(
                TeamCreate(name="Night Shift", production_line_id=org.line.id)
            )

    def test_delete_requires_write_on_team(self, db, writer: User, org: Org):
        other = create_team(db, org.line)
        with pytest.raises(PermissionDeniedError):
            hierarchy_for(db, writer).delete_team(other.id)


class TestEmployees:
    def test_writer_adds_employee(self, db, writer: User, org: Org):
        publisher = RecordingPublisher()
        employee = hierarchy_for(db, writer, publisher).create_employee(
            EmployeeCreate(first_name="Li", last_name="Wei", team_id=org.team.id)
        )
        assert employee.team_id == org.team.id
        assert publisher.events[0].value("team_id") == str(org.team.id)

    def test_reader_cannot_edit_employee(self, db, reader: User, org: Org):
        employee = create_employee(db, org.team)
        with pytest.raises(PermissionDeniedError):
            hierarchy_for(db, reader).update_employee(
                employee.id, EmployeeUpdate(first_name="Changed")
            )

    def test_move_requires_write_on_both_teams(self, db, writer: User, org: Org):
        other = create_team(db, org.line)
        employee = create_employee(db, org.team)
        service = hierarchy_for(db, writer)
        with pytest.raises(PermissionDeniedError):
            service.update_employee(employee.id, EmployeeUpdate(team_id=other.id))

        grant(db, writer, other, can_write=True)
        moved = hierarchy_for(db, writer).update_employee(
            employee.id, EmployeeUpdate(team_id=other.id)
        )
        assert moved.team_id == other.id

    def test_cannot_detach_from_team(self, db, writer: User, org: Org):
        employee = create_employee(db, org.team)
        with pytest.raises(ValidationError) as exc:
            hierarchy_for(db, writer).update_employee(
                employee.id, EmployeeUpdate(team_id=None)
            )
        assert exc.value.field_name == "team_id"
        db.refresh(employee)
        assert employee.team_id == org.team.id

    def test_explicit_null_name_is_rejected(self, db, writer: User, org: Org):
        employee = create_employee(db, org.team)
        with pytest.raises(ValidationError) as exc:
            hierarchy_for(db, writer).update_employee(
                employee.id, EmployeeUpdate(first_name=None)
            )
        assert exc.value.message == "first_name cannot be null"
        db.refresh(employee)
        assert employee.first_name == "Ana"


class TestBulkImport:
    def test_parse_is_case_insensitive(self, org: Org):
        (employee,) = parse_import_rows(
            org.team.id,
            [
                EmployeeImportRow(
                    first_name=" Ana ",
                    last_name="Lopez",
                    role="teamleader",
                    contract_type="TEMPORARY",
                )
            ],
        )
        assert employee.first_name == "Ana"
        assert employee.role == EmployeeRole.TEAMLEADER
        assert employee.contract_type == ContractType.TEMPORARY

    def test_invalid_row_rejects_batch(self, db, writer: User, org: Org):
        rows = [
            EmployeeImportRow(
                first_name="Ana", last_name="Lopez", role="Operator", contract_type="Permanent"
            ),
            EmployeeImportRow(
                first_name="Bo", last_name="Kim", role="Manager", contract_type="Permanent"
            ),
        ]
        with pytest.raises(ValidationError) as exc_info:
            hierarchy_for(db, writer).bulk_add_employees(org.team.id, rows)
        assert exc_info.value.message.startswith("Row 2: Invalid role")
        assert db.exec(select(Employee)).all() == []

    def test_missing_field_reports_row(self, org: Org):
        with pytest.raises(ValidationError) as exc_info:
            parse_import_rows(
                org.team.id, [EmployeeImportRow(first_name="Ana", role="Operator")]
            )
        assert exc_info.value.message.startswith("Row 1:")

    def test_bulk_add(self, db, writer: User, org: Org):
        rows = [
            EmployeeImportRow(
                first_name=name, last_name="Test", role="Operator", contract_type="Permanent"
            )
            for name in ("Ana", "Bo", "Cy")
        ]
        created = hierarchy_for(db, writer).bulk_add_employees(org.team.id, rows)
        assert len(created) == 3
        assert {e.team_id for e in created} == {org.team.id}
