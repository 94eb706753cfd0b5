"""
Hierarchy management.

Create, rename and delete departments, production lines, teams, stations and
employees, each gated by the access evaluator before anything is written:

- departments, production lines, stations: admin only
- team creation: write access to any team
- team edit/delete: write access to that team
- employees: write access to the employee's team (moves need both teams)
"""

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from uuid import UUID

from sqlmodel import Session

from skill_matrix.core.config import settings
from skill_matrix.core.observability import ACCESS_DENIALS, get_logger
from skill_matrix.domain.access.evaluator import AccessEvaluator
from skill_matrix.domain.shared.exceptions import (
    DuplicateNameError,
    EntityNotFoundError,
    PermissionDeniedError,
    ValidationError,
    ValidationTimeoutError,
)
from skill_matrix.infrastructure.database.repositories.organization import (
    DepartmentRepository,
    EmployeeRepository,
    ProductionLineRepository,
    StationRepository,
    TeamRepository,
)
from skill_matrix.infrastructure.events.change_feed import (
    ChangePublisher,
    ChangeType,
    change_event,
)
from skill_matrix.models import (
    ContractType,
    Department,
    DepartmentCreate,
    DepartmentUpdate,
    Employee,
    EmployeeCreate,
    EmployeeImportRow,
    EmployeeRole,
    EmployeeUpdate,
    ProductionLine,
    ProductionLineCreate,
    ProductionLineUpdate,
    Station,
    StationCreate,
    StationUpdate,
    Team,
    TeamCreate,
    TeamUpdate,
)

logger = get_logger(__name__)

DUPLICATE_STATION_MESSAGE = "A station with this name already exists in this department."
STATION_CHECK_TIMEOUT_MESSAGE = (
    "Validation timed out. Please check your connection and try again."
)
EMPLOYEE_TEAM_REQUIRED_MESSAGE = "An employee must belong to a team."

# Duplicate-name checks run here so they can be abandoned after a timeout
_name_check_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="name-check")


def _lookup(choices: type[EmployeeRole] | type[ContractType], raw: str | None):
    wanted = (raw or "").strip().lower()
    for choice in choices:
        if choice.value.lower() == wanted:
            return choice
    return None


def parse_import_rows(
    team_id: UUID, rows: Sequence[EmployeeImportRow]
) -> list[Employee]:
    """Validate parsed import rows; the first bad row rejects the whole batch.

    Row numbers in messages are 1-based.
    """
    parsed = []
    for number, row in enumerate(rows, start=1):
        first_name = (row.first_name or "").strip()
        last_name = (row.last_name or "").strip()
        if not first_name or not last_name or not row.role or not row.contract_type:
            raise ValidationError(
                "rows",
                number,
                f"Row {number}: first_name, last_name, role and contract_type are required.",
            )
        role = _lookup(EmployeeRole, row.role)
        if role is None:
            allowed = ", ".join(r.value for r in EmployeeRole)
            raise ValidationError(
                "role", row.role, f"Row {number}: Invalid role. Allowed: {allowed}"
            )
        contract = _lookup(ContractType, row.contract_type)
        if contract is None:
            allowed = ", ".join(c.value for c in ContractType)
            raise ValidationError(
                "contract_type",
                row.contract_type,
                f"Row {number}: Invalid contract type. Allowed: {allowed}",
            )
        parsed.append(
            Employee(
                first_name=first_name,
                last_name=last_name,
                role=role,
                contract_type=contract,
                team_id=team_id,
            )
        )
    return parsed


def normalize_station_name(raw: str) -> str:
    name = (raw or "").strip()
    if not name:
        raise ValidationError("name", raw, "Station name is required.")
    if len(name) < settings.STATION_NAME_MIN_LENGTH:
        raise ValidationError(
            "name",
            name,
            f"Station name must be at least {settings.STATION_NAME_MIN_LENGTH} characters.",
        )
    if len(name) > settings.STATION_NAME_MAX_LENGTH:
        raise ValidationError(
            "name",
            name,
            f"Station name must be at most {settings.STATION_NAME_MAX_LENGTH} characters.",
        )
    return name


class HierarchyService:
    def __init__(
        self,
        session: Session,
        evaluator: AccessEvaluator,
        publisher: ChangePublisher,
    ) -> None:
        self.session = session
        self.evaluator = evaluator
        self.publisher = publisher
        self.departments = DepartmentRepository(session)
        self.lines = ProductionLineRepository(session)
        self.teams = TeamRepository(session)
        self.stations = StationRepository(session)
        self.employees = EmployeeRepository(session)

    def _deny(self, action: str, check: bool) -> None:
        if not check:
            ACCESS_DENIALS.labels(action=action).inc()
            raise PermissionDeniedError(action)

    # Departments

    def create_department(self, data: DepartmentCreate) -> Department:
        self._deny("create departments", self.evaluator.can_manage_hierarchy())
        department = self.departments.create(data)
        logger.info("Department created", department_id=str(department.id))
        return department

    def update_department(self, department_id: UUID, data: DepartmentUpdate) -> Department:
        self._deny("edit departments", self.evaluator.can_manage_hierarchy())
        return self.departments.update(department_id, data)

    def delete_department(self, department_id: UUID) -> None:
        self._deny("delete departments", self.evaluator.can_manage_hierarchy())
        if not self.departments.delete(department_id):
            raise EntityNotFoundError("Department", department_id)
        logger.info("Department deleted", department_id=str(department_id))
        self.publisher.publish(
            change_event("teams", ChangeType.DELETE, department_id=department_id)
        )

    # Production lines

    def create_production_line(self, data: ProductionLineCreate) -> ProductionLine:
        self._deny("create production lines", self.evaluator.can_manage_hierarchy())
        self.departments.get_by_id_required(data.department_id)
        return self.lines.create(data)

    def update_production_line(
        self, line_id: UUID, data: ProductionLineUpdate
    ) -> ProductionLine:
        self._deny("edit production lines", self.evaluator.can_manage_hierarchy())
        return self.lines.update(line_id, data)

    def delete_production_line(self, line_id: UUID) -> None:
        self._deny("delete production lines", self.evaluator.can_manage_hierarchy())
        if not self.lines.delete(line_id):
            raise EntityNotFoundError("ProductionLine", line_id)
        self.publisher.publish(
            change_event("teams", ChangeType.DELETE, production_line_id=line_id)
        )

    # Teams

    def create_team(self, data: TeamCreate) -> Team:
        # New teams have no grants yet, so any write access is enough
        self._deny("create teams", self.evaluator.has_any_write_access())
        self.lines.get_by_id_required(data.production_line_id)
        team = self.teams.create(data)
        self.publisher.publish(change_event("teams", ChangeType.INSERT, id=team.id))
        return team

    def update_team(self, team_id: UUID, data: TeamUpdate) -> Team:
        self._deny("edit this team", self.evaluator.can_write(team_id))
        team = self.teams.update(team_id, data)
        self.publisher.publish(change_event("teams", ChangeType.UPDATE, id=team.id))
        return team

    def delete_team(self, team_id: UUID) -> None:
        self._deny("delete this team", self.evaluator.can_write(team_id))
        if not self.teams.delete(team_id):
            raise EntityNotFoundError("Team", team_id)
        self.publisher.publish(change_event("teams", ChangeType.DELETE, id=team_id))

    # Stations

    def _check_station_name(
        self, department_id: UUID, name: str, exclude_id: UUID | None = None
    ) -> None:
        bind = self.session.get_bind()

        def check() -> bool:
            with Session(bind) as check_session:
                return StationRepository(check_session).name_exists(
                    department_id, name, exclude_id
                )

        timeout = settings.STATION_NAME_CHECK_TIMEOUT_SECONDS
        future = _name_check_pool.submit(check)
        try:
            exists = future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "Station name check timed out",
                department_id=str(department_id),
                timeout_seconds=timeout,
            )
            raise ValidationTimeoutError(STATION_CHECK_TIMEOUT_MESSAGE, timeout)
        if exists:
            raise DuplicateNameError(DUPLICATE_STATION_MESSAGE, name)

    def create_station(self, data: StationCreate) -> Station:
        self._deny("create stations", self.evaluator.can_manage_hierarchy())
        name = normalize_station_name(data.name)
        self.departments.get_by_id_required(data.department_id)
        self._check_station_name(data.department_id, name)
        station = self.stations.create(
            Station(name=name, department_id=data.department_id)
        )
        logger.info("Station created", station_id=str(station.id), name=name)
        self._station_changed(ChangeType.INSERT, station.id, station.department_id)
        return station

    def update_station(self, station_id: UUID, data: StationUpdate) -> Station:
        self._deny("edit stations", self.evaluator.can_manage_hierarchy())
        station = self.stations.get_by_id_required(station_id)
        if data.name is not None:
            name = normalize_station_name(data.name)
            self._check_station_name(station.department_id, name, station.id)
            data = StationUpdate(name=name)
        station = self.stations.update(station_id, data)
        self._station_changed(ChangeType.UPDATE, station.id, station.department_id)
        return station

    def delete_station(self, station_id: UUID) -> None:
        self._deny("delete stations", self.evaluator.can_manage_hierarchy())
        department_id = self.stations.get_by_id_required(station_id).department_id
        self.stations.delete(station_id)
        self._station_changed(ChangeType.DELETE, station_id, department_id)

    # Employees

    def create_employee(self, data: EmployeeCreate) -> Employee:
        self._deny("add employees to this team", self.evaluator.can_write(data.team_id))
        self.teams.get_by_id_required(data.team_id)
        employee = self.employees.create(data)
        self._employee_changed(ChangeType.INSERT, employee)
        return employee

    def update_employee(self, employee_id: UUID, data: EmployeeUpdate) -> Employee:
        employee = self.employees.get_by_id_required(employee_id)
        self.evaluator.require_write_employee(employee.team_id)
        moving_to = data.team_id
        if "team_id" in data.model_fields_set and moving_to is None:
            raise ValidationError("team_id", None, EMPLOYEE_TEAM_REQUIRED_MESSAGE)
        if moving_to is not None and moving_to != employee.team_id:
            self._deny("move employees into that team", self.evaluator.can_write(moving_to))
            self.teams.get_by_id_required(moving_to)
        previous_team = employee.team_id
        employee = self.employees.update(employee_id, data)
        self._employee_changed(ChangeType.UPDATE, employee)
        if previous_team != employee.team_id:
            self.publisher.publish(
                change_event(
                    "employees",
                    ChangeType.DELETE,
                    id=employee.id,
                    team_id=previous_team,
                )
            )
        return employee

    def delete_employee(self, employee_id: UUID) -> None:
        employee = self.employees.get_by_id_required(employee_id)
        self.evaluator.require_write_employee(employee.team_id)
        team_id = employee.team_id
        self.employees.delete(employee_id)
        self.publisher.publish(
            change_event("employees", ChangeType.DELETE, id=employee_id, team_id=team_id)
        )

    def bulk_add_employees(
        self, team_id: UUID, rows: Sequence[EmployeeImportRow]
    ) -> list[Employee]:
        """Add already-parsed rows to a team; all rows or none."""
        self._deny("add employees to this team", self.evaluator.can_write(team_id))
        self.teams.get_by_id_required(team_id)
        if not rows:
            raise ValidationError("rows", 0, "No employees to import.")
        created = self.employees.bulk_create(parse_import_rows(team_id, rows))
        logger.info("Employees imported", team_id=str(team_id), count=len(created))
        self.publisher.publish(
            change_event("employees", ChangeType.INSERT, team_id=team_id)
        )
        return created

    def _station_changed(
        self, change_type: ChangeType, station_id: UUID, department_id: UUID
    ) -> None:
        self.publisher.publish(
            change_event(
                "stations", change_type, id=station_id, department_id=department_id
            )
        )

    def _employee_changed(self, change_type: ChangeType, employee: Employee) -> None:
        self.publisher.publish(
            change_event(
                "employees", change_type, id=employee.id, team_id=employee.team_id
            )
        )
