"""Company structure: departments, production lines, teams, stations and employees."""

import uuid

from fastapi import APIRouter

from skill_matrix.api.deps import EvaluatorDep, HierarchyServiceDep, SessionDep
from skill_matrix.application.queries.organization_queries import (
    OrganizationTree,
    build_organization_tree,
)
from skill_matrix.models import (
    DepartmentCreate,
    DepartmentPublic,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeImportRow,
    EmployeePublic,
    EmployeeUpdate,
    Message,
    ProductionLineCreate,
    ProductionLinePublic,
    ProductionLineUpdate,
    StationCreate,
    StationPublic,
    StationUpdate,
    TeamCreate,
    TeamPublic,
    TeamUpdate,
)

router = APIRouter(prefix="/organization", tags=["organization"])


@router.get("/tree", response_model=OrganizationTree)
def read_organization_tree(
    session: SessionDep, evaluator: EvaluatorDep
) -> OrganizationTree:
    """
    Departments, production lines, teams and employees visible to the user.
    """
    return build_organization_tree(session, evaluator)


# Departments


@router.post("/departments", response_model=DepartmentPublic)
def create_department(
    department_in: DepartmentCreate, hierarchy: HierarchyServiceDep
) -> DepartmentPublic:
    return hierarchy.create_department(department_in)


@router.patch("/departments/{department_id}", response_model=DepartmentPublic)
def update_department(
    department_id: uuid.UUID,
    department_in: DepartmentUpdate,
    hierarchy: HierarchyServiceDep,
) -> DepartmentPublic:
    return hierarchy.update_department(department_id, department_in)


@router.delete("/departments/{department_id}")
def delete_department(
    department_id: uuid.UUID, hierarchy: HierarchyServiceDep
) -> Message:
    """
    Delete a department with its production lines, teams and stations.
    """
    hierarchy.delete_department(department_id)
    return Message(message="Department deleted successfully")


# Production lines


@router.post("/production-lines", response_model=ProductionLinePublic)
def create_production_line(
    line_in: ProductionLineCreate, hierarchy: HierarchyServiceDep
) -> ProductionLinePublic:
    return hierarchy.create_production_line(line_in)


@router.patch("/production-lines/{line_id}", response_model=ProductionLinePublic)
def update_production_line(
    line_id: uuid.UUID, line_in: ProductionLineUpdate, hierarchy: HierarchyServiceDep
) -> ProductionLinePublic:
    return hierarchy.update_production_line(line_id, line_in)


@router.delete("/production-lines/{line_id}")
def delete_production_line(
    line_id: uuid.UUID, hierarchy: HierarchyServiceDep
) -> Message:
    hierarchy.delete_production_line(line_id)
    return Message(message="Production line deleted successfully")


# Teams


@router.post("/teams", response_model=TeamPublic)
def create_team(team_in: TeamCreate, hierarchy: HierarchyServiceDep) -> TeamPublic:
    return hierarchy.create_team(team_in)


@router.patch("/teams/{team_id}", response_model=TeamPublic)
def update_team(
    team_id: uuid.UUID, team_in: TeamUpdate, hierarchy: HierarchyServiceDep
) -> TeamPublic:
    return hierarchy.update_team(team_id, team_in)


@router.delete("/teams/{team_id}")
def delete_team(team_id: uuid.UUID, hierarchy: HierarchyServiceDep) -> Message:
    hierarchy.delete_team(team_id)
    return Message(message="Team deleted successfully")


@router.post("/teams/{team_id}/employees/bulk", response_model=list[EmployeePublic])
def bulk_add_employees(
    team_id: uuid.UUID,
    rows: list[EmployeeImportRow],
    hierarchy: HierarchyServiceDep,
) -> list[EmployeePublic]:
    """
    Add parsed spreadsheet rows to a team.

    Every row is validated first; one bad row rejects the whole batch.
    """
    return hierarchy.bulk_add_employees(team_id, rows)


# Stations


@router.post("/stations", response_model=StationPublic)
def create_station(
    station_in: StationCreate, hierarchy: HierarchyServiceDep
) -> StationPublic:
    return hierarchy.create_station(station_in)


@router.patch("/stations/{station_id}", response_model=StationPublic)
def update_station(
    station_id: uuid.UUID, station_in: StationUpdate, hierarchy: HierarchyServiceDep
) -> StationPublic:
    return hierarchy.update_station(station_id, station_in)


@router.delete("/stations/{station_id}")
def delete_station(station_id: uuid.UUID, hierarchy: HierarchyServiceDep) -> Message:
    hierarchy.delete_station(station_id)
    return Message(message="Station deleted successfully")


# Employees


@router.post("/employees", response_model=EmployeePublic)
def create_employee(
    employee_in: EmployeeCreate, hierarchy: HierarchyServiceDep
) -> EmployeePublic:
    return hierarchy.create_employee(employee_in)


@router.patch("/employees/{employee_id}", response_model=EmployeePublic)
def update_employee(
    employee_id: uuid.UUID,
    employee_in: EmployeeUpdate,
    hierarchy: HierarchyServiceDep,
) -> EmployeePublic:
    return hierarchy.update_employee(employee_id, employee_in)


@router.delete("/employees/{employee_id}")
def delete_employee(employee_id: uuid.UUID, hierarchy: HierarchyServiceDep) -> Message:
    hierarchy.delete_employee(employee_id)
    return Message(message="Employee deleted successfully")
