from fastapi.testclient import TestClient
from sqlmodel import Session

from skill_matrix.core.config import settings
from skill_matrix.tests.utils.factories import Org, create_employee, create_org


def test_tree_is_filtered_for_non_admins(
    client: TestClient, db: Session, org: Org, reader_token_headers: dict[str, str]
) -> None:
    create_org(db, name="Paint")
    create_employee(db, org.team)
    r = client.get(
        f"{settings.API_V1_STR}/organization/tree", headers=reader_token_headers
    )
    assert r.status_code == 200
    (department,) = r.json()["departments"]
    assert department["name"] == "Assembly"
    (line,) = department["production_lines"]
    (team,) = line["teams"]
    assert team["can_write"] is False
    assert team["statistics"]["total"] == 1
    assert len(team["employees"]) == 1


def test_admin_sees_whole_tree(
    client: TestClient, db: Session, org: Org, admin_token_headers: dict[str, str]
) -> None:
    create_org(db, name="Paint")
    r = client.get(
        f"{settings.API_V1_STR}/organization/tree", headers=admin_token_headers
    )
    names = [d["name"] for d in r.json()["departments"]]
    assert names == ["Assembly", "Paint"]


def test_duplicate_station_conflict(
    client: TestClient, org: Org, admin_token_headers: dict[str, str]
) -> None:
    r = client.post(
        f"{settings.API_V1_STR}/organization/stations",
        headers=admin_token_headers,
        json={"name": f"  {org.station.name}", "department_id": str(org.department.id)},
    )
    assert r.status_code == 409
    assert r.json()["error"]["type"] == "conflict"


def test_short_station_name(
    client: TestClient, org: Org, admin_token_headers: dict[str, str]
) -> None:
    r = client.post(
        f"{settings.API_V1_STR}/organization/stations",
        headers=admin_token_headers,
        json={"name": "X", "department_id": str(org.department.id)},
    )
    assert r.status_code == 400


def test_writer_cannot_create_department(
    client: TestClient, writer_token_headers: dict[str, str]
) -> None:
    r = client.post(
        f"{settings.API_V1_STR}/organization/departments",
        headers=writer_token_headers,
        json={"name": "Logistics"},
    )
    assert r.status_code == 403
    assert r.json()["error"]["type"] == "permission"


def test_writer_creates_and_deletes_employee(
    client: TestClient, org: Org, writer_token_headers: dict[str, str]
) -> None:
    r = client.post(
        f"{settings.API_V1_STR}/organization/employees",
        headers=writer_token_headers,
        json={
            "first_name": "Ana",
            "last_name": "Lopez",
            "role": "Trainer",
            "contract_type": "Temporary",
            "team_id": str(org.team.id),
        },
    )
    assert r.status_code == 200
    employee_id = r.json()["id"]

    r = client.delete(
        f"{settings.API_V1_STR}/organization/employees/{employee_id}",
        headers=writer_token_headers,
    )
    assert r.status_code == 200


def test_bulk_add_rejects_bad_row(
    client: TestClient, org: Org, writer_token_headers: dict[str, str]
) -> None:
    r = client.post(
        f"{settings.API_V1_STR}/organization/teams/{org.team.id}/employees/bulk",
        headers=writer_token_headers,
        json=[
            {
                "first_name": "Ana",
                "last_name": "Lopez",
                "role": "Operator",
                "contract_type": "Freelance",
            }
        ],
    )
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Row 1: Invalid contract type")


def test_reader_cannot_bulk_add(
    client: TestClient, org: Org, reader_token_headers: dict[str, str]
) -> None:
    r = client.post(
        f"{settings.API_V1_STR}/organization/teams/{org.team.id}/employees/bulk",
        headers=reader_token_headers,
        json=[],
    )
    assert r.status_code == 403


def test_employee_cannot_be_detached_from_team(
    client: TestClient, db: Session, org: Org, writer_token_headers: dict[str, str]
) -> None:
    employee = create_employee(db, org.team)
    r = client.patch(
        f"{settings.API_V1_STR}/organization/employees/{employee.id}",
        headers=writer_token_headers,
        json={"team_id": None},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "An employee must belong to a team."
    db.refresh(employee)
    assert employee.team_id == org.team.id
