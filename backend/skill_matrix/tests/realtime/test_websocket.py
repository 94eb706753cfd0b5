from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session
from starlette.testclient import WebSocketTestSession
from starlette.websockets import WebSocketDisconnect

from skill_matrix.core.config import settings
from skill_matrix.models import User
from skill_matrix.tests.utils.factories import (
    Org,
    create_employee,
    create_user,
    rate,
    token_headers,
)


def realtime_url(user: User) -> str:
    token = token_headers(user)["Authorization"].removeprefix("Bearer ")
    return f"{settings.API_V1_STR}/ws/realtime?token={token}"


def receive_until(ws: WebSocketTestSession, message_type: str) -> dict[str, Any]:
    """Skip status and refresh pushes until ``message_type`` arrives."""
    while True:
        message = ws.receive_json()
        if message["type"] == message_type:
            return message


def test_rejects_invalid_token(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(
            f"{settings.API_V1_STR}/ws/realtime?token=garbage"
        ) as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_ping(client: TestClient, reader: User) -> None:
    with client.websocket_connect(realtime_url(reader)) as ws:
        ws.send_json({"type": "ping"})
        message = ws.receive_json()
        assert message["type"] == "pong"
        assert "timestamp" in message


def test_rejects_non_json_and_unknown_types(client: TestClient, reader: User) -> None:
    with client.websocket_connect(realtime_url(reader)) as ws:
        ws.send_text("not json")
        assert ws.receive_json()["message"] == "Messages must be JSON objects"
        ws.send_json({"type": "dance"})
        assert ws.receive_json()["message"] == "Unknown message type: dance"


def test_subscribe_matrix_sends_snapshot(
    client: TestClient, db: Session, org: Org, reader: User
) -> None:
    employee = create_employee(db, org.team)
    rate(db, employee, org.station, 4)

    with client.websocket_connect(realtime_url(reader)) as ws:
        ws.send_json({"type": "subscribe", "view": "matrix", "team_id": str(org.team.id)})
        subscribed = ws.receive_json()
        assert subscribed["type"] == "subscribed"
        assert subscribed["team_id"] == str(org.team.id)
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert snapshot["data"]["can_write"] is False
        assert snapshot["data"]["ratings"][0]["rating"] == 4
        status = receive_until(ws, "realtime_status")
        assert status["state"] in ("connecting", "connected")


def test_subscribe_matrix_requires_team(client: TestClient, reader: User) -> None:
    with client.websocket_connect(realtime_url(reader)) as ws:
        ws.send_json({"type": "subscribe", "view": "matrix"})
        assert ws.receive_json()["message"] == "Team ID is required."


def test_subscribe_denied_without_grant(
    client: TestClient, db: Session, org: Org
) -> None:
    outsider = create_user(db)
    with client.websocket_connect(realtime_url(outsider)) as ws:
        ws.send_json({"type": "subscribe", "view": "matrix", "team_id": str(org.team.id)})
        message = ws.receive_json()
        assert message["type"] == "error"
        assert message["error"]["type"] == "permission"


def test_set_rating_saved(
    client: TestClient, db: Session, org: Org, writer: User
) -> None:
    employee = create_employee(db, org.team)
    with client.websocket_connect(realtime_url(writer)) as ws:
        ws.send_json({"type": "subscribe", "view": "matrix", "team_id": str(org.team.id)})
        receive_until(ws, "snapshot")
        ws.send_json(
            {
                "type": "set_rating",
                "employee_id": str(employee.id),
                "station_id": str(org.station.id),
                "rating": 5,
            }
        )
        saved = receive_until(ws, "rating_saved")
        assert saved["rating"] == 5
        refresh = receive_until(ws, "refresh")
        assert refresh["table"] == "employee_skills"
        assert refresh["data"]["ratings"][0]["rating"] == 5


def test_set_rating_reverted_for_reader(
    client: TestClient, db: Session, org: Org, reader: User
) -> None:
    employee = create_employee(db, org.team)
    rate(db, employee, org.station, 2)
    with client.websocket_connect(realtime_url(reader)) as ws:
        ws.send_json({"type": "subscribe", "view": "matrix", "team_id": str(org.team.id)})
        receive_until(ws, "snapshot")
        ws.send_json(
            {
                "type": "set_rating",
                "employee_id": str(employee.id),
                "station_id": str(org.station.id),
                "rating": 5,
            }
        )
        reverted = receive_until(ws, "rating_reverted")
        assert reverted["rating"] == 2
        assert reverted["error"]


def test_set_rating_validates_value(
    client: TestClient, db: Session, org: Org, writer: User
) -> None:
    employee = create_employee(db, org.team)
    with client.websocket_connect(realtime_url(writer)) as ws:
        ws.send_json({"type": "subscribe", "view": "matrix", "team_id": str(org.team.id)})
        receive_until(ws, "snapshot")
        ws.send_json(
            {
                "type": "set_rating",
                "employee_id": str(employee.id),
                "station_id": str(org.station.id),
                "rating": 9,
            }
        )
        assert receive_until(ws, "error")["message"] == "Rating must be between 1 and 5."


def test_dashboard_refreshes_after_http_write(
    client: TestClient, db: Session, org: Org, writer: User
) -> None:
    employee = create_employee(db, org.team)
    with client.websocket_connect(realtime_url(writer)) as ws:
        ws.send_json({"type": "subscribe", "view": "dashboard"})
        snapshot = receive_until(ws, "snapshot")
        assert snapshot["data"]["station_ratings"] == []
        assert snapshot["data"]["statistics"]["total"] == 1

        r = client.put(
            f"{settings.API_V1_STR}/matrix/ratings",
            headers=token_headers(writer),
            json={
                "employee_id": str(employee.id),
                "station_id": str(org.station.id),
                "rating": 3,
            },
        )
        assert r.status_code == 200
        refresh = receive_until(ws, "refresh")
        (row,) = refresh["data"]["station_ratings"]
        assert row["average_rating"] == 3.0
