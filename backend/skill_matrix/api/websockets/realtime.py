"""
Realtime WebSocket endpoint.

One connection drives one view at a time (the skill matrix of a team or the
dashboard). The server pushes a full snapshot on subscribe and again after
every relevant change, and applies rating edits optimistically: the local
cell is updated first and restored exactly if the write fails.

Client messages::

    {"type": "subscribe", "view": "matrix", "team_id": "..."}
    {"type": "subscribe", "view": "dashboard", "team_id": null}
    {"type": "visibility", "visible": false}
    {"type": "set_rating", "employee_id": "...", "station_id": "...", "rating": 3}
    {"type": "ping"}
"""

import asyncio
import json
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from skill_matrix.api.deps import ChangeFeedDep, SessionDep, authenticate_token
from skill_matrix.application.queries.dashboard_queries import (
    DashboardQueries,
    visible_scope,
)
from skill_matrix.application.queries.matrix_queries import MatrixQueries
from skill_matrix.application.services.access_service import AccessControlService
from skill_matrix.application.services.rating_service import (
    RatingMutationService,
    validate_rating,
)
from skill_matrix.core.observability import get_logger
from skill_matrix.domain.matrix.optimistic import OptimisticRatings
from skill_matrix.domain.shared.exceptions import (
    DomainError,
    ErrorType,
    PermissionDeniedError,
    RepositoryError,
)
from skill_matrix.domain.shared.results import MutationResult, QueryResult
from skill_matrix.infrastructure.events.change_feed import (
    ChangeEvent,
    ChangeFeed,
    TableBinding,
)
from skill_matrix.infrastructure.events.subscription import (
    RealtimeSubscription,
    SubscriptionState,
)
from skill_matrix.models import Employee, User

logger = get_logger(__name__)

router = APIRouter()

T = TypeVar("T")

MATRIX_VIEW = "matrix"
DASHBOARD_VIEW = "dashboard"


def _unwrap(result: QueryResult[T]) -> T:
    if result.data is None:
        raise RepositoryError(result.error or "Query failed")
    return result.data


class RealtimeConnection:
    """State of one client connection: its identity, view and pending edits."""

    def __init__(
        self, websocket: WebSocket, session: Session, user: User, feed: ChangeFeed
    ) -> None:
        self.websocket = websocket
        self.session = session
        self.user = user
        self.feed = feed
        self.access = AccessControlService(session, user, feed)
        self.ratings = OptimisticRatings()
        self.subscription: RealtimeSubscription | None = None
        self.view: str | None = None
        self.team_id: uuid.UUID | None = None
        self.department_id: uuid.UUID | None = None
        self.employee_ids: set[uuid.UUID] = set()
        self.visible = True
        # One Session per connection; database work is serialized
        self._db_lock = asyncio.Lock()
        self._send_lock = asyncio.Lock()

    async def send(self, message_type: str, **payload: Any) -> None:
        message = {
            "type": message_type,
            **payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        async with self._send_lock:
            await self.websocket.send_json(jsonable_encoder(message))

    async def send_error(self, message: str, **payload: Any) -> None:
        await self.send("error", message=message, **payload)

    async def _run_db(self, fn: Callable[..., T], *args: Any) -> T:
        async with self._db_lock:
            return await run_in_threadpool(fn, *args)

    # Snapshots

    def _load_snapshot(self) -> dict[str, Any]:
        """Re-read grants and the active view from the store."""
        self.session.expire_all()
        self.access.refresh()
        evaluator = self.access.evaluator
        if self.view == MATRIX_VIEW:
            evaluator.require_read(self.team_id)
            view = _unwrap(
                MatrixQueries(self.session).get_matrix_view(self.team_id, evaluator)
            )
            self.department_id = view.department_id
            self.employee_ids = {e.id for e in view.employees}
            self.ratings.replace_all(
                {(r.employee_id, r.station_id): r.rating for r in view.ratings}
            )
            return jsonable_encoder(view)

        queries = DashboardQueries(self.session)
        scope = visible_scope(evaluator, team_id=self.team_id)
        team_ids = None if evaluator.is_admin else evaluator.readable_team_ids()
        snapshot: dict[str, Any] = {
            "station_ratings": _unwrap(queries.station_ratings(scope)),
            "workforce": _unwrap(queries.workforce_breakdown(team_ids)),
            "statistics": None,
        }
        if scope.team_id is not None:
            snapshot["statistics"] = _unwrap(queries.team_statistics(scope.team_id))
        return jsonable_encoder(snapshot)

    def _bindings(self) -> list[TableBinding]:
        bindings = [TableBinding("team_access", {"user_id": str(self.user.id)})]
        if self.view == MATRIX_VIEW:
            team = str(self.team_id)
            bindings += [
                TableBinding("teams", {"id": team}),
                TableBinding("employees", {"team_id": team}),
                # Rating rows carry no team; irrelevant ones are skipped on arrival
                TableBinding("employee_skills"),
            ]
            if self.department_id is not None:
                bindings.append(
                    TableBinding("stations", {"department_id": str(self.department_id)})
                )
            return bindings
        return bindings + [
            TableBinding("teams"),
            TableBinding("employees"),
            TableBinding("employee_skills"),
            TableBinding("stations"),
        ]

    # Message handlers

    async def subscribe(self, message: dict[str, Any]) -> None:
        view = message.get("view")
        if view not in (MATRIX_VIEW, DASHBOARD_VIEW):
            await self.send_error("view must be 'matrix' or 'dashboard'")
            return
        raw_team = message.get("team_id")
        try:
            team_id = uuid.UUID(str(raw_team)) if raw_team else None
        except ValueError:
            await self.send_error("Invalid team_id", team_id=raw_team)
            return
        if view == MATRIX_VIEW and team_id is None:
            await self.send_error("Team ID is required.")
            return

        await self.unsubscribe()
        self.view, self.team_id = view, team_id
        try:
            snapshot = await self._run_db(self._load_snapshot)
        except DomainError as e:
            self.view = self.team_id = None
            await self.send("error", message=e.message, error=e.to_dict())
            return

        self.subscription = RealtimeSubscription(
            self.feed,
            f"{view}:{team_id or 'all'}:{self.user.id}",
            self._bindings(),
            self._on_change,
            on_state=self._on_state,
            visible=self.visible,
        )
        await self.send("subscribed", view=view, team_id=team_id)
        await self.send("snapshot", view=view, data=snapshot)
        await self.subscription.open()

    async def unsubscribe(self) -> None:
        subscription, self.subscription = self.subscription, None
        if subscription is not None:
            await subscription.close()
        self.employee_ids = set()
        self.ratings.replace_all({})

    async def set_visibility(self, message: dict[str, Any]) -> None:
        self.visible = bool(message.get("visible", True))
        if self.subscription is not None:
            self.subscription.set_visible(self.visible)

    def _save_rating(
        self, employee_id: uuid.UUID, station_id: uuid.UUID, rating: int | None
    ) -> MutationResult:
        self.session.expire_all()
        self.access.refresh()
        employee = self.session.get(Employee, employee_id)
        if employee is None:
            return MutationResult.failed("Employee not found", ErrorType.NOT_FOUND)
        try:
            self.access.evaluator.require_write_employee(employee.team_id)
        except PermissionDeniedError as e:
            return MutationResult.failed(e.message, e.error_type)
        return RatingMutationService(self.session, self.feed).update_rating(
            self.user, employee_id, station_id, rating
        )

    async def set_rating(self, message: dict[str, Any]) -> None:
        if self.view != MATRIX_VIEW or self.subscription is None:
            await self.send_error("Subscribe to a matrix view before editing ratings")
            return
        try:
            employee_id = uuid.UUID(str(message.get("employee_id")))
            station_id = uuid.UUID(str(message.get("station_id")))
        except ValueError:
            await self.send_error("employee_id and station_id must be UUIDs")
            return
        rating = message.get("rating")
        invalid = validate_rating(rating)
        if invalid:
            await self.send_error(invalid)
            return

        key = (employee_id, station_id)
        edit = self.ratings.apply(key, rating)
        result = await self._run_db(self._save_rating, employee_id, station_id, rating)
        if result.success:
            await self.send(
                "rating_saved",
                employee_id=employee_id,
                station_id=station_id,
                rating=rating,
            )
            return
        self.ratings.revert(edit)
        logger.warning(
            "Rating edit reverted",
            employee_id=str(employee_id),
            station_id=str(station_id),
            error=result.error,
        )
        await self.send(
            "rating_reverted",
            employee_id=employee_id,
            station_id=station_id,
            rating=self.ratings.get(key),
            error=result.error,
        )

    async def handle(self, message: dict[str, Any]) -> None:
        message_type = message.get("type")
        if message_type == "subscribe":
            await self.subscribe(message)
        elif message_type == "visibility":
            await self.set_visibility(message)
        elif message_type == "set_rating":
            await self.set_rating(message)
        elif message_type == "ping":
            await self.send("pong")
        else:
            await self.send_error(f"Unknown message type: {message_type}")

    # Subscription callbacks

    async def _on_change(self, event: ChangeEvent) -> None:
        if self.view == MATRIX_VIEW and event.table == "employee_skills":
            employee_id = event.value("employee_id")
            if employee_id is not None and (
                uuid.UUID(str(employee_id)) not in self.employee_ids
            ):
                return
        try:
            snapshot = await self._run_db(self._load_snapshot)
        except DomainError as e:
            # Lost access or the team is gone
            await self.send("error", message=e.message, error=e.to_dict())
            await self.unsubscribe()
            return
        await self.send("refresh", view=self.view, table=event.table, data=snapshot)

    async def _on_state(self, state: SubscriptionState, message: str | None) -> None:
        await self.send("realtime_status", state=state.value, message=message)


@router.websocket("/ws/realtime")
async def realtime_endpoint(
    websocket: WebSocket,
    session: SessionDep,
    feed: ChangeFeedDep,
    token: str = Query(...),
):
    """
    WebSocket endpoint for live skill matrix and dashboard views.
    """
    try:
        user = await run_in_threadpool(authenticate_token, session, token)
    except HTTPException as e:
        logger.warning("Realtime connection rejected", reason=e.detail)
        await websocket.close(code=1008, reason=str(e.detail))
        return

    await websocket.accept()
    connection = RealtimeConnection(websocket, session, user, feed)
    logger.info("Realtime connection opened", user_id=str(user.id))
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await connection.send_error("Messages must be JSON objects")
                continue
            if not isinstance(message, dict):
                await connection.send_error("Messages must be JSON objects")
                continue
            await connection.handle(message)
    except WebSocketDisconnect:
        logger.info("Realtime connection closed", user_id=str(user.id))
    finally:
        await connection.unsubscribe()
