"""Skill matrix screen: one team's employees against its department's stations."""

import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse

from skill_matrix.api.deps import (
    CurrentUser,
    EvaluatorDep,
    RatingServiceDep,
    SessionDep,
)
from skill_matrix.api.errors import ERROR_STATUS
from skill_matrix.application.queries.matrix_queries import (
    DefaultSelection,
    MatrixQueries,
    MatrixView,
)
from skill_matrix.models import Employee, RatingUpdate

router = APIRouter(prefix="/matrix", tags=["matrix"])


@router.get("/default-selection", response_model=DefaultSelection)
def read_default_selection(
    session: SessionDep, evaluator: EvaluatorDep
) -> DefaultSelection:
    """
    Team and department to pre-select for a user who can read exactly one team.
    """
    return MatrixQueries(session).default_selection(evaluator)


@router.get("/teams/{team_id}", response_model=MatrixView)
def read_team_matrix(
    team_id: uuid.UUID, session: SessionDep, evaluator: EvaluatorDep
) -> MatrixView:
    evaluator.require_read(team_id)
    result = MatrixQueries(session).get_matrix_view(team_id, evaluator)
    if result.data is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error
        )
    return result.data


@router.put("/ratings")
def update_rating(
    rating_in: RatingUpdate,
    session: SessionDep,
    current_user: CurrentUser,
    evaluator: EvaluatorDep,
    ratings: RatingServiceDep,
) -> Any:
    """
    Set or clear one rating cell.

    A null rating removes the cell. The caller needs write access to the
    employee's team.
    """
    employee = session.get(Employee, rating_in.employee_id)
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    evaluator.require_write_employee(employee.team_id)

    result = ratings.update_rating(
        current_user, rating_in.employee_id, rating_in.station_id, rating_in.rating
    )
    if not result.success:
        return JSONResponse(
            status_code=ERROR_STATUS.get(
                result.error_type, status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            content={"success": False, "error": result.error},
        )
    return {"success": True}
