"""Per-team access grants."""

import uuid

from fastapi import APIRouter

from skill_matrix.api.deps import AccessServiceDep, CurrentUser
from skill_matrix.domain.access.evaluator import TeamGrant
from skill_matrix.models import (
    Message,
    TeamAccessFlags,
    TeamAccessPublic,
    TeamAccessSync,
)

router = APIRouter(prefix="/access", tags=["access"])


def _public(user_id: uuid.UUID, grant: TeamGrant) -> TeamAccessPublic:
    return TeamAccessPublic(
        user_id=user_id,
        team_id=grant.team_id,
        can_read=grant.can_read,
        can_write=grant.can_write,
    )


@router.get("/me", response_model=list[TeamAccessPublic])
def read_own_access(
    current_user: CurrentUser, access: AccessServiceDep
) -> list[TeamAccessPublic]:
    """
    Grants of the current user.
    """
    return [_public(current_user.id, g) for g in access.list_grants(current_user.id)]


@router.get("/users/{user_id}", response_model=list[TeamAccessPublic])
def read_user_access(
    user_id: uuid.UUID, access: AccessServiceDep
) -> list[TeamAccessPublic]:
    return [_public(user_id, g) for g in access.list_grants(user_id)]


@router.put("/users/{user_id}/teams/{team_id}", response_model=TeamAccessPublic)
def grant_team_access(
    user_id: uuid.UUID,
    team_id: uuid.UUID,
    grant_in: TeamAccessFlags,
    access: AccessServiceDep,
) -> TeamAccessPublic:
    """
    Create or overwrite one grant. Write access implies read access.
    """
    grant = access.grant_team_access(
        user_id, team_id, can_read=grant_in.can_read, can_write=grant_in.can_write
    )
    return _public(user_id, grant)


@router.delete("/users/{user_id}/teams/{team_id}")
def revoke_team_access(
    user_id: uuid.UUID, team_id: uuid.UUID, access: AccessServiceDep
) -> Message:
    access.revoke_team_access(user_id, team_id)
    return Message(message="Access revoked")


@router.put("/users/{user_id}", response_model=list[TeamAccessPublic])
def sync_user_access(
    user_id: uuid.UUID, sync_in: TeamAccessSync, access: AccessServiceDep
) -> list[TeamAccessPublic]:
    """
    Replace all grants of a user with the submitted set.

    Teams missing from the set, or submitted with neither read nor write,
    are revoked.
    """
    access.sync_user_grants(user_id, sync_in.grants)
    return [_public(user_id, g) for g in access.list_grants(user_id)]
