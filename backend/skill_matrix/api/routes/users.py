import uuid

from fastapi import APIRouter, Depends, HTTPException

from skill_matrix.api.deps import CurrentUser, SessionDep, get_current_active_admin
from skill_matrix.application.services.user_service import UserService
from skill_matrix.infrastructure.database.repositories.access import UserRepository
from skill_matrix.models import UserCreate, UserPublic, UsersPublic, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "/",
    dependencies=[Depends(get_current_active_admin)],
    response_model=UsersPublic,
)
def read_users(session: SessionDep) -> UsersPublic:
    """
    Retrieve users.
    """
    users = UserRepository(session).list_ordered()
    return UsersPublic(
        data=[UserPublic.model_validate(u) for u in users], count=len(users)
    )


@router.post(
    "/", dependencies=[Depends(get_current_active_admin)], response_model=UserPublic
)
def create_user(*, session: SessionDep, user_in: UserCreate) -> UserPublic:
    """
    Create new user.
    """
    return UserService(session).create_user(user_in)


@router.get("/me", response_model=UserPublic)
def read_user_me(current_user: CurrentUser) -> UserPublic:
    """
    Get current user.
    """
    return current_user


@router.patch(
    "/{user_id}",
    dependencies=[Depends(get_current_active_admin)],
    response_model=UserPublic,
)
def update_user(
    *,
    session: SessionDep,
    current_user: CurrentUser,
    user_id: uuid.UUID,
    user_in: UserUpdate,
) -> UserPublic:
    """
    Update a user's role, status or name.
    """
    if user_id == current_user.id and user_in.role not in (None, current_user.role):
        raise HTTPException(
            status_code=403, detail="Admins cannot change their own role"
        )
    return UserService(session).update_user(user_id, user_in)
