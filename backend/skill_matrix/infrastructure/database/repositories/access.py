"""Users, team grants and the legacy permission projection."""

from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from skill_matrix.domain.access.evaluator import TeamGrant
from skill_matrix.domain.shared.exceptions import (
    EntityAlreadyExistsError,
    RepositoryError,
)
from skill_matrix.models import TeamAccess, User, UserPermission
from skill_matrix.models.base import utcnow

from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    @property
    def entity_class(self) -> type[User]:
        return User

    def get_by_email(self, email: str) -> User | None:
        try:
            return self.session.exec(select(User).where(User.email == email)).first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load user: {e}") from e

    def list_ordered(self) -> list[User]:
        try:
            return list(self.session.exec(select(User).order_by(User.email)))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to list users: {e}") from e


def _legacy_flags(grant: TeamGrant) -> dict[str, bool]:
    return {
        "can_view_team": grant.can_read,
        "can_edit_team_details": grant.can_write,
        "can_manage_employees": grant.can_write,
        "can_manage_skills": grant.can_write,
    }


class TeamAccessRepository(BaseRepository[TeamAccess]):
    """
    Grant storage.

    ``team_access`` is the source of truth. ``user_permissions`` is kept as a
    derived projection and is always written in the same transaction, so the
    two tables cannot diverge on partial failure.
    """

    @property
    def entity_class(self) -> type[TeamAccess]:
        return TeamAccess

    def list_for_user(self, user_id: UUID) -> list[TeamAccess]:
        try:
            statement = select(TeamAccess).where(TeamAccess.user_id == user_id)
            return list(self.session.exec(statement))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load team access: {e}") from e

    def _get(self, user_id: UUID, team_id: UUID) -> TeamAccess | None:
        return self.session.exec(
            select(TeamAccess).where(
                TeamAccess.user_id == user_id, TeamAccess.team_id == team_id
            )
        ).first()

    def _get_legacy(self, user_id: UUID, team_id: UUID) -> UserPermission | None:
        return self.session.exec(
            select(UserPermission).where(
                UserPermission.user_id == user_id, UserPermission.team_id == team_id
            )
        ).first()

    def _stage_grant(self, user_id: UUID, grant: TeamGrant) -> None:
        access = self._get(user_id, grant.team_id)
        if access is None:
            access = TeamAccess(user_id=user_id, team_id=grant.team_id)
        access.can_read = grant.can_read
        access.can_write = grant.can_write
        access.updated_at = utcnow()
        self.session.add(access)

        legacy = self._get_legacy(user_id, grant.team_id)
        if legacy is None:
            legacy = UserPermission(user_id=user_id, team_id=grant.team_id)
        for name, value in _legacy_flags(grant).items():
            setattr(legacy, name, value)
        legacy.updated_at = utcnow()
        self.session.add(legacy)

    def _stage_revoke(self, user_id: UUID, team_id: UUID) -> None:
        access = self._get(user_id, team_id)
        if access is not None:
            self.session.delete(access)
        legacy = self._get_legacy(user_id, team_id)
        if legacy is not None:
            self.session.delete(legacy)

    def apply_changes(
        self,
        user_id: UUID,
        grants: list[TeamGrant],
        revoked_team_ids: list[UUID],
    ) -> None:
        """Upsert ``grants`` and delete ``revoked_team_ids`` in one transaction."""
        try:
            for grant in grants:
                self._stage_grant(user_id, grant)
            for team_id in revoked_team_ids:
                self._stage_revoke(user_id, team_id)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise EntityAlreadyExistsError(
                f"Grant refers to an unknown user or team: {e.orig}"
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Failed to update team access: {e}") from e

    def upsert_grant(self, user_id: UUID, grant: TeamGrant) -> None:
        self.apply_changes(user_id, [grant], [])

    def revoke(self, user_id: UUID, team_id: UUID) -> None:
        self.apply_changes(user_id, [], [team_id])
