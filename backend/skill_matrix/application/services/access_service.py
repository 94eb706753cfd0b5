"""
Access control service.

The single entry point for grant state: callers get decisions through an
``AccessEvaluator`` built from a fresh snapshot of the store, and admins
manage grants through the methods below. The service is constructed per
request with the database session and the requesting identity.
"""

from dataclasses import dataclass, field
from uuid import UUID

from sqlmodel import Session

from skill_matrix.core.observability import ACCESS_DENIALS, get_logger
from skill_matrix.domain.access.evaluator import (
    AccessEvaluator,
    AccessSnapshot,
    TeamGrant,
)
from skill_matrix.domain.shared.exceptions import (
    EntityNotFoundError,
    PermissionDeniedError,
)
from skill_matrix.infrastructure.database.mappers import to_team_grant
from skill_matrix.infrastructure.database.repositories.access import (
    TeamAccessRepository,
    UserRepository,
)
from skill_matrix.infrastructure.database.repositories.organization import (
    TeamRepository,
)
from skill_matrix.infrastructure.events.change_feed import (
    ChangePublisher,
    ChangeType,
    change_event,
)
from skill_matrix.models import TeamAccessGrant, User

logger = get_logger(__name__)


@dataclass
class GrantChanges:
    granted: list[TeamGrant] = field(default_factory=list)
    revoked: list[UUID] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.granted or self.revoked)


def diff_grants(
    current: dict[UUID, TeamGrant], desired: list[TeamAccessGrant]
) -> GrantChanges:
    """Compare the stored grants with a desired set.

    Desired entries with neither flag set count as removals. Unchanged
    entries are left alone.
    """
    changes = GrantChanges()
    wanted: dict[UUID, TeamGrant] = {}
    for entry in desired:
        grant = TeamGrant.normalized(entry.team_id, entry.can_read, entry.can_write)
        if not grant.is_empty:
            wanted[grant.team_id] = grant

    for team_id, grant in wanted.items():
        if current.get(team_id) != grant:
            changes.granted.append(grant)
    for team_id in current:
        if team_id not in wanted:
            changes.revoked.append(team_id)
    return changes


class AccessControlService:
    def __init__(
        self,
        session: Session,
        identity: User | None,
        publisher: ChangePublisher | None = None,
    ) -> None:
        self.session = session
        self.identity = identity
        self.publisher = publisher
        self.users = UserRepository(session)
        self.grants = TeamAccessRepository(session)
        self.teams = TeamRepository(session)
        self._evaluator: AccessEvaluator | None = None

    def snapshot_for(self, user_id: UUID) -> AccessSnapshot | None:
        """Role and grants for ``user_id`` as currently stored; None if unknown."""
        user = self.users.get_by_id(user_id)
        if user is None or user.role is None:
            return None
        return AccessSnapshot.from_grants(
            user.id,
            user.role,
            (to_team_grant(a) for a in self.grants.list_for_user(user.id)),
        )

    @property
    def evaluator(self) -> AccessEvaluator:
        """Decisions for the requesting identity, loaded once per request."""
        if self._evaluator is None:
            snapshot = (
                self.snapshot_for(self.identity.id) if self.identity else None
            )
            self._evaluator = AccessEvaluator(snapshot)
        return self._evaluator

    def refresh(self) -> None:
        self._evaluator = None

    def _require_admin(self, action: str) -> None:
        if not self.evaluator.is_admin:
            ACCESS_DENIALS.labels(action=action).inc()
            raise PermissionDeniedError(action)

    def _require_user(self, user_id: UUID) -> User:
        return self.users.get_by_id_required(user_id)

    def _require_team(self, team_id: UUID) -> None:
        if self.teams.get_by_id(team_id) is None:
            raise EntityNotFoundError("Team", team_id)

    def list_grants(self, user_id: UUID) -> list[TeamGrant]:
        if self.identity is None or (
            user_id != self.identity.id and not self.evaluator.is_admin
        ):
            raise PermissionDeniedError("view access grants of other users")
        self._require_user(user_id)
        return [to_team_grant(a) for a in self.grants.list_for_user(user_id)]

    def grant_team_access(
        self,
        user_id: UUID,
        team_id: UUID,
        can_read: bool = True,
        can_write: bool = False,
    ) -> TeamGrant:
        """Create or overwrite the (user, team) grant. Write forces read on.

        A grant with neither flag removes the pair, as a sync would.
        """
        self._require_admin("manage team access")
        self._require_user(user_id)
        self._require_team(team_id)
        grant = TeamGrant.normalized(team_id, can_read, can_write)
        if grant.is_empty:
            self.grants.revoke(user_id, team_id)
            self._after_change(user_id, GrantChanges(revoked=[team_id]))
            return grant
        self.grants.upsert_grant(user_id, grant)
        self._after_change(user_id, GrantChanges(granted=[grant]))
        return grant

    def revoke_team_access(self, user_id: UUID, team_id: UUID) -> None:
        self._require_admin("manage team access")
        self._require_user(user_id)
        self.grants.revoke(user_id, team_id)
        self._after_change(user_id, GrantChanges(revoked=[team_id]))

    def sync_user_grants(
        self, user_id: UUID, desired: list[TeamAccessGrant]
    ) -> GrantChanges:
        """Make the user's grants equal ``desired`` in one transaction."""
        self._require_admin("manage team access")
        self._require_user(user_id)
        for entry in desired:
            self._require_team(entry.team_id)
        current = {
            a.team_id: to_team_grant(a) for a in self.grants.list_for_user(user_id)
        }
        changes = diff_grants(current, desired)
        if not changes.is_empty:
            self.grants.apply_changes(user_id, changes.granted, changes.revoked)
            self._after_change(user_id, changes)
        return changes

    def _after_change(self, user_id: UUID, changes: GrantChanges) -> None:
        logger.info(
            "Team access updated",
            target_user_id=str(user_id),
            granted=[str(g.team_id) for g in changes.granted],
            revoked=[str(t) for t in changes.revoked],
        )
        if self.identity is not None and user_id == self.identity.id:
            self.refresh()
        if self.publisher is not None:
            for grant in changes.granted:
                self.publisher.publish(
                    change_event(
                        "team_access",
                        ChangeType.UPDATE,
                        user_id=user_id,
                        team_id=grant.team_id,
                    )
                )
            for team_id in changes.revoked:
                self.publisher.publish(
                    change_event(
                        "team_access",
                        ChangeType.DELETE,
                        user_id=user_id,
                        team_id=team_id,
                    )
                )
