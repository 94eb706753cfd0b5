"""
Access Evaluator

Pure decision functions over a snapshot of one user's role and team grants.
The snapshot is built fresh from the store per request; nothing here caches
grant state. Admins bypass every team check.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from uuid import UUID

from skill_matrix.domain.shared.exceptions import PermissionDeniedError
from skill_matrix.models.base import UserRole


@dataclass(frozen=True)
class TeamGrant:
    """Read/write flags for one (user, team) pair."""

    team_id: UUID
    can_read: bool = True
    can_write: bool = False

    @classmethod
    def normalized(cls, team_id: UUID, can_read: bool, can_write: bool) -> "TeamGrant":
        # write implies read
        return cls(team_id=team_id, can_read=can_read or can_write, can_write=can_write)

    @property
    def is_empty(self) -> bool:
        return not (self.can_read or self.can_write)


@dataclass(frozen=True)
class AccessSnapshot:
    user_id: UUID
    role: UserRole
    grants: Mapping[UUID, TeamGrant] = field(default_factory=dict)

    @classmethod
    def from_grants(
        cls, user_id: UUID, role: UserRole, grants: Iterable[TeamGrant]
    ) -> "AccessSnapshot":
        return cls(user_id=user_id, role=role, grants={g.team_id: g for g in grants})

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class AccessEvaluator:
    """Answers can-read / can-write questions for one user."""

    def __init__(self, snapshot: AccessSnapshot | None) -> None:
        # A missing snapshot means the user or their role could not be resolved
        self.snapshot = snapshot

    @property
    def is_admin(self) -> bool:
        return self.snapshot is not None and self.snapshot.is_admin

    def _grant(self, team_id: UUID | None) -> TeamGrant | None:
        if self.snapshot is None or team_id is None:
            return None
        return self.snapshot.grants.get(team_id)

    def can_read(self, team_id: UUID | None) -> bool:
        if self.is_admin:
            return True
        grant = self._grant(team_id)
        return grant is not None and (grant.can_read or grant.can_write)

    def can_write(self, team_id: UUID | None) -> bool:
        if self.is_admin:
            return True
        grant = self._grant(team_id)
        return grant is not None and grant.can_write

    def has_any_write_access(self) -> bool:
        if self.is_admin:
            return True
        if self.snapshot is None:
            return False
        return any(g.can_write for g in self.snapshot.grants.values())

    def can_manage_hierarchy(self) -> bool:
        """Departments, production lines and stations are admin-only."""
        return self.is_admin

    def can_write_employee(self, team_id: UUID | None) -> bool:
        return team_id is not None and self.can_write(team_id)

    def readable_team_ids(self) -> set[UUID]:
        if self.snapshot is None:
            return set()
        return {
            team_id
            for team_id, g in self.snapshot.grants.items()
            if g.can_read or g.can_write
        }

    def writable_team_ids(self) -> set[UUID]:
        if self.snapshot is None:
            return set()
        return {team_id for team_id, g in self.snapshot.grants.items() if g.can_write}

    # Guards raising PermissionDeniedError; callers never reach the store on denial

    def require_read(self, team_id: UUID | None) -> None:
        if not self.can_read(team_id):
            raise PermissionDeniedError("view this team")

    def require_write(self, team_id: UUID | None) -> None:
        if not self.can_write(team_id):
            raise PermissionDeniedError("modify this team")

    def require_any_write(self) -> None:
        if not self.has_any_write_access():
            raise PermissionDeniedError("create teams")

    def require_hierarchy_admin(self, action: str) -> None:
        if not self.can_manage_hierarchy():
            raise PermissionDeniedError(action)

    def require_write_employee(self, team_id: UUID | None) -> None:
        if team_id is None:
            raise PermissionDeniedError(
                "modify this employee",
                "Employee is not assigned to a team; only a team writer can edit it.",
            )
        if not self.can_write(team_id):
            raise PermissionDeniedError("modify employees of this team")
