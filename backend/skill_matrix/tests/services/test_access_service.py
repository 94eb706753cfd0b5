from uuid import uuid4

import pytest
from sqlmodel import Session, select

from skill_matrix.application.services.access_service import (
    AccessControlService,
    diff_grants,
)
from skill_matrix.domain.access.evaluator import TeamGrant
from skill_matrix.domain.shared.exceptions import (
    EntityNotFoundError,
    PermissionDeniedError,
)
from skill_matrix.infrastructure.events.change_feed import ChangeType
from skill_matrix.models import TeamAccess, TeamAccessGrant, User, UserPermission
from skill_matrix.tests.services.recorder import RecordingPublisher
from skill_matrix.tests.utils.factories import Org, create_team, create_user


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def service(db: Session, admin: User, publisher: RecordingPublisher):
    return AccessControlService(db, admin, publisher)


def evaluator_of(db: Session, user: User):
    return AccessControlService(db, user).evaluator


class TestGrantTeamAccess:
    def test_grant_allows_read(self, db, service, org: Org):
        user = create_user(db)
        service.grant_team_access(user.id, org.team.id, can_read=True)
        evaluator = evaluator_of(db, user)
        assert evaluator.can_read(org.team.id)
        assert not evaluator.can_write(org.team.id)

    def test_write_grant_is_stored_with_read(self, db, service, org: Org):
        user = create_user(db)
        grant = service.grant_team_access(
            user.id, org.team.id, can_read=False, can_write=True
        )
        assert grant.can_read and grant.can_write
        row = db.exec(select(TeamAccess).where(TeamAccess.user_id == user.id)).one()
        assert row.can_read is True

    def test_grant_is_idempotent(self, db, service, org: Org):
        """Granting the same access twice leaves one row."""
        user = create_user(db)
        service.grant_team_access(user.id, org.team.id, can_write=True)
        service.grant_team_access(user.id, org.team.id, can_write=True)
        rows = db.exec(select(TeamAccess).where(TeamAccess.user_id == user.id)).all()
        assert len(rows) == 1

    def test_legacy_projection_written_with_grant(self, db, service, org: Org):
        user = create_user(db)
        service.grant_team_access(user.id, org.team.id, can_write=True)
        legacy = db.exec(
            select(UserPermission).where(UserPermission.user_id == user.id)
        ).one()
        assert legacy.can_view_team
        assert legacy.can_manage_skills

    def test_empty_grant_revokes(self, db, service, publisher, org: Org):
        user = create_user(db)
        service.grant_team_access(user.id, org.team.id, can_write=True)
        grant = service.grant_team_access(
            user.id, org.team.id, can_read=False, can_write=False
        )
        assert grant.is_empty
        assert db.exec(select(TeamAccess).where(TeamAccess.user_id == user.id)).first() is None
        assert db.exec(
            select(UserPermission).where(UserPermission.user_id == user.id)
        ).first() is None
        assert publisher.events[-1].change_type == ChangeType.DELETE

    def test_grant_publishes_change(self, db, service, publisher, org: Org):
        user = create_user(db)
        service.grant_team_access(user.id, org.team.id)
        (event,) = publisher.events
        assert event.table == "team_access"
        assert event.value("user_id") == str(user.id)

    def test_unknown_team(self, db, service):
        user = create_user(db)
        with pytest.raises(EntityNotFoundError):
            service.grant_team_access(user.id, uuid4())

    def test_non_admin_cannot_grant(self, db, writer: User, org: Org):
        target = create_user(db)
        service = AccessControlService(db, writer)
        with pytest.raises(PermissionDeniedError):
            service.grant_team_access(target.id, org.team.id)


class TestRevokeTeamAccess:
    def test_revoke_then_check(self, db, service, org: Org):
        user = create_user(db)
        service.grant_team_access(user.id, org.team.id, can_write=True)
        service.revoke_team_access(user.id, org.team.id)
        evaluator = evaluator_of(db, user)
        assert not evaluator.can_read(org.team.id)
        assert not evaluator.can_write(org.team.id)
        assert db.exec(
            select(UserPermission).where(UserPermission.user_id == user.id)
        ).first() is None

    def test_revoke_publishes_delete(self, db, service, publisher, org: Org):
        user = create_user(db)
        service.revoke_team_access(user.id, org.team.id)
        assert publisher.events[-1].change_type == ChangeType.DELETE


class TestSyncUserGrants:
    def test_sync_grants_and_revokes(self, db, service, org: Org):
        user = create_user(db)
        second = create_team(db, org.line)
        service.grant_team_access(user.id, org.team.id, can_write=True)

        changes = service.sync_user_grants(
            user.id, [TeamAccessGrant(team_id=second.id, can_read=True)]
        )

        assert [g.team_id for g in changes.granted] == [second.id]
        assert changes.revoked == [org.team.id]
        evaluator = evaluator_of(db, user)
        assert evaluator.readable_team_ids() == {second.id}

    def test_sync_without_changes_writes_nothing(self, db, service, publisher, org: Org):
        user = create_user(db)
        service.grant_team_access(user.id, org.team.id)
        publisher.events.clear()
        changes = service.sync_user_grants(
            user.id, [TeamAccessGrant(team_id=org.team.id, can_read=True)]
        )
        assert changes.is_empty
        assert publisher.events == []


class TestDiffGrants:
    def test_empty_entries_count_as_removals(self):
        team_id = uuid4()
        current = {team_id: TeamGrant(team_id, can_read=True)}
        changes = diff_grants(
            current,
            [TeamAccessGrant(team_id=team_id, can_read=False, can_write=False)],
        )
        assert changes.revoked == [team_id]
        assert changes.granted == []


class TestListGrants:
    def test_user_reads_own_grants(self, db, reader: User, org: Org):
        grants = AccessControlService(db, reader).list_grants(reader.id)
        assert [g.team_id for g in grants] == [org.team.id]

    def test_user_cannot_read_other_grants(self, db, reader: User, writer: User):
        with pytest.raises(PermissionDeniedError):
            AccessControlService(db, reader).list_grants(writer.id)
