from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from skill_matrix.api.deps import get_db
from skill_matrix.core.db import build_engine
from skill_matrix.infrastructure.events.change_feed import InMemoryChangeFeed
from skill_matrix.infrastructure.events.registry import reset_change_feed
from skill_matrix.main import app
from skill_matrix.models import User, UserRole
from skill_matrix.tests.utils.factories import (
    Org,
    create_org,
    create_user,
    grant,
    token_headers,
)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    """In-memory SQLite shared by every session of one test."""
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture()
def db(engine: Engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture()
def feed() -> Generator[InMemoryChangeFeed, None, None]:
    change_feed = InMemoryChangeFeed()
    reset_change_feed(change_feed)
    yield change_feed
    reset_change_feed()


@pytest.fixture()
def client(engine: Engine, feed: InMemoryChangeFeed) -> Generator[TestClient, None, None]:
    def get_test_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = get_test_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def org(db: Session) -> Org:
    return create_org(db)


@pytest.fixture()
def admin(db: Session) -> User:
    return create_user(db, role=UserRole.ADMIN)


@pytest.fixture()
def reader(db: Session, org: Org) -> User:
    user = create_user(db)
    grant(db, user, org.team, can_read=True)
    return user


@pytest.fixture()
def writer(db: Session, org: Org) -> User:
    user = create_user(db)
    grant(db, user, org.team, can_write=True)
    return user


@pytest.fixture()
def admin_token_headers(admin: User) -> dict[str, str]:
    return token_headers(admin)


@pytest.fixture()
def reader_token_headers(reader: User) -> dict[str, str]:
    return token_headers(reader)


@pytest.fixture()
def writer_token_headers(writer: User) -> dict[str, str]:
    return token_headers(writer)
