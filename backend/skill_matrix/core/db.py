from typing import Any

from sqlalchemy import Engine, event
from sqlmodel import Session, create_engine, select

from skill_matrix.core.config import settings
from skill_matrix.core.security import get_password_hash
from skill_matrix.models import User, UserRole


def build_engine(url: str, **overrides: Any) -> Engine:
    """Create an engine for ``url`` with pool settings suited to its dialect."""
    engine_kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs.update(
            {
                "pool_recycle": 3600,  # Recycle connections every hour
                "pool_size": 10,
                "max_overflow": 20,
            }
        )
        # Managed Postgres (e.g. Supabase) requires SSL outside local runs
        if settings.ENVIRONMENT != "local" or settings.USE_SSL:
            engine_kwargs["connect_args"] = {
                "sslmode": "require",
                "connect_timeout": 10,
                "application_name": settings.PROJECT_NAME,
            }
    engine_kwargs.update(overrides)

    new_engine = create_engine(url, **engine_kwargs)
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    # ON DELETE CASCADE is only honoured by SQLite with this pragma
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = build_engine(settings.SQLALCHEMY_DATABASE_URI)


# make sure all SQLModel models are imported (skill_matrix.models) before
# initializing DB, otherwise SQLModel might fail to initialize relationships


def init_db(session: Session) -> None:
    # Tables should be created with migrations; create_all is used by tests
    user = session.exec(
        select(User).where(User.email == settings.FIRST_SUPERUSER)
    ).first()
    if not user:
        user = User(
            email=settings.FIRST_SUPERUSER,
            hashed_password=get_password_hash(settings.FIRST_SUPERUSER_PASSWORD),
            role=UserRole.ADMIN,
            full_name="Administrator",
        )
        session.add(user)
        session.commit()
