"""
Create the schema and the first admin account.

Run with ``python -m skill_matrix.initial_data`` against local and preview
databases.
"""

from sqlmodel import Session, SQLModel

from skill_matrix.core.db import engine, init_db
from skill_matrix.core.observability import get_logger, setup_structured_logging

logger = get_logger(__name__)


def init() -> None:
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        init_db(session)


def main() -> None:
    setup_structured_logging()
    logger.info("Creating initial data")
    init()
    logger.info("Initial data created")


if __name__ == "__main__":
    main()
