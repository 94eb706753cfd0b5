"""Rating table access with upsert-or-delete semantics."""

import uuid
from collections.abc import Collection
from enum import Enum
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select

from skill_matrix.domain.shared.exceptions import RepositoryError, ValidationError
from skill_matrix.models import EmployeeSkill
from skill_matrix.models.base import utcnow

from .base import BaseRepository


class RatingWrite(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    NOOP = "NOOP"


class SkillRatingRepository(BaseRepository[EmployeeSkill]):
    @property
    def entity_class(self) -> type[EmployeeSkill]:
        return EmployeeSkill

    def get_rating(self, employee_id: UUID, station_id: UUID) -> EmployeeSkill | None:
        try:
            statement = select(EmployeeSkill).where(
                EmployeeSkill.employee_id == employee_id,
                EmployeeSkill.station_id == station_id,
            )
            return self.session.exec(statement).first()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load rating: {e}") from e

    def list_for_employees(self, employee_ids: Collection[UUID]) -> list[EmployeeSkill]:
        if not employee_ids:
            return []
        try:
            statement = select(EmployeeSkill).where(
                col(EmployeeSkill.employee_id).in_(list(employee_ids))
            )
            return list(self.session.exec(statement))
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load ratings: {e}") from e

    def upsert_rating(
        self,
        employee_id: UUID,
        station_id: UUID,
        rating: int,
        updated_by: UUID,
    ) -> RatingWrite:
        """Insert or overwrite the (employee, station) cell. Last write wins."""
        existed = self.get_rating(employee_id, station_id) is not None
        now = utcnow()
        dialect = self.session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        statement = insert(EmployeeSkill).values(
            id=uuid.uuid4(),
            employee_id=employee_id,
            station_id=station_id,
            rating=rating,
            last_updated_by_user_id=updated_by,
            created_at=now,
            updated_at=now,
        )
        statement = statement.on_conflict_do_update(
            index_elements=["employee_id", "station_id"],
            set_={
                "rating": statement.excluded.rating,
                "last_updated_by_user_id": statement.excluded.last_updated_by_user_id,
                "updated_at": statement.excluded.updated_at,
            },
        )
        try:
            self.session.exec(statement)  # type: ignore[call-overload]
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise ValidationError(
                "station_id",
                str(station_id),
                "Rating refers to an unknown employee or station.",
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Failed to save rating: {e}") from e
        # Rows cached in this session predate the upsert
        self.session.expire_all()
        return RatingWrite.UPDATE if existed else RatingWrite.INSERT

    def delete_rating(self, employee_id: UUID, station_id: UUID) -> RatingWrite:
        """Remove the cell if present; a missing row is not an error."""
        statement = delete(EmployeeSkill).where(
            col(EmployeeSkill.employee_id) == employee_id,
            col(EmployeeSkill.station_id) == station_id,
        )
        try:
            result = self.session.exec(statement)  # type: ignore[call-overload]
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Failed to clear rating: {e}") from e
        self.session.expire_all()
        return RatingWrite.DELETE if result.rowcount else RatingWrite.NOOP
