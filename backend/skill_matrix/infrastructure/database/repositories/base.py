"""
Base repository implementation providing generic CRUD operations.

Concrete repositories extend this class with the entity they manage and add
their own queries. Database failures surface as domain ``RepositoryError`` /
``EntityAlreadyExistsError`` with the session rolled back.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from skill_matrix.domain.shared.exceptions import (
    EntityAlreadyExistsError,
    EntityNotFoundError,
    RepositoryError,
    ValidationError,
)

EntityType = TypeVar("EntityType", bound=SQLModel)


class BaseRepository(Generic[EntityType], ABC):
    """Generic CRUD for one SQLModel table."""

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def entity_class(self) -> type[EntityType]:
        """Return the SQLModel entity class managed by this repository."""

    @property
    def entity_label(self) -> str:
        return self.entity_class.__name__

    def create(self, entity_data: SQLModel | dict[str, Any]) -> EntityType:
        """
        Insert a new row.

        Raises:
            EntityAlreadyExistsError: If a unique constraint is violated
            RepositoryError: If the database operation fails
        """
        if isinstance(entity_data, dict):
            entity = self.entity_class(**entity_data)
        elif isinstance(entity_data, self.entity_class):
            entity = entity_data
        else:
            entity = self.entity_class.model_validate(entity_data)
        return self.save(entity)

    def get_by_id(self, entity_id: UUID) -> EntityType | None:
        try:
            return self.session.get(self.entity_class, entity_id)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during get_by_id: {e}") from e

    def get_by_id_required(self, entity_id: UUID) -> EntityType:
        entity = self.get_by_id(entity_id)
        if entity is None:
            raise EntityNotFoundError(self.entity_label, entity_id)
        return entity

    def get_all(self, limit: int | None = None, offset: int = 0) -> list[EntityType]:
        try:
            statement = select(self.entity_class).offset(offset)
            if limit:
                statement = statement.limit(limit)
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during get_all: {e}") from e

    def update(self, entity_id: UUID, update_data: SQLModel) -> EntityType:
        """
        Apply the fields set on ``update_data`` to an existing row.

        Raises:
            EntityNotFoundError: If the row does not exist
            ValidationError: If a NOT NULL column is explicitly set to null
            RepositoryError: If the database operation fails
        """
        changes = update_data.model_dump(exclude_unset=True)
        self._reject_nulls(changes)
        entity = self.get_by_id_required(entity_id)
        entity.sqlmodel_update(changes)
        return self.save(entity)

    def _reject_nulls(self, changes: dict[str, Any]) -> None:
        # An explicit null in a partial update must not reach a NOT NULL column
        columns = self.entity_class.__table__.columns  # type: ignore[attr-defined]
        for name, value in changes.items():
            if value is None and name in columns and not columns[name].nullable:
                raise ValidationError(name, None, f"{name} cannot be null")

    def delete(self, entity_id: UUID) -> bool:
        """Delete a row; children go with it through ON DELETE CASCADE."""
        try:
            entity = self.get_by_id(entity_id)
            if entity is None:
                return False
            self.session.delete(entity)
            self.session.commit()
            return True
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Database error during delete: {e}") from e

    def save(self, entity: EntityType) -> EntityType:
        try:
            self.session.add(entity)
            self.session.commit()
            self.session.refresh(entity)
            return entity
        except IntegrityError as e:
            self.session.rollback()
            raise EntityAlreadyExistsError(
                f"{self.entity_label} violates a uniqueness or reference constraint"
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Database error during save: {e}") from e

    def bulk_create(self, entities: list[EntityType]) -> list[EntityType]:
        """Insert several rows in a single transaction."""
        try:
            self.session.add_all(entities)
            self.session.commit()
            for entity in entities:
                self.session.refresh(entity)
            return entities
        except IntegrityError as e:
            self.session.rollback()
            raise EntityAlreadyExistsError(
                f"{self.entity_label} violates a uniqueness or reference constraint"
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryError(f"Database error during bulk_create: {e}") from e
