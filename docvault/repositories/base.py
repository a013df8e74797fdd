"""Base repository with shared get-by-ID patterns.

Subclasses specify model_class and not_found_error; the base provides
get_by_id (raises) and get_by_id_optional (returns None). Every call
re-reads the row: repositories hold no state between requests.
"""

from typing import Callable, TypeVar, Generic, Optional, Type
from sqlalchemy.orm import Session, Query

from ..database import Base
from ..exceptions import VaultException

ModelT = TypeVar("ModelT", bound=Base)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so *value* is matched literally (escape char \\)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., Company)
        id_column:       Name of the primary-key column (default "id")
        not_found_error: Callable taking the id and returning the exception to raise
    """

    model_class: Type[ModelT]
    id_column: str = "id"
    not_found_error: Callable[[str], VaultException]

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(self.model_class)

    def get_by_id(self, entity_id: str) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = self.get_by_id_optional(entity_id)
        if entity is None:
            raise self.not_found_error(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: str) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        col = getattr(self.model_class, self.id_column)
        return self._base_query().filter(col == entity_id).first()

    def add(self, entity: ModelT) -> ModelT:
        """Stage a new entity in the current transaction (no commit)."""
        self.db.add(entity)
        return entity
