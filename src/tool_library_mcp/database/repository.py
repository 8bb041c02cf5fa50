"""
Base repository for the Tool Library MCP Server.

MCP handlers never query the ORM directly. Each aggregate (categories,
tools, patrons, checkouts, users) has a repository that owns its queries
and transactions and hands back Pydantic models. Every failure is raised
as a ``RepositoryException`` subclass, which the handlers turn into
error envelopes.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import (
    AlreadyReturnedError,
    CycleError,
    DuplicateError,
    NotFoundError,
    RepositoryException,
    StorageError,
    UnavailableError,
    ValidationError,
)
from .schema import Base
from .session import safe_commit, safe_query

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

__all__ = [
    "AlreadyReturnedError",
    "BaseRepository",
    "CycleError",
    "DuplicateError",
    "NotFoundError",
    "RepositoryException",
    "StorageError",
    "UnavailableError",
    "ValidationError",
]


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Lookups and deletion shared by the entity repositories.

    Creation and updates carry domain rules (sibling-unique names, cycle
    checks, patron contact rules) and are written per subclass on top of
    ``_commit_new`` and ``_commit_changes``.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """SQLAlchemy model the repository manages."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Pydantic model returned to callers."""

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_db_obj(self, id: int) -> ModelType | None:
        return safe_query(
            self.session,
            lambda s: s.get(self.model_class, id),
            f"Failed to load {self.entity_name} {id}",
        )

    def _require_db_obj(self, id: int) -> ModelType:
        db_obj = self._get_db_obj(id)
        if db_obj is None:
            raise NotFoundError(f"{self.entity_name} {id} not found")
        return db_obj

    def get_by_id(self, id: int) -> ResponseSchemaType | None:
        db_obj = self._get_db_obj(id)
        return self._to_response_model(db_obj) if db_obj is not None else None

    def _commit_new(self, db_obj: ModelType, operation: str) -> ModelType:
        """Insert a row and reload it; a constraint violation becomes DuplicateError."""
        self.session.add(db_obj)
        try:
            safe_commit(self.session, operation)
        except IntegrityError as e:
            raise DuplicateError(f"{self.entity_name} already exists: {e.orig!s}") from e
        self.session.refresh(db_obj)
        return db_obj

    def _commit_changes(self, db_obj: ModelType, operation: str) -> ModelType:
        """Commit edits to a loaded row; a constraint violation becomes ValidationError."""
        try:
            safe_commit(self.session, operation)
        except IntegrityError as e:
            raise ValidationError(f"Could not {operation}: {e.orig!s}") from e
        self.session.refresh(db_obj)
        return db_obj

    def delete(self, id: int) -> bool:
        """Delete a row; False when there was nothing to delete."""
        db_obj = self._get_db_obj(id)
        if db_obj is None:
            return False
        self.session.delete(db_obj)
        try:
            safe_commit(self.session, f"delete {self.entity_name}")
        except IntegrityError as e:
            raise ValidationError(f"{self.entity_name} {id} is still referenced") from e
        return True
