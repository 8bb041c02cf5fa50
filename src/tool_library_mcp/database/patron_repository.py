"""
Patron repository for the Tool Library MCP Server.

Registration and edits run through ``PatronFields``, so the contact and
address rules hold for every write. ``overdue_count`` is never written
here; only the checkout ledger increments it.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..models.file import FileRecord
from ..models.patron import Patron as PatronModel
from ..models.patron import PatronDetail, PatronFields
from .checkout_repository import CheckoutRepository
from .repository import BaseRepository, NotFoundError
from .schema import Patron as PatronDB
from .session import safe_query

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 50


class PatronRepository(BaseRepository[PatronDB, PatronModel]):
    """Repository for patron records."""

    @property
    def model_class(self):
        return PatronDB

    @property
    def response_schema(self):
        return PatronModel

    def create(self, fields: PatronFields, created_by: int | None = None) -> PatronModel:
        """Register a new patron."""
        db_patron = PatronDB(**fields.model_dump(), overdue_count=0, created_by=created_by)
        db_patron = self._commit_new(db_patron, "register patron")
        logger.info("Registered patron %s (%s)", db_patron.id, db_patron.full_name)
        return self._to_response_model(db_patron)

    def update(self, patron_id: int, fields: PatronFields) -> PatronModel:
        """
        Replace a patron's editable fields.

        Raises:
            NotFoundError: If the patron does not exist
        """
        db_patron = self._require_db_obj(patron_id)
        for key, value in fields.model_dump().items():
            setattr(db_patron, key, value)
        self._commit_changes(db_patron, "update patron")
        return self._to_response_model(db_patron)

    def get_detail(self, patron_id: int) -> PatronDetail:
        """
        Patron with full loan history and files.

        Raises:
            NotFoundError: If the patron does not exist
        """
        query = (
            select(PatronDB)
            .where(PatronDB.id == patron_id)
            .options(selectinload(PatronDB.files))
        )
        db_patron = safe_query(
            self.session, lambda s: s.execute(query).scalar_one_or_none(), "Failed to get patron"
        )
        if db_patron is None:
            raise NotFoundError(f"Patron {patron_id} not found")

        files = sorted(db_patron.files, key=lambda f: f.uploaded_at, reverse=True)
        return PatronDetail(
            **self._to_response_model(db_patron).model_dump(),
            checkouts=CheckoutRepository(self.session).patron_history(patron_id),
            files=[FileRecord.model_validate(f) for f in files],
        )

    def search(
        self,
        last_name: str | None = None,
        first_name: str | None = None,
        limit: int | None = DEFAULT_SEARCH_LIMIT,
    ) -> list[PatronModel]:
        """
        Patrons whose names contain the given fragments.

        Both fragments must match when both are given. With neither, the
        result is empty; use ``list_patrons`` for an unfiltered list.
        """
        last = (last_name or "").strip()
        first = (first_name or "").strip()
        if not last and not first:
            return []
        return self._find(last, first, limit)

    def list_patrons(self, last_name: str | None = None, first_name: str | None = None):
        """All patrons matching the optional name filters, ordered by name."""
        return self._find((last_name or "").strip(), (first_name or "").strip(), None)

    def _find(self, last: str, first: str, limit: int | None) -> list[PatronModel]:
        query = select(PatronDB).order_by(PatronDB.last_name, PatronDB.first_name)
        if last:
            query = query.where(PatronDB.last_name.ilike(f"%{last}%"))
        if first:
            query = query.where(PatronDB.first_name.ilike(f"%{first}%"))
        if limit is not None:
            query = query.limit(limit)

        rows = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to search patrons"
        )
        return [self._to_response_model(row) for row in rows]
