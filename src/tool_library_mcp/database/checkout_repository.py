"""
Checkout ledger for the Tool Library MCP Server.

The ledger is the only writer of checkout rows and of a patron's
overdue_count:

1. **Checkout**: a batch of tools for one patron, all-or-nothing
2. **Check-in**: closes one checkout exactly once, flagging late returns
3. **Reports**: active loans, overdue loans, a patron's history

Availability of a tool is quantity minus its CHECKED_OUT rows. A batch is
checked before any row is written and again after the rows are flushed,
inside the same transaction, so two requests racing for the last unit
cannot both commit.
"""

import logging
import math
from collections import Counter
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from ..models.checkout import CheckinResult, CheckoutWithDetails
from ..models.checkout import Checkout as CheckoutModel
from .repository import (
    AlreadyReturnedError,
    NotFoundError,
    RepositoryException,
    StorageError,
    UnavailableError,
    ValidationError,
)
from .schema import Checkout as CheckoutDB
from .schema import CheckoutStatusEnum
from .schema import Patron as PatronDB
from .schema import Tool as ToolDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

# A due date given as a calendar day means "by the end of that day"
END_OF_DAY = time(23, 59, 59)


def normalize_due_date(due: date | datetime) -> datetime:
    if isinstance(due, datetime):
        return due
    return datetime.combine(due, END_OF_DAY)


def checkout_period_days(due: datetime, now: datetime) -> int:
    """Whole days from now until due, rounded up."""
    return math.ceil((due - now) / timedelta(days=1))


def checkout_with_details(db_checkout: CheckoutDB) -> CheckoutWithDetails:
    return CheckoutWithDetails(
        **CheckoutModel.model_validate(db_checkout).model_dump(),
        tool_name=db_checkout.tool.name if db_checkout.tool else None,
        patron_name=db_checkout.patron.full_name if db_checkout.patron else None,
    )


class CheckoutRepository:
    """
    Repository for the checkout ledger.

    Writes run in a single transaction each: on SQLite the session opens it
    with BEGIN IMMEDIATE, elsewhere the tool rows are locked FOR UPDATE.
    """

    def __init__(self, session: Session):
        self.session = session

    def _active_counts(self, tool_ids: list[int]) -> dict[int, int]:
        query = (
            select(CheckoutDB.tool_id, func.count(CheckoutDB.id))
            .where(
                CheckoutDB.tool_id.in_(tool_ids),
                CheckoutDB.status == CheckoutStatusEnum.CHECKED_OUT,
            )
            .group_by(CheckoutDB.tool_id)
        )
        return dict(
            safe_query(self.session, lambda s: s.execute(query).all(), "Failed to count loans")
        )

    def _check_availability(self, tools: list[ToolDB], requested: Counter, pending: bool):
        """
        Raise UnavailableError for the first tool that cannot cover its request.

        With ``pending`` the requested rows are already flushed and counted
        among the active loans.
        """
        active = self._active_counts([t.id for t in tools])
        for tool in tools:
            on_loan = active.get(tool.id, 0)
            if pending:
                on_loan -= requested[tool.id]
            available = tool.quantity - on_loan
            if available <= 0 or requested[tool.id] > available:
                raise UnavailableError(
                    f'Tool "{tool.name}" is not available for checkout',
                    tool_id=tool.id,
                    tool_name=tool.name,
                )

    def checkout(
        self,
        patron_id: int,
        tool_ids: list[int],
        due_date: date | datetime | None,
        volunteer_id: int,
        now: datetime | None = None,
    ) -> list[CheckoutModel]:
        """
        Lend one unit of each requested tool to a patron.

        A tool id listed twice borrows two units of that tool. Either every
        checkout row is created or none is.

        Raises:
            ValidationError: If no tools or no due date were given
            NotFoundError: If the patron or any tool does not exist
            UnavailableError: If any tool has no unit left to lend
        """
        if not tool_ids:
            raise ValidationError("At least one tool is required", field="tool_ids")
        if due_date is None:
            raise ValidationError("A due date is required", field="due_date")

        now = now or datetime.now()
        due = normalize_due_date(due_date)
        if due < now:
            raise ValidationError("Due date cannot be in the past", field="due_date")
        period = checkout_period_days(due, now)

        requested = Counter(tool_ids)
        try:
            patron = safe_query(
                self.session, lambda s: s.get(PatronDB, patron_id), "Failed to get patron"
            )
            if patron is None:
                raise NotFoundError(f"Patron {patron_id} not found", field="patron_id")

            tools = safe_query(
                self.session,
                lambda s: s.execute(
                    select(ToolDB)
                    .where(ToolDB.id.in_(list(requested)))
                    .order_by(ToolDB.id)
                    .with_for_update()
                )
                .scalars()
                .all(),
                "Failed to get tools for checkout",
            )
            missing = sorted(set(requested) - {t.id for t in tools})
            if missing:
                raise NotFoundError(
                    f"Tool(s) not found: {', '.join(str(m) for m in missing)}", field="tool_ids"
                )

            self._check_availability(tools, requested, pending=False)

            rows = [
                CheckoutDB(
                    tool_id=tool_id,
                    patron_id=patron_id,
                    volunteer_id=volunteer_id,
                    checkout_date=now,
                    due_date=due,
                    checkout_period=period,
                    status=CheckoutStatusEnum.CHECKED_OUT,
                    was_overdue=False,
                )
                for tool_id in tool_ids
            ]
            self.session.add_all(rows)
            self.session.flush()

            self._check_availability(tools, requested, pending=True)
        except RepositoryException:
            self.session.rollback()
            raise

        safe_commit(self.session, "checkout tools")
        logger.info(
            "Patron %s checked out %d tool(s) %s, due %s",
            patron_id,
            len(rows),
            tool_ids,
            due.isoformat(),
        )
        return [CheckoutModel.model_validate(row) for row in rows]

    def checkin(
        self, checkout_id: int, volunteer_id: int, now: datetime | None = None
    ) -> CheckinResult:
        """
        Return a checked-out tool.

        A return after the due date permanently marks the checkout as
        overdue and adds one to the patron's overdue count, in the same
        transaction as the status change.

        Raises:
            NotFoundError: If the checkout does not exist
            AlreadyReturnedError: If the checkout was already returned
        """
        now = now or datetime.now()
        try:
            checkout = safe_query(
                self.session,
                lambda s: s.execute(
                    select(CheckoutDB)
                    .where(CheckoutDB.id == checkout_id)
                    .options(selectinload(CheckoutDB.tool))
                    .with_for_update()
                ).scalar_one_or_none(),
                "Failed to get checkout",
            )
            if checkout is None:
                raise NotFoundError(f"Checkout {checkout_id} not found", field="checkout_id")
            if checkout.status != CheckoutStatusEnum.CHECKED_OUT:
                raise AlreadyReturnedError(
                    "This item has already been checked in", field="checkout_id"
                )
        except RepositoryException:
            self.session.rollback()
            raise

        is_overdue = now > checkout.due_date
        checkout.checkin_date = now
        checkout.checkin_volunteer_id = volunteer_id
        checkout.status = CheckoutStatusEnum.RETURNED
        checkout.was_overdue = is_overdue or checkout.was_overdue

        try:
            if is_overdue:
                safe_query(
                    self.session,
                    lambda s: s.execute(
                        update(PatronDB)
                        .where(PatronDB.id == checkout.patron_id)
                        .values(overdue_count=PatronDB.overdue_count + 1)
                    ),
                    "Failed to update patron overdue count",
                )
            overdue_count = safe_query(
                self.session,
                lambda s: s.execute(
                    select(PatronDB.overdue_count).where(PatronDB.id == checkout.patron_id)
                ).scalar_one(),
                "Failed to read patron overdue count",
            )
        except StorageError:
            self.session.rollback()
            raise

        safe_commit(self.session, "checkin tool")
        tool_name = checkout.tool.name if checkout.tool else f"tool {checkout.tool_id}"
        if is_overdue:
            logger.info(
                "Checkout %s (%s) returned late; patron %s overdue count now %s",
                checkout_id,
                tool_name,
                checkout.patron_id,
                overdue_count,
            )
        else:
            logger.info("Checkout %s (%s) returned", checkout_id, tool_name)

        return CheckinResult(
            checkout=CheckoutModel.model_validate(checkout),
            tool_name=tool_name,
            returned_late=is_overdue,
            patron_overdue_count=overdue_count,
        )

    def get(self, checkout_id: int) -> CheckoutWithDetails | None:
        db_checkout = safe_query(
            self.session, lambda s: s.get(CheckoutDB, checkout_id), "Failed to get checkout"
        )
        return checkout_with_details(db_checkout) if db_checkout else None

    def _details(self, query) -> list[CheckoutWithDetails]:
        query = query.options(selectinload(CheckoutDB.tool), selectinload(CheckoutDB.patron))
        rows = safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to list checkouts"
        )
        return [checkout_with_details(row) for row in rows]

    def list_active(self, patron_id: int | None = None) -> list[CheckoutWithDetails]:
        """Open checkouts ordered by due date, optionally for one patron."""
        query = (
            select(CheckoutDB)
            .where(CheckoutDB.status == CheckoutStatusEnum.CHECKED_OUT)
            .order_by(CheckoutDB.due_date, CheckoutDB.id)
        )
        if patron_id is not None:
            query = query.where(CheckoutDB.patron_id == patron_id)
        return self._details(query)

    def list_overdue(self, now: datetime | None = None) -> list[CheckoutWithDetails]:
        """Open checkouts past their due date, most overdue first."""
        now = now or datetime.now()
        query = (
            select(CheckoutDB)
            .where(
                CheckoutDB.status == CheckoutStatusEnum.CHECKED_OUT,
                CheckoutDB.due_date < now,
            )
            .order_by(CheckoutDB.due_date, CheckoutDB.id)
        )
        return self._details(query)

    def patron_history(self, patron_id: int) -> list[CheckoutWithDetails]:
        """
        Every checkout of a patron, newest first.

        Raises:
            NotFoundError: If the patron does not exist
        """
        patron = safe_query(
            self.session, lambda s: s.get(PatronDB, patron_id), "Failed to get patron"
        )
        if patron is None:
            raise NotFoundError(f"Patron {patron_id} not found", field="patron_id")
        query = (
            select(CheckoutDB)
            .where(CheckoutDB.patron_id == patron_id)
            .order_by(CheckoutDB.checkout_date.desc(), CheckoutDB.id.desc())
        )
        return self._details(query)
