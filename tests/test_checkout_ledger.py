"""
Tests for the checkout ledger.

These cover the circulation rules:
1. A batch checkout is all-or-nothing
2. Availability is quantity minus open loans, duplicates included
3. A late check-in bumps the patron's overdue count by exactly one
4. A checkout can only be checked in once
5. Two requests racing for the last unit cannot both win
"""

import threading
from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.dml import Update

from tool_library_mcp.database import (
    AlreadyReturnedError,
    Checkout,
    CheckoutRepository,
    CheckoutStatusEnum,
    NotFoundError,
    Patron,
    PatronRepository,
    StorageError,
    UnavailableError,
    ValidationError,
)
from tool_library_mcp.database.checkout_repository import (
    checkout_period_days,
    normalize_due_date,
)

NEXT_WEEK = date.today() + timedelta(days=7)


@pytest.fixture
def ledger(db_session) -> CheckoutRepository:
    return CheckoutRepository(db_session)


@pytest.fixture
def borrower(db_session, make_patron_fields):
    return PatronRepository(db_session).create(make_patron_fields())


def checkout_rows(session, **filters) -> int:
    query = select(func.count(Checkout.id)).filter_by(**filters)
    return session.execute(query).scalar_one()


def overdue_count(session, patron_id: int) -> int:
    return session.execute(
        select(Patron.overdue_count).where(Patron.id == patron_id)
    ).scalar_one()


class TestDueDates:
    def test_calendar_day_means_end_of_day(self):
        assert normalize_due_date(date(2026, 11, 2)) == datetime(2026, 11, 2, 23, 59, 59)

    def test_datetime_kept_as_is(self):
        due = datetime(2026, 11, 2, 12, 0)
        assert normalize_due_date(due) is due

    def test_period_rounds_partial_days_up(self):
        now = datetime(2026, 10, 19, 10, 0)
        assert checkout_period_days(datetime(2026, 10, 26, 10, 0), now) == 7
        assert checkout_period_days(datetime(2026, 10, 26, 23, 59, 59), now) == 8


class TestCheckout:
    def test_checkout_creates_one_row_per_tool(
        self, ledger, db_session, catalog, admin_user, borrower
    ):
        tool_ids = [catalog["drill"].id, catalog["saw"].id]
        now = datetime(2026, 10, 19, 9, 30)

        checkouts = ledger.checkout(
            borrower.id, tool_ids, date(2026, 10, 26), admin_user.id, now=now
        )

        assert [c.tool_id for c in checkouts] == tool_ids
        for c in checkouts:
            assert c.patron_id == borrower.id
            assert c.volunteer_id == admin_user.id
            assert c.status == "CHECKED_OUT"
            assert c.checkout_date == now
            assert c.due_date == datetime(2026, 10, 26, 23, 59, 59)
            assert c.checkout_period == 8
            assert c.was_overdue is False
        assert checkout_rows(db_session, patron_id=borrower.id) == 2

    def test_batch_with_unavailable_tool_creates_nothing(
        self, ledger, db_session, catalog, admin_user, borrower, make_patron_fields
    ):
        saw = catalog["saw"]  # quantity 1
        other = PatronRepository(db_session).create(make_patron_fields(first_name="Bob"))
        ledger.checkout(other.id, [saw.id], NEXT_WEEK, admin_user.id)

        with pytest.raises(UnavailableError) as exc:
            ledger.checkout(borrower.id, [catalog["drill"].id, saw.id], NEXT_WEEK, admin_user.id)

        assert exc.value.tool_id == saw.id
        assert exc.value.tool_name == "Circular Saw"
        assert "Circular Saw" in exc.value.message
        assert checkout_rows(db_session, patron_id=borrower.id) == 0
        assert checkout_rows(db_session, tool_id=catalog["drill"].id) == 0

    def test_duplicate_ids_count_against_the_same_tool(
        self, ledger, db_session, catalog, admin_user, borrower
    ):
        drill = catalog["drill"]  # quantity 2

        ledger.checkout(borrower.id, [drill.id, drill.id], NEXT_WEEK, admin_user.id)
        assert checkout_rows(db_session, tool_id=drill.id) == 2

        with pytest.raises(UnavailableError):
            ledger.checkout(borrower.id, [drill.id], NEXT_WEEK, admin_user.id)

    def test_more_duplicates_than_units_rejected(
        self, ledger, db_session, catalog, admin_user, borrower
    ):
        drill = catalog["drill"]

        with pytest.raises(UnavailableError):
            ledger.checkout(borrower.id, [drill.id] * 3, NEXT_WEEK, admin_user.id)
        assert checkout_rows(db_session, tool_id=drill.id) == 0

    def test_returned_units_are_available_again(self, ledger, catalog, admin_user, borrower):
        saw = catalog["saw"]
        [first] = ledger.checkout(borrower.id, [saw.id], NEXT_WEEK, admin_user.id)
        ledger.checkin(first.id, admin_user.id)

        [second] = ledger.checkout(borrower.id, [saw.id], NEXT_WEEK, admin_user.id)
        assert second.id != first.id

    def test_empty_tool_list(self, ledger, admin_user, borrower):
        with pytest.raises(ValidationError) as exc:
            ledger.checkout(borrower.id, [], NEXT_WEEK, admin_user.id)
        assert exc.value.field == "tool_ids"

    def test_missing_due_date(self, ledger, catalog, admin_user, borrower):
        with pytest.raises(ValidationError) as exc:
            ledger.checkout(borrower.id, [catalog["saw"].id], None, admin_user.id)
        assert exc.value.field == "due_date"

    def test_due_date_in_the_past(self, ledger, catalog, admin_user, borrower):
        yesterday = date.today() - timedelta(days=1)
        with pytest.raises(ValidationError, match="past"):
            ledger.checkout(borrower.id, [catalog["saw"].id], yesterday, admin_user.id)

    def test_due_today_is_allowed(self, ledger, catalog, admin_user, borrower):
        now = datetime.combine(date.today(), datetime.min.time()).replace(hour=10)
        [checkout] = ledger.checkout(
            borrower.id, [catalog["saw"].id], now.date(), admin_user.id, now=now
        )
        assert checkout.checkout_period == 1

    def test_unknown_patron(self, ledger, catalog, admin_user):
        with pytest.raises(NotFoundError) as exc:
            ledger.checkout(999, [catalog["saw"].id], NEXT_WEEK, admin_user.id)
        assert exc.value.field == "patron_id"

    def test_unknown_tool_rolls_back_batch(self, ledger, db_session, catalog, admin_user, borrower):
        with pytest.raises(NotFoundError, match="998, 999"):
            ledger.checkout(
                borrower.id, [catalog["saw"].id, 999, 998], NEXT_WEEK, admin_user.id
            )
        assert checkout_rows(db_session) == 0


class TestConcurrentCheckout:
    def test_last_unit_goes_to_exactly_one_request(self, db_manager, catalog, admin_user, patron):
        saw = catalog["saw"]  # quantity 1
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt():
            barrier.wait()
            try:
                with db_manager.session_scope() as session:
                    CheckoutRepository(session).checkout(
                        patron.id, [saw.id], NEXT_WEEK, admin_user.id
                    )
            except Exception as e:
                outcomes.append(e)
            else:
                outcomes.append("checked out")

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(outcomes) == 2
        assert outcomes.count("checked out") == 1
        [failure] = [o for o in outcomes if o != "checked out"]
        assert isinstance(failure, UnavailableError)
        assert failure.tool_id == saw.id

        with db_manager.session_scope() as session:
            assert (
                checkout_rows(session, tool_id=saw.id, status=CheckoutStatusEnum.CHECKED_OUT)
                == 1
            )


class TestCheckin:
    @pytest.fixture
    def loan(self, ledger, catalog, admin_user, borrower):
        [checkout] = ledger.checkout(borrower.id, [catalog["saw"].id], NEXT_WEEK, admin_user.id)
        return checkout

    def test_on_time_return(self, ledger, db_session, volunteer_user, loan, borrower):
        result = ledger.checkin(loan.id, volunteer_user.id)

        assert result.checkout.status == "RETURNED"
        assert result.checkout.checkin_volunteer_id == volunteer_user.id
        assert result.checkout.checkin_date is not None
        assert result.checkout.was_overdue is False
        assert result.returned_late is False
        assert result.tool_name == "Circular Saw"
        assert overdue_count(db_session, borrower.id) == 0

    def test_late_return_increments_overdue_count_once(
        self, ledger, db_session, loan, admin_user, borrower
    ):
        late = normalize_due_date(NEXT_WEEK) + timedelta(days=3)

        result = ledger.checkin(loan.id, admin_user.id, now=late)

        assert result.checkout.status == "RETURNED"
        assert result.checkout.was_overdue is True
        assert result.returned_late is True
        assert result.patron_overdue_count == 1
        assert overdue_count(db_session, borrower.id) == 1

    def test_failed_overdue_update_is_storage_error(
        self, ledger, db_session, loan, admin_user, borrower
    ):
        late = normalize_due_date(NEXT_WEEK) + timedelta(days=3)
        execute = db_session.execute

        def fail_on_update(statement, *args, **kwargs):
            if isinstance(statement, Update):
                raise OperationalError("UPDATE patrons", {}, Exception("database is locked"))
            return execute(statement, *args, **kwargs)

        with patch.object(db_session, "execute", side_effect=fail_on_update):
            with pytest.raises(StorageError, match="overdue count"):
                ledger.checkin(loan.id, admin_user.id, now=late)

        assert checkout_rows(db_session, id=loan.id, status=CheckoutStatusEnum.CHECKED_OUT) == 1
        assert overdue_count(db_session, borrower.id) == 0

    def test_second_checkin_rejected_without_changes(
        self, ledger, db_session, volunteer_user, loan, admin_user, borrower
    ):
        late = normalize_due_date(NEXT_WEEK) + timedelta(days=1)
        ledger.checkin(loan.id, admin_user.id, now=late)

        with pytest.raises(AlreadyReturnedError):
            ledger.checkin(loan.id, volunteer_user.id, now=late + timedelta(days=1))

        stored = ledger.get(loan.id)
        assert stored.checkin_volunteer_id == admin_user.id
        assert stored.checkin_date == late
        assert overdue_count(db_session, borrower.id) == 1

    def test_unknown_checkout(self, ledger, admin_user):
        with pytest.raises(NotFoundError):
            ledger.checkin(999, admin_user.id)

    def test_each_late_return_counts(self, ledger, db_session, catalog, admin_user, borrower):
        loans = ledger.checkout(
            borrower.id, [catalog["drill"].id, catalog["saw"].id], NEXT_WEEK, admin_user.id
        )
        late = normalize_due_date(NEXT_WEEK) + timedelta(hours=1)

        for loan in loans:
            ledger.checkin(loan.id, admin_user.id, now=late)

        assert overdue_count(db_session, borrower.id) == 2


class TestReports:
    def test_active_and_overdue_lists(self, ledger, catalog, admin_user, borrower):
        now = datetime.now()
        soon = ledger.checkout(borrower.id, [catalog["saw"].id], NEXT_WEEK, admin_user.id)
        later = ledger.checkout(
            borrower.id, [catalog["drill"].id], NEXT_WEEK + timedelta(days=7), admin_user.id
        )

        active = ledger.list_active()
        assert [c.id for c in active] == [soon[0].id, later[0].id]
        assert active[0].tool_name == "Circular Saw"
        assert active[0].patron_name == "Alice Builder"

        assert ledger.list_overdue(now) == []
        overdue = ledger.list_overdue(normalize_due_date(NEXT_WEEK) + timedelta(days=1))
        assert [c.id for c in overdue] == [soon[0].id]

    def test_active_list_for_one_patron(
        self, ledger, db_session, catalog, admin_user, borrower, make_patron_fields
    ):
        other = PatronRepository(db_session).create(make_patron_fields(first_name="Bob"))
        ledger.checkout(borrower.id, [catalog["saw"].id], NEXT_WEEK, admin_user.id)
        ledger.checkout(other.id, [catalog["drill"].id], NEXT_WEEK, admin_user.id)

        assert [c.patron_id for c in ledger.list_active(other.id)] == [other.id]

    def test_history_newest_first(self, ledger, catalog, admin_user, borrower):
        [first] = ledger.checkout(
            borrower.id,
            [catalog["saw"].id],
            NEXT_WEEK,
            admin_user.id,
            now=datetime.now() - timedelta(days=2),
        )
        ledger.checkin(first.id, admin_user.id)
        [second] = ledger.checkout(borrower.id, [catalog["drill"].id], NEXT_WEEK, admin_user.id)

        history = ledger.patron_history(borrower.id)

        assert [c.id for c in history] == [second.id, first.id]
        assert history[1].status == CheckoutStatusEnum.RETURNED.value

    def test_history_of_unknown_patron(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.patron_history(999)
