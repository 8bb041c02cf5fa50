"""
Tests for the circulation tools.

These go through the handlers the way an MCP client would: login token in,
result envelope out, with the database checked afterwards.
"""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import func, select, update

from tool_library_mcp.database import Checkout, Patron, session_scope
from tool_library_mcp.tools.circulation import (
    checkin_tool_handler,
    checkout_tools_handler,
    list_active_checkouts_handler,
    list_overdue_checkouts_handler,
)

pytestmark = pytest.mark.mcp_protocol

NEXT_WEEK = (date.today() + timedelta(days=7)).isoformat()


def open_checkouts() -> int:
    with session_scope() as session:
        return session.execute(
            select(func.count(Checkout.id)).where(Checkout.status == "CHECKED_OUT")
        ).scalar_one()


def make_overdue(checkout_id: int) -> None:
    with session_scope() as session:
        session.execute(
            update(Checkout)
            .where(Checkout.id == checkout_id)
            .values(due_date=datetime.now() - timedelta(days=2))
        )


async def checkout(token: str, patron_id: int, tool_ids: list[int]) -> dict:
    return await checkout_tools_handler(
        {
            "session_token": token,
            "patron_id": patron_id,
            "tool_ids": tool_ids,
            "due_date": NEXT_WEEK,
        }
    )


class TestCheckoutTools:
    async def test_checkout_several_tools(self, volunteer_token, volunteer_user, patron, catalog):
        result = await checkout(volunteer_token, patron.id, [catalog["drill"].id, catalog["saw"].id])

        assert "isError" not in result
        assert result["data"]["count"] == 2
        assert len(result["data"]["checkout_ids"]) == 2
        assert all(c["volunteer_id"] == volunteer_user.id for c in result["data"]["checkouts"])
        assert result["content"][0]["text"].startswith("Successfully checked out 2 tool(s)")
        assert open_checkouts() == 2

    async def test_unavailable_tool_blocks_whole_batch(
        self, volunteer_token, patron, catalog
    ):
        await checkout(volunteer_token, patron.id, [catalog["saw"].id])

        result = await checkout(volunteer_token, patron.id, [catalog["drill"].id, catalog["saw"].id])

        assert result["isError"] is True
        assert result["data"]["error"] == "UnavailableError"
        assert result["data"]["field"] == "tool_ids"
        assert "Circular Saw" in result["content"][0]["text"]
        assert open_checkouts() == 1

    async def test_past_due_date(self, volunteer_token, patron, catalog):
        result = await checkout_tools_handler(
            {
                "session_token": volunteer_token,
                "patron_id": patron.id,
                "tool_ids": [catalog["saw"].id],
                "due_date": (date.today() - timedelta(days=1)).isoformat(),
            }
        )

        assert result["data"]["error"] == "ValidationError"
        assert result["data"]["field"] == "due_date"

    async def test_malformed_due_date(self, volunteer_token, patron, catalog):
        result = await checkout_tools_handler(
            {
                "session_token": volunteer_token,
                "patron_id": patron.id,
                "tool_ids": [catalog["saw"].id],
                "due_date": "next tuesday",
            }
        )

        assert result["data"]["error"] == "ValidationError"
        assert result["data"]["field"] == "due_date"

    async def test_empty_tool_list(self, volunteer_token, patron):
        result = await checkout(volunteer_token, patron.id, [])
        assert result["data"]["field"] == "tool_ids"

    async def test_unknown_patron(self, volunteer_token, catalog):
        result = await checkout(volunteer_token, 404, [catalog["saw"].id])
        assert result["data"]["error"] == "NotFoundError"

    async def test_requires_login(self, session_store, patron, catalog):
        result = await checkout("stale-token", patron.id, [catalog["saw"].id])

        assert result["data"]["error"] == "UnauthorizedError"
        assert open_checkouts() == 0


class TestCheckinTool:
    async def test_on_time_checkin(self, volunteer_token, admin_token, admin_user, patron, catalog):
        out = await checkout(volunteer_token, patron.id, [catalog["saw"].id])
        [checkout_id] = out["data"]["checkout_ids"]

        result = await checkin_tool_handler({"session_token": admin_token, "checkout_id": checkout_id})

        assert result["data"]["was_overdue"] is False
        assert result["data"]["checkout"]["status"] == "RETURNED"
        assert result["data"]["checkout"]["checkin_volunteer_id"] == admin_user.id
        assert result["content"][0]["text"] == "Successfully checked in Circular Saw."
        assert open_checkouts() == 0

    async def test_late_checkin_counts_against_patron(self, volunteer_token, patron, catalog):
        out = await checkout(volunteer_token, patron.id, [catalog["saw"].id])
        [checkout_id] = out["data"]["checkout_ids"]
        make_overdue(checkout_id)

        result = await checkin_tool_handler(
            {"session_token": volunteer_token, "checkout_id": checkout_id}
        )

        assert result["data"]["was_overdue"] is True
        assert result["data"]["patron_overdue_count"] == 1
        assert "overdue" in result["content"][0]["text"]
        with session_scope() as session:
            assert session.get(Patron, patron.id).overdue_count == 1

    async def test_double_checkin_rejected(self, volunteer_token, patron, catalog):
        out = await checkout(volunteer_token, patron.id, [catalog["saw"].id])
        [checkout_id] = out["data"]["checkout_ids"]
        make_overdue(checkout_id)
        await checkin_tool_handler({"session_token": volunteer_token, "checkout_id": checkout_id})

        again = await checkin_tool_handler(
            {"session_token": volunteer_token, "checkout_id": checkout_id}
        )

        assert again["isError"] is True
        assert again["data"]["error"] == "AlreadyReturnedError"
        with session_scope() as session:
            assert session.get(Patron, patron.id).overdue_count == 1

    async def test_unknown_checkout(self, volunteer_token):
        result = await checkin_tool_handler({"session_token": volunteer_token, "checkout_id": 404})
        assert result["data"]["error"] == "NotFoundError"


class TestCheckoutLists:
    async def test_active_and_overdue(self, volunteer_token, patron, catalog):
        out = await checkout(volunteer_token, patron.id, [catalog["drill"].id, catalog["saw"].id])
        drill_checkout, saw_checkout = out["data"]["checkout_ids"]
        make_overdue(saw_checkout)

        active = await list_active_checkouts_handler({"session_token": volunteer_token})
        overdue = await list_overdue_checkouts_handler({"session_token": volunteer_token})

        assert [c["id"] for c in active["data"]["checkouts"]] == [saw_checkout, drill_checkout]
        assert active["content"][0]["text"].startswith("2 tool(s) on loan.")
        assert [c["id"] for c in overdue["data"]["checkouts"]] == [saw_checkout]
        assert overdue["data"]["checkouts"][0]["patron_name"] == "Alice Builder"

    async def test_active_for_one_patron(self, volunteer_token, patron, catalog):
        await checkout(volunteer_token, patron.id, [catalog["saw"].id])

        mine = await list_active_checkouts_handler(
            {"session_token": volunteer_token, "patron_id": patron.id}
        )
        nobody = await list_active_checkouts_handler(
            {"session_token": volunteer_token, "patron_id": 404}
        )

        assert len(mine["data"]["checkouts"]) == 1
        assert nobody["data"]["checkouts"] == []

    async def test_lists_require_login(self, session_store):
        result = await list_overdue_checkouts_handler({"session_token": "nope"})
        assert result["data"]["error"] == "UnauthorizedError"
