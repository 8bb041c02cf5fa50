"""
Circulation tools for the Tool Library MCP Server.

1. checkout_tools: lend one or more tools to a patron in one transaction
2. checkin_tool: return one checked-out tool, flagging late returns
3. list_active_checkouts / list_overdue_checkouts: what is out right now

A tool can be lent while quantity minus its open checkouts is above zero.
If any tool in a checkout request is unavailable, nothing is checked out.

MCP TOOLS AND THE LEDGER:
Checkout and check-in are the state-changing half of circulation; loans are
only ever read back through the list tools below, which need a session token
like every other staff operation. Every handler:
1. Validates the argument dict against its input model
2. Resolves the session to a staff user, recorded as the lending or
   receiving volunteer
3. Runs the ledger call inside one session_scope(), so the whole batch or
   check-in commits or rolls back together
4. Returns a success envelope, or an error envelope whose ``error`` is the
   domain exception (UnavailableError, AlreadyReturnedError, NotFoundError)
"""

import logging
from datetime import date
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..auth import require_user
from ..database.checkout_repository import CheckoutRepository
from ..database.errors import RepositoryException
from ..database.session import session_scope
from ..observability import trace_tool
from . import responses

logger = logging.getLogger(__name__)


# =============================================================================
# CHECKOUT TOOL
# =============================================================================


class CheckoutToolsInput(BaseModel):
    """Input schema for the checkout_tools tool."""

    session_token: str = Field(..., description="Token returned by the login tool")
    patron_id: int = Field(..., description="Borrowing patron")
    tool_ids: list[int] = Field(
        ...,
        description="Tools to lend; list an id twice to lend two units of that tool",
        examples=[[3, 7]],
    )
    due_date: date = Field(
        ...,
        description="Return date; the tools are due by the end of that day",
        examples=["2026-11-02"],
    )


@trace_tool("checkout_tools")
async def checkout_tools_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the checkout_tools tool."""
    # STEP 1: Validate input; due_date arrives as an ISO date string
    try:
        params = CheckoutToolsInput.model_validate(arguments)
    except PydanticValidationError as e:
        logger.warning("Invalid checkout parameters: %s", e)
        return responses.invalid_input(e)

    # STEP 2: Resolve the volunteer and lend every tool in one transaction
    # Availability is checked before and again after the rows are flushed;
    # any shortfall raises UnavailableError and nothing is written
    try:
        volunteer = require_user(params.session_token)
        with session_scope() as session:
            checkouts = CheckoutRepository(session).checkout(
                patron_id=params.patron_id,
                tool_ids=params.tool_ids,
                due_date=params.due_date,
                volunteer_id=volunteer.id,
            )
    except RepositoryException as e:
        logger.info("Checkout failed: %s", e.message)
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("checkout_tools")

    # STEP 3: Report the new loans; checkout_ids feed straight into checkin_tool
    return responses.success(
        f"Successfully checked out {len(checkouts)} tool(s), due {params.due_date:%B %d, %Y}.",
        {
            "checkouts": [responses.dump(c) for c in checkouts],
            "checkout_ids": [c.id for c in checkouts],
            "count": len(checkouts),
        },
    )


# =============================================================================
# CHECK-IN TOOL
# =============================================================================


class CheckinToolInput(BaseModel):
    """Input schema for the checkin_tool tool."""

    session_token: str = Field(..., description="Token returned by the login tool")
    checkout_id: int = Field(..., description="Checkout to close")


@trace_tool("checkin_tool")
async def checkin_tool_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the checkin_tool tool."""
    try:
        params = CheckinToolInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    # Closing the loan and bumping the patron's overdue count share one
    # transaction; a second check-in of the same loan is AlreadyReturnedError
    try:
        volunteer = require_user(params.session_token)
        with session_scope() as session:
            result = CheckoutRepository(session).checkin(params.checkout_id, volunteer.id)
    except RepositoryException as e:
        logger.info("Check-in failed: %s", e.message)
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("checkin_tool")

    message = f"Successfully checked in {result.tool_name}"
    if result.returned_late:
        message += (
            f". It was overdue; the patron now has {result.patron_overdue_count} late return(s)"
        )
    return responses.success(
        message + ".",
        {
            "checkout": responses.dump(result.checkout),
            "was_overdue": result.returned_late,
            "patron_overdue_count": result.patron_overdue_count,
        },
    )


# =============================================================================
# LOAN LISTS
# =============================================================================


class ListActiveInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    patron_id: int | None = Field(None, description="Only this patron's loans")


class SessionOnlyInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")


@trace_tool("list_active_checkouts")
async def list_active_checkouts_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = ListActiveInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            checkouts = CheckoutRepository(session).list_active(params.patron_id)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("list_active_checkouts")

    lines = [
        f"- [{c.id}] {c.tool_name} to {c.patron_name}, due {c.due_date:%Y-%m-%d}"
        for c in checkouts
    ]
    text = "\n".join([f"{len(checkouts)} tool(s) on loan.", *lines])
    return responses.success(text, {"checkouts": [responses.dump(c) for c in checkouts]})


@trace_tool("list_overdue_checkouts")
async def list_overdue_checkouts_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = SessionOnlyInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            checkouts = CheckoutRepository(session).list_overdue()
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("list_overdue_checkouts")

    lines = [
        f"- [{c.id}] {c.tool_name} with {c.patron_name}, was due {c.due_date:%Y-%m-%d}"
        for c in checkouts
    ]
    text = "\n".join([f"{len(checkouts)} overdue loan(s).", *lines])
    return responses.success(text, {"checkouts": [responses.dump(c) for c in checkouts]})


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

circulation_tools: list[dict[str, Any]] = [
    {
        "name": "checkout_tools",
        "description": (
            "Check out one or more tools to a patron with a due date. Either every tool "
            "is checked out or, if any is unavailable, none is."
        ),
        "inputSchema": CheckoutToolsInput.model_json_schema(),
        "handler": checkout_tools_handler,
    },
    {
        "name": "checkin_tool",
        "description": (
            "Check in a checked-out tool. Late returns are flagged and counted against "
            "the patron."
        ),
        "inputSchema": CheckinToolInput.model_json_schema(),
        "handler": checkin_tool_handler,
    },
    {
        "name": "list_active_checkouts",
        "description": "List tools currently on loan, soonest due first, optionally for one patron.",
        "inputSchema": ListActiveInput.model_json_schema(),
        "handler": list_active_checkouts_handler,
    },
    {
        "name": "list_overdue_checkouts",
        "description": "List loans that are past their due date and not yet returned.",
        "inputSchema": SessionOnlyInput.model_json_schema(),
        "handler": list_overdue_checkouts_handler,
    },
]
