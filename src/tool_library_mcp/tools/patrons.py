"""
Patron tools for the Tool Library MCP Server.

Patron records hold personal contact details, so unlike the catalog
resources every patron view requires a staff session.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..auth import require_user
from ..config import get_config
from ..database.errors import RepositoryException
from ..database.patron_repository import PatronRepository
from ..database.session import session_scope
from ..models.patron import PatronFields
from ..observability import trace_tool
from . import responses

logger = logging.getLogger(__name__)


class RegisterPatronInput(PatronFields):
    """Input schema for the register_patron tool."""

    session_token: str = Field(..., description="Token returned by the login tool")

    def fields(self) -> PatronFields:
        return PatronFields.model_validate(self.model_dump(exclude={"session_token"}))


class UpdatePatronInput(RegisterPatronInput):
    """Input schema for the update_patron tool."""

    patron_id: int = Field(..., description="Patron to update")

    def fields(self) -> PatronFields:
        return PatronFields.model_validate(
            self.model_dump(exclude={"session_token", "patron_id"})
        )


class SearchPatronsInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    last_name: str | None = Field(None, description="Part of the last name", examples=["Build"])
    first_name: str | None = Field(None, description="Part of the first name", examples=["Al"])


class GetPatronInput(BaseModel):
    session_token: str = Field(..., description="Token returned by the login tool")
    patron_id: int = Field(..., description="Patron id")


@trace_tool("register_patron")
async def register_patron_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = RegisterPatronInput.model_validate(arguments)
        fields = params.fields()
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        user = require_user(params.session_token)
        with session_scope() as session:
            patron = PatronRepository(session).create(fields, created_by=user.id)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("register_patron")

    return responses.success(
        f"Registered patron {patron.full_name} (id {patron.id}).",
        {"patron": responses.dump(patron)},
    )


@trace_tool("update_patron")
async def update_patron_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = UpdatePatronInput.model_validate(arguments)
        fields = params.fields()
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            patron = PatronRepository(session).update(params.patron_id, fields)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("update_patron")

    return responses.success(
        f"Updated patron {patron.full_name} (id {patron.id}).",
        {"patron": responses.dump(patron)},
    )


@trace_tool("search_patrons")
async def search_patrons_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = SearchPatronsInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            patrons = PatronRepository(session).search(
                last_name=params.last_name,
                first_name=params.first_name,
                limit=get_config().search_result_limit,
            )
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("search_patrons")

    lines = [f"- [{p.id}] {p.last_name}, {p.first_name}" for p in patrons]
    text = "\n".join([f"Found {len(patrons)} patron(s).", *lines])
    return responses.success(text, {"patrons": [responses.dump(p) for p in patrons]})


@trace_tool("get_patron")
async def get_patron_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = GetPatronInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        require_user(params.session_token)
        with session_scope() as session:
            patron = PatronRepository(session).get_detail(params.patron_id)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("get_patron")

    active = len(patron.active_checkouts)
    return responses.success(
        f"{patron.full_name}: {active} tool(s) on loan, {patron.overdue_count} late return(s).",
        {"patron": responses.dump(patron)},
    )


patron_tools: list[dict[str, Any]] = [
    {
        "name": "register_patron",
        "description": (
            "Register a borrower. First and last name (2+ characters), email or phone, "
            "and a full mailing address with a US zip code are required."
        ),
        "inputSchema": RegisterPatronInput.model_json_schema(),
        "handler": register_patron_handler,
    },
    {
        "name": "update_patron",
        "description": "Replace a patron's name, contact details and mailing address.",
        "inputSchema": UpdatePatronInput.model_json_schema(),
        "handler": update_patron_handler,
    },
    {
        "name": "search_patrons",
        "description": (
            "Find patrons by parts of their last and/or first name, ordered by last name. "
            "Returns nothing when both are empty."
        ),
        "inputSchema": SearchPatronsInput.model_json_schema(),
        "handler": search_patrons_handler,
    },
    {
        "name": "get_patron",
        "description": "Show a patron with their full checkout history and files.",
        "inputSchema": GetPatronInput.model_json_schema(),
        "handler": get_patron_handler,
    },
]
