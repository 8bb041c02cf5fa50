"""
Authentication tools: login, logout and whoami.

A successful login returns a session token. Every other tool takes that
token as its ``session_token`` argument. Tokens expire 24 hours after
login (configurable) and are lost when the server restarts.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..auth import login, logout, require_user
from ..database.errors import RepositoryException
from ..observability import trace_tool
from . import responses

logger = logging.getLogger(__name__)


class LoginInput(BaseModel):
    """Input schema for the login tool."""

    user_name: str = Field(..., description="Staff user name", examples=["admin"])
    password: str = Field(..., description="Password, at least 8 characters")


class SessionInput(BaseModel):
    """Input schema for tools that only need a session."""

    session_token: str = Field(..., description="Token returned by the login tool")


@trace_tool("login")
async def login_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Check staff credentials and open a session."""
    try:
        params = LoginInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        token, user = login(params.user_name, params.password)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("login")

    return responses.success(
        f"Logged in as {user.name} ({user.role}).",
        {"session_token": token, "user": responses.dump(user)},
    )


@trace_tool("logout")
async def logout_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """End a session. Unknown tokens are ignored."""
    try:
        params = SessionInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    logout(params.session_token)
    return responses.success("Logged out.", {"logged_out": True})


@trace_tool("whoami")
async def whoami_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Report the user behind a session token."""
    try:
        params = SessionInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    try:
        user = require_user(params.session_token)
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("whoami")

    return responses.success(f"{user.name} ({user.role})", {"user": responses.dump(user)})


auth_tools: list[dict[str, Any]] = [
    {
        "name": "login",
        "description": (
            "Log in as a staff member. Returns a session_token to pass to every other tool."
        ),
        "inputSchema": LoginInput.model_json_schema(),
        "handler": login_handler,
    },
    {
        "name": "logout",
        "description": "End the session identified by session_token.",
        "inputSchema": SessionInput.model_json_schema(),
        "handler": logout_handler,
    },
    {
        "name": "whoami",
        "description": "Show the staff member and role behind a session_token.",
        "inputSchema": SessionInput.model_json_schema(),
        "handler": whoami_handler,
    },
]
