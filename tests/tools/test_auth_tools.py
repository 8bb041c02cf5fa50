"""Tests for the login, logout and whoami tools."""

import pytest

from tool_library_mcp.tools.auth import auth_tools, login_handler, logout_handler, whoami_handler

pytestmark = pytest.mark.mcp_protocol


class TestLoginTool:
    async def test_login_returns_session_token(self, session_store, admin_user, admin_password):
        result = await login_handler({"user_name": "admin", "password": admin_password})

        assert "isError" not in result
        token = result["data"]["session_token"]
        assert len(token) == 64
        assert result["data"]["user"]["user_name"] == "admin"
        assert "password" not in str(result["data"]["user"]).lower()
        assert session_store.validate_session(token).id == admin_user.id

    async def test_wrong_password(self, session_store, admin_user):
        result = await login_handler({"user_name": "admin", "password": "wrong-password"})

        assert result["isError"] is True
        assert result["data"]["error"] == "UnauthorizedError"
        assert result["content"][0]["text"] == "Invalid username or password"

    async def test_missing_fields(self, session_store):
        result = await login_handler({"user_name": "admin"})

        assert result["isError"] is True
        assert result["data"]["error"] == "ValidationError"
        assert result["data"]["field"] == "password"

    async def test_blank_credentials(self, session_store):
        result = await login_handler({"user_name": " ", "password": ""})

        assert result["isError"] is True
        assert result["data"]["error"] == "ValidationError"


class TestSessionTools:
    async def test_whoami(self, volunteer_token, volunteer_user):
        result = await whoami_handler({"session_token": volunteer_token})

        assert result["data"]["user"]["id"] == volunteer_user.id
        assert "VOLUNTEER" in result["content"][0]["text"]

    async def test_whoami_without_valid_token(self, session_store):
        result = await whoami_handler({"session_token": "expired"})

        assert result["isError"] is True
        assert result["data"]["error"] == "UnauthorizedError"
        assert result["data"]["field"] == "session_token"

    async def test_logout_invalidates_token(self, admin_token):
        result = await logout_handler({"session_token": admin_token})
        assert result["data"] == {"logged_out": True}

        after = await whoami_handler({"session_token": admin_token})
        assert after["isError"] is True

    async def test_logout_unknown_token_is_harmless(self, session_store):
        result = await logout_handler({"session_token": "nope"})
        assert "isError" not in result


def test_tool_definitions():
    assert [tool["name"] for tool in auth_tools] == ["login", "logout", "whoami"]
    for tool in auth_tools:
        assert tool["inputSchema"]["type"] == "object"
        assert callable(tool["handler"])
