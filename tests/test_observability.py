"""Tests for the tracing decorators and observability settings."""

from unittest.mock import MagicMock, patch

import pytest

from tool_library_mcp.observability import ObservabilityConfig, trace_resource, trace_tool
from tool_library_mcp.observability.decorators import _add_attributes, _categorize_tool


class RecordingSpan:
    def __init__(self):
        self.attributes = {}

    def set_attribute(self, key, value):
        self.attributes[key] = value


@pytest.fixture
def span():
    recording = RecordingSpan()
    context = MagicMock()
    context.__enter__.return_value = recording
    with patch("tool_library_mcp.observability.decorators.logfire.span", return_value=context):
        yield recording


def test_credentials_and_file_contents_are_not_recorded():
    span = RecordingSpan()
    _add_attributes(
        span,
        "input",
        {
            "user_name": "admin",
            "password": "secret-pass",
            "session_token": "abc",
            "files": [{"content_base64": "AAAA"}],
            "tool_ids": [1, 2],
            "patron_id": 7,
        },
    )
    assert span.attributes == {"input.user_name": "admin", "input.patron_id": 7}


@pytest.mark.parametrize(
    ("tool_name", "category"),
    [
        ("checkout_tools", "circulation"),
        ("checkin_tool", "circulation"),
        ("create_category", "categories"),
        ("get_patron", "patrons"),
        ("login", "auth"),
        ("upload_files", "inventory"),
    ],
)
def test_tool_categories(tool_name, category):
    assert _categorize_tool(tool_name) == category


async def test_trace_tool_marks_error_envelopes(span):
    @trace_tool("checkin_tool")
    async def handler(arguments):
        return {"isError": True, "data": {"error": "AlreadyReturnedError"}}

    result = await handler({"checkout_id": 3, "session_token": "t"})

    assert result["isError"] is True
    assert span.attributes["tool.success"] is False
    assert span.attributes["input.checkout_id"] == 3
    assert "input.session_token" not in span.attributes


async def test_trace_tool_reraises(span):
    @trace_tool("search_tools")
    async def handler(arguments):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await handler({})
    assert span.attributes["tool.error"] == "boom"


async def test_trace_resource_counts_lists(span):
    @trace_resource("tools.list")
    async def handler():
        return {"tools": [1, 2, 3], "total": 3}

    assert await handler() == {"tools": [1, 2, 3], "total": 3}
    assert span.attributes["result.tools_count"] == 3


def test_nothing_is_sent_by_default(monkeypatch):
    monkeypatch.delenv("LOGFIRE_SEND", raising=False)
    assert ObservabilityConfig().send_to_logfire is False
