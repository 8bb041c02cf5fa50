"""Logfire spans around MCP tool calls and resource reads."""

import functools
import time
from collections.abc import Callable
from typing import Any

import logfire

from .config import REDACTED_FIELDS

# Substring of the tool name -> span category, first match wins
TOOL_CATEGORIES = (
    ("checkout", "circulation"),
    ("checkin", "circulation"),
    ("category", "categories"),
    ("patron", "patrons"),
    ("log", "auth"),
    ("whoami", "auth"),
)


def trace_tool(tool_name: str):
    """Wrap a tool handler in a span that records its inputs and outcome."""

    def wrap(handler: Callable) -> Callable:
        @functools.wraps(handler)
        async def traced(arguments: dict[str, Any], *args, **kwargs):
            with logfire.span(
                f"tool.call.{tool_name}",
                tool_name=tool_name,
                tool_category=_categorize_tool(tool_name),
            ) as span:
                started = time.perf_counter()
                _add_attributes(span, "input", arguments or {})

                try:
                    result = await handler(arguments, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("tool.success", False)
                    span.set_attribute("tool.error", str(e))
                    raise

                # Domain failures come back as error envelopes rather than exceptions
                span.set_attribute("tool.success", not result.get("isError", False))
                span.set_attribute("tool.duration_ms", (time.perf_counter() - started) * 1000)
                return result

        return traced

    return wrap


def trace_resource(resource_type: str):
    """Span for a resource read; list-valued results are counted."""

    def wrap(handler: Callable) -> Callable:
        @functools.wraps(handler)
        async def traced(*args, **kwargs):
            with logfire.span(f"resource.{resource_type}", resource_type=resource_type) as span:
                _add_attributes(span, "params", kwargs)
                payload = await handler(*args, **kwargs)

                if isinstance(payload, dict):
                    for name, items in payload.items():
                        if isinstance(items, list):
                            span.set_attribute(f"result.{name}_count", len(items))

                return payload

        return traced

    return wrap


def _categorize_tool(tool_name: str) -> str:
    for marker, category in TOOL_CATEGORIES:
        if marker in tool_name:
            return category
    return "inventory"


def _add_attributes(span, prefix: str, values: dict):
    """Copy scalar values onto the span, minus credentials and file payloads."""
    for name, value in values.items():
        if name in REDACTED_FIELDS:
            continue
        if isinstance(value, (str, int, float, bool)):
            span.set_attribute(f"{prefix}.{name}", value)
