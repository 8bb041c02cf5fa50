"""
Tool catalog resources for the Tool Library MCP Server.

- toollibrary://tools/list: inventory with category, availability and photo
- toollibrary://tools/{tool_id}: one tool with files and damage history
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..database.errors import NotFoundError
from ..database.session import session_scope
from ..database.tool_repository import ToolRepository
from ..observability import trace_resource

logger = logging.getLogger(__name__)


@trace_resource("tools.list")
async def list_tools_handler() -> dict[str, Any]:
    """Returns every tool ordered by name."""
    try:
        with session_scope() as session:
            tools = ToolRepository(session).list_tools()
        return {
            "tools": [tool.model_dump(mode="json") for tool in tools],
            "total": len(tools),
        }
    except Exception as e:
        logger.exception("Error in tools/list resource")
        raise ResourceError(f"Failed to retrieve tool list: {e!s}") from e


@trace_resource("tools.detail")
async def get_tool_handler(tool_id: int) -> dict[str, Any]:
    """Returns details for a specific tool."""
    try:
        with session_scope() as session:
            tool = ToolRepository(session).get_detail(int(tool_id))
        return tool.model_dump(mode="json")
    except NotFoundError as e:
        raise ResourceError(f"Tool not found: {tool_id}") from e
    except Exception as e:
        logger.exception("Error in tools/{tool_id} resource")
        raise ResourceError(f"Failed to retrieve tool details: {e!s}") from e


catalog_resources: list[dict[str, Any]] = [
    {
        "uri": "toollibrary://tools/list",
        "name": "Tool Inventory",
        "description": (
            "Every tool in the library with its category, quantity, units available "
            "and first photo."
        ),
        "mime_type": "application/json",
        "handler": list_tools_handler,
    },
    {
        "uri_template": "toollibrary://tools/{tool_id}",
        "name": "Tool Details",
        "description": "One tool with availability, attached files and damage reports (newest first).",
        "mime_type": "application/json",
        "handler": get_tool_handler,
    },
]
