"""
Category resources for the Tool Library MCP Server.

- toollibrary://categories/tree: the whole category forest, every node
  carrying tool_count and available_count over its subtree
- toollibrary://categories/options: flat list with path labels for pickers
- toollibrary://categories/{category_id}: one subtree
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..database.category_repository import CategoryRepository
from ..database.errors import NotFoundError
from ..database.session import session_scope
from ..observability import trace_resource

logger = logging.getLogger(__name__)


@trace_resource("categories.tree")
async def category_tree_handler() -> dict[str, Any]:
    """Returns the category tree with subtree counts."""
    try:
        with session_scope() as session:
            roots = CategoryRepository(session).get_tree()
        return {
            "categories": [node.model_dump() for node in roots],
            "total_tools": sum(node.tool_count for node in roots),
            "total_available": sum(node.available_count for node in roots),
        }
    except Exception as e:
        logger.exception("Error in categories/tree resource")
        raise ResourceError(f"Failed to retrieve category tree: {e!s}") from e


@trace_resource("categories.options")
async def category_options_handler() -> dict[str, Any]:
    """Returns every category with its full path label."""
    try:
        with session_scope() as session:
            options = CategoryRepository(session).list_flat()
        return {"categories": [option.model_dump() for option in options]}
    except Exception as e:
        logger.exception("Error in categories/options resource")
        raise ResourceError(f"Failed to retrieve categories: {e!s}") from e


@trace_resource("categories.subtree")
async def category_subtree_handler(category_id: int) -> dict[str, Any]:
    """Returns one category with its descendants and counts."""
    try:
        with session_scope() as session:
            node = CategoryRepository(session).get_subtree(int(category_id))
        return node.model_dump()
    except NotFoundError as e:
        raise ResourceError(f"Category not found: {category_id}") from e
    except Exception as e:
        logger.exception("Error in categories/{category_id} resource")
        raise ResourceError(f"Failed to retrieve category: {e!s}") from e


category_resources: list[dict[str, Any]] = [
    {
        "uri": "toollibrary://categories/tree",
        "name": "Category Tree",
        "description": (
            "All tool categories as a tree, sorted by name. Each node reports how many "
            "tools its whole subtree holds and how many units are available."
        ),
        "mime_type": "application/json",
        "handler": category_tree_handler,
    },
    {
        "uri": "toollibrary://categories/options",
        "name": "Category Options",
        "description": "Flat category list with full path labels such as 'Power Tools / Saws'.",
        "mime_type": "application/json",
        "handler": category_options_handler,
    },
    {
        "uri_template": "toollibrary://categories/{category_id}",
        "name": "Category Subtree",
        "description": "One category with its descendants and tool counts.",
        "mime_type": "application/json",
        "handler": category_subtree_handler,
    },
]
