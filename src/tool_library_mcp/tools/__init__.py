"""
MCP tools for the Tool Library server.

Tools are the operations with side effects (checkout, check-in, inventory
and patron edits) plus staff-only lookups. Every tool except ``login``
takes a ``session_token``.
"""

from .auth import auth_tools
from .categories import category_tools
from .circulation import circulation_tools
from .inventory import inventory_tools
from .patrons import patron_tools

all_tools = auth_tools + category_tools + inventory_tools + patron_tools + circulation_tools

__all__ = [
    "all_tools",
    "auth_tools",
    "category_tools",
    "circulation_tools",
    "inventory_tools",
    "patron_tools",
]
