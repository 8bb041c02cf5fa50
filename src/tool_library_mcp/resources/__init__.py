"""Tool Library MCP Resources Package

Resources are the read-only views of the library: the category tree with
availability counts and the tool catalog. Patron and loan data contain
personal details and are only reachable through authenticated tools.
"""

from .catalog import catalog_resources
from .categories import category_resources

all_resources = category_resources + catalog_resources

__all__ = [
    "all_resources",
    "catalog_resources",
    "category_resources",
]
