"""
Tool Library MCP Server Package.

An MCP (Model Context Protocol) server for a community tool-lending
library: hierarchical tool categories with availability counts, patrons,
checkout and check-in, photo uploads and staff logins.

Key Components:
- models: Pydantic models for data validation and serialization
- database: SQLAlchemy schema, sessions and repositories
- availability: category tree and subtree availability counts
- auth: session tokens and role checks
- files: upload storage and image optimisation
- resources: MCP resources (read-only endpoints)
- tools: MCP tools (operations with side effects)
"""

__version__ = "0.1.0"

from . import database

__all__ = [
    "__version__",
    "database",
]
