"""
Database package for the Tool Library MCP Server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- One repository per aggregate: categories, tools, patrons, the checkout
  ledger and staff users

MCP resources only read through the repositories; MCP tools are the only
callers that write.
"""

from .errors import (
    AlreadyReturnedError,
    CycleError,
    DuplicateError,
    NotFoundError,
    RepositoryException,
    StorageError,
    UnavailableError,
    ValidationError,
)
from .schema import (
    Base,
    Category,
    Checkout,
    CheckoutStatusEnum,
    ConditionStatusEnum,
    DamageReport,
    EntityTypeEnum,
    File,
    LoginHistory,
    Patron,
    Tool,
    User,
    UserRoleEnum,
)
from .session import (
    DatabaseManager,
    get_db_manager,
    reset_db_manager,
    safe_commit,
    safe_query,
    session_scope,
)
from .repository import BaseRepository
from .category_repository import CategoryRepository
from .checkout_repository import CheckoutRepository
from .patron_repository import PatronRepository
from .tool_repository import ToolCreateSchema, ToolRepository, ToolUpdateSchema
from .user_repository import UserCreateSchema, UserRepository

__all__ = [
    "AlreadyReturnedError",
    "Base",
    "BaseRepository",
    "Category",
    "CategoryRepository",
    "Checkout",
    "CheckoutRepository",
    "CheckoutStatusEnum",
    "ConditionStatusEnum",
    "CycleError",
    "DamageReport",
    "DatabaseManager",
    "DuplicateError",
    "EntityTypeEnum",
    "File",
    "LoginHistory",
    "NotFoundError",
    "Patron",
    "PatronRepository",
    "RepositoryException",
    "StorageError",
    "Tool",
    "ToolCreateSchema",
    "ToolRepository",
    "ToolUpdateSchema",
    "UnavailableError",
    "User",
    "UserCreateSchema",
    "UserRepository",
    "UserRoleEnum",
    "ValidationError",
    "get_db_manager",
    "reset_db_manager",
    "safe_commit",
    "safe_query",
    "session_scope",
]
