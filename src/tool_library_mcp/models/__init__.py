"""
Tool Library MCP Server Models.

Pydantic models for every entity the server exposes:

- Category / CategoryNode: the category tree with subtree counts
- Tool: lendable inventory with derived availability
- Patron: community members who borrow tools
- Checkout: loan records
- User: staff accounts
- FileRecord: uploaded attachments
"""

from .category import Category, CategoryNode, CategoryOption
from .checkout import Checkout, CheckoutStatus, CheckoutWithDetails, CheckinResult
from .file import EntityType, FileRecord
from .patron import Patron, PatronDetail, PatronFields
from .tool import ConditionStatus, DamageReport, Tool, ToolDetail, ToolSummary
from .user import User, UserRole

__all__ = [
    "Category",
    "CategoryNode",
    "CategoryOption",
    "CheckinResult",
    "Checkout",
    "CheckoutStatus",
    "CheckoutWithDetails",
    "ConditionStatus",
    "DamageReport",
    "EntityType",
    "FileRecord",
    "Patron",
    "PatronDetail",
    "PatronFields",
    "Tool",
    "ToolDetail",
    "ToolSummary",
    "User",
    "UserRole",
]
