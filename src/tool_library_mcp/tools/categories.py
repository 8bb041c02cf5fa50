"""
Category management tools (admin only).

1. create_category: add a category at the top level or under a parent
2. update_category: rename and/or move a category
3. delete_category: remove an empty category

Names are unique among siblings and a category can never be moved under
itself or one of its descendants.

MCP TOOLS AND THE CATEGORY TREE:
The tree itself is read through the category resources; these tools are the
only way to change it. Each handler follows the same three steps:
1. Validate the argument dict against the tool's pydantic input model
2. Check the session belongs to an ADMIN, then run the repository call in
   its own short transaction
3. Return a success envelope, or an error envelope naming the exception
   class and the offending field (DuplicateError on name, CycleError on
   parent_id)
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..auth import require_role
from ..database.category_repository import CategoryRepository
from ..database.errors import NotFoundError, RepositoryException
from ..database.session import session_scope
from ..models.user import UserRole
from ..observability import trace_tool
from . import responses

logger = logging.getLogger(__name__)


# =============================================================================
# INPUT SCHEMAS
# =============================================================================


class CreateCategoryInput(BaseModel):
    """Input schema for the create_category tool."""

    session_token: str = Field(..., description="Token returned by the login tool")
    name: str = Field(..., description="Category name", examples=["Power Tools", "Saws"])
    parent_id: int | None = Field(
        None, description="Parent category id; omit for a top-level category"
    )


class UpdateCategoryInput(CreateCategoryInput):
    """Input schema for the update_category tool."""

    category_id: int = Field(..., description="Category to change")


class DeleteCategoryInput(BaseModel):
    """Input schema for the delete_category tool."""

    session_token: str = Field(..., description="Token returned by the login tool")
    category_id: int = Field(..., description="Category to delete; it must be empty")



# =============================================================================
# CREATE / UPDATE / DELETE HANDLERS
# =============================================================================


@trace_tool("create_category")
async def create_category_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the create_category tool."""
    # STEP 1: Validate input
    try:
        params = CreateCategoryInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    # STEP 2: Admin gate, then create in one transaction
    # The repository checks the parent exists and the name is free under it
    try:
        require_role(params.session_token, UserRole.ADMIN)
        with session_scope() as session:
            category = CategoryRepository(session).create(params.name, params.parent_id)
    except RepositoryException as e:
        logger.info("create_category rejected: %s", e.message)
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("create_category")

    # STEP 3: Success envelope with the stored category
    return responses.success(
        f"Created category '{category.name}' (id {category.id}).",
        {"category": responses.dump(category)},
    )


@trace_tool("update_category")
async def update_category_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the update_category tool."""
    try:
        params = UpdateCategoryInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    # Rename and move are one update; the cycle check walks up from the new
    # parent, so moving a category under its own subtree fails with CycleError
    try:
        require_role(params.session_token, UserRole.ADMIN)
        with session_scope() as session:
            category = CategoryRepository(session).update(
                params.category_id, params.name, params.parent_id
            )
    except RepositoryException as e:
        logger.info("update_category rejected: %s", e.message)
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("update_category")

    return responses.success(
        f"Updated category '{category.name}' (id {category.id}).",
        {"category": responses.dump(category)},
    )


@trace_tool("delete_category")
async def delete_category_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the delete_category tool."""
    try:
        params = DeleteCategoryInput.model_validate(arguments)
    except PydanticValidationError as e:
        return responses.invalid_input(e)

    # A category holding tools or subcategories is refused with ValidationError
    try:
        require_role(params.session_token, UserRole.ADMIN)
        with session_scope() as session:
            deleted = CategoryRepository(session).delete(params.category_id)
            if not deleted:
                raise NotFoundError(f"Category {params.category_id} not found")
    except RepositoryException as e:
        return responses.from_exception(e)
    except Exception:
        return responses.unexpected("delete_category")

    return responses.success(
        f"Deleted category {params.category_id}.", {"category_id": params.category_id}
    )


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

# name, description, inputSchema (advertised to clients) and handler
category_tools: list[dict[str, Any]] = [
    {
        "name": "create_category",
        "description": (
            "Create a tool category, optionally under a parent. Names must be unique "
            "among siblings. Admin only."
        ),
        "inputSchema": CreateCategoryInput.model_json_schema(),
        "handler": create_category_handler,
    },
    {
        "name": "update_category",
        "description": (
            "Rename a category or move it under a different parent. Moving a category "
            "under itself or one of its descendants is rejected. Admin only."
        ),
        "inputSchema": UpdateCategoryInput.model_json_schema(),
        "handler": update_category_handler,
    },
    {
        "name": "delete_category",
        "description": (
            "Delete a category that holds no tools and no subcategories. Admin only."
        ),
        "inputSchema": DeleteCategoryInput.model_json_schema(),
        "handler": delete_category_handler,
    },
]
