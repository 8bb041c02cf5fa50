"""
Category repository for the Tool Library MCP Server.

Maintains the category tree invariants on every write:

- names are unique among siblings (top-level categories share one scope)
- the parent relation never forms a cycle
- a category holding tools or child categories cannot be deleted
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..availability import ToolStock, build_category_tree, category_options
from ..models.category import Category as CategoryModel
from ..models.category import CategoryNode, CategoryOption
from .repository import (
    BaseRepository,
    CycleError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from .schema import Category as CategoryDB
from .schema import Checkout as CheckoutDB
from .schema import CheckoutStatusEnum
from .schema import Tool as ToolDB
from .session import safe_query

logger = logging.getLogger(__name__)


def load_tool_stock(session: Session) -> list[ToolStock]:
    """Every tool with its quantity and number of open checkouts."""
    active = (
        select(CheckoutDB.tool_id, func.count(CheckoutDB.id).label("active"))
        .where(CheckoutDB.status == CheckoutStatusEnum.CHECKED_OUT)
        .group_by(CheckoutDB.tool_id)
        .subquery()
    )
    query = select(
        ToolDB.id, ToolDB.category_id, ToolDB.quantity, func.coalesce(active.c.active, 0)
    ).outerjoin(active, active.c.tool_id == ToolDB.id)

    rows = safe_query(session, lambda s: s.execute(query).all(), "Failed to load tool stock")
    return [
        ToolStock(tool_id=tool_id, category_id=category_id, quantity=quantity, active_checkouts=n)
        for tool_id, category_id, quantity, n in rows
    ]


class CategoryRepository(BaseRepository[CategoryDB, CategoryModel]):
    """Repository for the category tree."""

    @property
    def model_class(self):
        return CategoryDB

    @property
    def response_schema(self):
        return CategoryModel

    def _clean_name(self, name: str | None) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Category name is required", field="name")
        if len(cleaned) > 200:
            raise ValidationError("Category name must be 200 characters or fewer", field="name")
        return cleaned

    def _check_parent_exists(self, parent_id: int | None) -> None:
        if parent_id is not None and self._get_db_obj(parent_id) is None:
            raise NotFoundError(f"Parent category {parent_id} not found", field="parent_id")

    def _check_unique(self, name: str, parent_id: int | None, exclude_id: int | None = None):
        query = select(CategoryDB.id).where(CategoryDB.name == name)
        if parent_id is None:
            query = query.where(CategoryDB.parent_id.is_(None))
        else:
            query = query.where(CategoryDB.parent_id == parent_id)
        if exclude_id is not None:
            query = query.where(CategoryDB.id != exclude_id)

        existing = safe_query(
            self.session,
            lambda s: s.execute(query.limit(1)).scalar_one_or_none(),
            "Failed to check category name",
        )
        if existing is not None:
            message = (
                "A category with this name already exists under the selected parent"
                if parent_id is not None
                else "A top-level category with this name already exists"
            )
            raise DuplicateError(message, field="name")

    def _check_no_cycle(self, category_id: int, parent_id: int | None) -> None:
        """Walk up from the proposed parent; meeting category_id means a cycle."""
        if parent_id is None:
            return
        if parent_id == category_id:
            raise CycleError("A category cannot be its own parent", field="parent_id")

        seen: set[int] = set()
        current: int | None = parent_id
        while current is not None and current not in seen:
            if current == category_id:
                raise CycleError(
                    "Cannot create circular hierarchy - the selected parent is a "
                    "descendant of this category",
                    field="parent_id",
                )
            seen.add(current)
            current = safe_query(
                self.session,
                lambda s, cid=current: s.execute(
                    select(CategoryDB.parent_id).where(CategoryDB.id == cid)
                ).scalar_one_or_none(),
                "Failed to walk category ancestors",
            )

    def create(self, name: str, parent_id: int | None = None) -> CategoryModel:
        """
        Create a category.

        Raises:
            ValidationError: If the name is blank
            NotFoundError: If the parent does not exist
            DuplicateError: If a sibling already has this name
        """
        cleaned = self._clean_name(name)
        self._check_parent_exists(parent_id)
        self._check_unique(cleaned, parent_id)

        db_category = self._commit_new(
            CategoryDB(name=cleaned, parent_id=parent_id), "create category"
        )
        logger.info("Created category %s (%r, parent=%s)", db_category.id, cleaned, parent_id)
        return self._to_response_model(db_category)

    def update(self, category_id: int, name: str, parent_id: int | None = None) -> CategoryModel:
        """
        Rename and/or move a category.

        Raises:
            NotFoundError: If the category or the new parent does not exist
            ValidationError: If the name is blank
            DuplicateError: If another sibling already has this name
            CycleError: If the new parent is the category itself or a descendant
        """
        db_category = self._require_db_obj(category_id)
        cleaned = self._clean_name(name)
        self._check_parent_exists(parent_id)
        self._check_unique(cleaned, parent_id, exclude_id=category_id)
        self._check_no_cycle(category_id, parent_id)

        db_category.name = cleaned
        db_category.parent_id = parent_id
        self._commit_changes(db_category, "update category")
        logger.info("Updated category %s (%r, parent=%s)", category_id, cleaned, parent_id)
        return self._to_response_model(db_category)

    def delete(self, id: int) -> bool:
        """
        Delete an empty category.

        Raises:
            ValidationError: If the category still holds tools or child categories
        """
        db_category = self._get_db_obj(id)
        if db_category is None:
            return False

        tool_count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count(ToolDB.id)).where(ToolDB.category_id == id)
            ).scalar(),
            "Failed to count category tools",
        )
        if tool_count:
            raise ValidationError(
                f"Category '{db_category.name}' still holds {tool_count} tool(s)", field="id"
            )

        child_count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count(CategoryDB.id)).where(CategoryDB.parent_id == id)
            ).scalar(),
            "Failed to count child categories",
        )
        if child_count:
            raise ValidationError(
                f"Category '{db_category.name}' still has {child_count} subcategory(ies)",
                field="id",
            )

        return super().delete(id)

    def list_all(self) -> list[CategoryModel]:
        rows = safe_query(
            self.session,
            lambda s: s.execute(select(CategoryDB).order_by(CategoryDB.name)).scalars().all(),
            "Failed to list categories",
        )
        return [self._to_response_model(row) for row in rows]

    def get_tree(self) -> list[CategoryNode]:
        """The category forest with subtree tool and availability counts."""
        return build_category_tree(self.list_all(), load_tool_stock(self.session))

    def get_subtree(self, category_id: int) -> CategoryNode:
        """One category with its descendants and counts."""
        self._require_db_obj(category_id)
        for root in self.get_tree():
            node = root.find(category_id)
            if node is not None:
                return node
        raise NotFoundError(f"Category {category_id} not found")

    def list_flat(self) -> list[CategoryOption]:
        """Every category with its full path label, in tree order."""
        return category_options(self.list_all())
