"""
Category models for the Tool Library MCP Server.

Categories form a tree. The flat ``Category`` mirrors a database row; the
``CategoryNode`` is one node of the computed tree returned by the
``toollibrary://categories/tree`` resource, carrying subtree counts.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    """A single category row."""

    id: int = Field(..., description="Category identifier", ge=1)

    name: str = Field(
        ...,
        description="Category name, unique among its siblings",
        min_length=1,
        max_length=200,
        examples=["Power Tools", "Saws", "Garden & Outdoor"],
    )

    parent_id: int | None = Field(
        None,
        description="Parent category, or None for a top-level category",
    )

    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)


class CategoryOption(BaseModel):
    """Category with its full path label, used by category pickers."""

    id: int
    name: str
    parent_id: int | None = None
    path: str = Field(..., examples=["Power Tools / Saws"])
    depth: int = Field(0, ge=0)


class CategoryNode(BaseModel):
    """
    One node of the category tree with counts over its whole subtree.

    ``tool_count`` counts tool records in this category and every
    descendant; ``available_count`` sums the units not currently on loan.
    """

    id: int
    name: str
    parent_id: int | None = None
    depth: int = Field(0, ge=0)
    tool_count: int = Field(0, ge=0, description="Tool records in this subtree")
    available_count: int = Field(0, ge=0, description="Units available in this subtree")
    children: list[CategoryNode] = Field(default_factory=list)

    def find(self, category_id: int) -> CategoryNode | None:
        """Locate a node by id within this subtree."""
        stack = [self]
        while stack:
            node = stack.pop()
            if node.id == category_id:
                return node
            stack.extend(node.children)
        return None
