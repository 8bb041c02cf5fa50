"""
Availability calculator for the category tree.

Categories are loaded flat and arranged into an arena (id -> node) plus a
parent -> children index. All walks use an explicit stack, so arbitrarily
deep trees are handled without recursion.

For every node the calculator reports:
- tool_count: tool records whose category is the node or any descendant
- available_count: units of those tools that are not on an active loan
"""

import logging
from collections import defaultdict
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from .models.category import Category, CategoryNode, CategoryOption

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " / "


class ToolStock(BaseModel):
    """The per-tool numbers the calculator needs."""

    tool_id: int
    category_id: int
    quantity: int = Field(1, ge=1)
    active_checkouts: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def available(self) -> int:
        return max(self.quantity - self.active_checkouts, 0)


class CategoryIndex:
    """Arena of categories with a parent -> children index."""

    def __init__(self, categories: Iterable[Category]):
        self.nodes: dict[int, Category] = {c.id: c for c in categories}
        self.children: dict[int | None, list[int]] = defaultdict(list)

        for category in sorted(self.nodes.values(), key=lambda c: (c.name.lower(), c.id)):
            parent_id = category.parent_id
            if parent_id is not None and parent_id not in self.nodes:
                logger.warning(
                    "Category %s references missing parent %s; treating it as top level",
                    category.id,
                    parent_id,
                )
                parent_id = None
            self.children[parent_id].append(category.id)

    @property
    def roots(self) -> list[int]:
        return list(self.children.get(None, []))

    def descendant_ids(self, category_id: int) -> set[int]:
        """Ids of the category and every transitive descendant."""
        if category_id not in self.nodes:
            return set()

        seen: set[int] = set()
        stack = [category_id]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.children.get(current, []))
        return seen

    def ancestor_ids(self, category_id: int) -> list[int]:
        """Parent chain from the immediate parent up to the root."""
        chain: list[int] = []
        seen = {category_id}
        current = self.nodes[category_id].parent_id if category_id in self.nodes else None
        while current is not None and current in self.nodes and current not in seen:
            chain.append(current)
            seen.add(current)
            current = self.nodes[current].parent_id
        return chain

    def walk(self) -> list[tuple[int, int]]:
        """(id, depth) pairs in depth-first pre-order, covering every node.

        Nodes not reachable from a root (only possible with corrupt parent
        data forming a loop) are started as roots of their own.
        """
        order: list[tuple[int, int]] = []
        visited: set[int] = set()

        roots = self.roots
        starts = roots + sorted(self.nodes)
        for start in starts:
            if start in visited:
                continue
            if start not in roots:
                logger.warning("Category %s is unreachable from any root", start)
            stack = [(start, 0)]
            while stack:
                current, depth = stack.pop()
                if current in visited:
                    continue
                visited.add(current)
                order.append((current, depth))
                # Reverse so that children pop in name order
                for child in reversed(self.children.get(current, [])):
                    if child not in visited:
                        stack.append((child, depth + 1))
        return order


def build_category_tree(
    categories: Iterable[Category], tools: Iterable[ToolStock]
) -> list[CategoryNode]:
    """
    Build the category forest with subtree tool and availability counts.

    Args:
        categories: Flat category rows
        tools: One entry per tool record

    Returns:
        Top-level nodes sorted by name, each with nested children
    """
    index = CategoryIndex(categories)

    own_tools: dict[int, int] = defaultdict(int)
    own_available: dict[int, int] = defaultdict(int)
    for tool in tools:
        own_tools[tool.category_id] += 1
        own_available[tool.category_id] += tool.available

    order = index.walk()

    built: dict[int, CategoryNode] = {}
    tree_parent: dict[int, int | None] = {}
    depth_of = dict(order)

    # Children always follow their parent in pre-order, so walking the list
    # backwards finishes every child before its parent.
    for category_id, depth in reversed(order):
        category = index.nodes[category_id]
        children = [
            built[child]
            for child in index.children.get(category_id, [])
            if child in built and tree_parent.get(child) == category_id
        ]
        node = CategoryNode(
            id=category.id,
            name=category.name,
            parent_id=category.parent_id,
            depth=depth,
            tool_count=own_tools[category_id] + sum(c.tool_count for c in children),
            available_count=own_available[category_id]
            + sum(c.available_count for c in children),
            children=children,
        )
        built[category_id] = node

        parent_id = category.parent_id
        if parent_id in depth_of and depth_of[parent_id] == depth - 1 and depth > 0:
            tree_parent[category_id] = parent_id
        else:
            tree_parent[category_id] = None

    return sorted(
        (node for cid, node in built.items() if tree_parent[cid] is None),
        key=lambda n: (n.name.lower(), n.id),
    )


def count_tools_in_subtree(
    categories: Iterable[Category], tools: Iterable[ToolStock], category_id: int
) -> int:
    """Number of tool records in a category and all of its descendants."""
    ids = CategoryIndex(categories).descendant_ids(category_id)
    return sum(1 for tool in tools if tool.category_id in ids)


def category_options(categories: Iterable[Category]) -> list[CategoryOption]:
    """Every category with its full path label, in tree order."""
    index = CategoryIndex(categories)
    options: list[CategoryOption] = []

    for category_id, depth in index.walk():
        category = index.nodes[category_id]
        names = [index.nodes[a].name for a in reversed(index.ancestor_ids(category_id))]
        names.append(category.name)
        options.append(
            CategoryOption(
                id=category.id,
                name=category.name,
                parent_id=category.parent_id,
                path=PATH_SEPARATOR.join(names),
                depth=depth,
            )
        )
    return options
