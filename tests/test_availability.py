"""Tests for the category tree availability calculator."""

import pytest

from tool_library_mcp.availability import (
    CategoryIndex,
    ToolStock,
    build_category_tree,
    category_options,
    count_tools_in_subtree,
)
from tool_library_mcp.models import Category


def cat(id: int, name: str, parent_id: int | None = None) -> Category:
    return Category(id=id, name=name, parent_id=parent_id)


def stock(tool_id: int, category_id: int, quantity: int = 1, active: int = 0) -> ToolStock:
    return ToolStock(
        tool_id=tool_id, category_id=category_id, quantity=quantity, active_checkouts=active
    )


class TestToolStock:
    def test_available_is_quantity_minus_active(self):
        assert stock(1, 1, quantity=3, active=1).available == 2

    def test_available_never_negative(self):
        # More open loans than units can only come from legacy data
        assert stock(1, 1, quantity=1, active=2).available == 0


class TestBuildCategoryTree:
    def test_counts_roll_up_through_every_level(self):
        categories = [cat(1, "X"), cat(2, "Y", 1), cat(3, "Z", 2)]
        tools = [stock(10, 1), stock(11, 2), stock(12, 3)]

        [x] = build_category_tree(categories, tools)
        y = x.children[0]
        z = y.children[0]

        assert (x.tool_count, y.tool_count, z.tool_count) == (3, 2, 1)
        assert (x.depth, y.depth, z.depth) == (0, 1, 2)

    def test_available_count_sums_units_not_on_loan(self):
        categories = [cat(1, "Power Tools"), cat(2, "Drills", 1), cat(3, "Saws", 1)]
        tools = [
            stock(10, 2, quantity=5, active=2),
            stock(11, 3, quantity=1, active=1),
            stock(12, 3, quantity=2, active=0),
        ]

        [power] = build_category_tree(categories, tools)

        assert power.tool_count == 3
        assert power.available_count == 3 + 0 + 2
        assert power.find(3).available_count == 2

    def test_siblings_sorted_by_name_case_insensitive(self):
        categories = [
            cat(1, "saws"),
            cat(2, "Drills"),
            cat(3, "Hand Tools"),
            cat(4, "wrenches", 3),
            cat(5, "Hammers", 3),
        ]

        roots = build_category_tree(categories, [])

        assert [r.name for r in roots] == ["Drills", "Hand Tools", "saws"]
        assert [c.name for c in roots[1].children] == ["Hammers", "wrenches"]

    def test_empty_categories_have_zero_counts(self):
        [root] = build_category_tree([cat(1, "Safety Equipment")], [])
        assert root.tool_count == 0
        assert root.available_count == 0
        assert root.children == []

    def test_orphan_category_becomes_root(self):
        categories = [cat(1, "Garden"), cat(2, "Lost", parent_id=99)]

        roots = build_category_tree(categories, [stock(10, 2)])

        assert {r.name for r in roots} == {"Garden", "Lost"}
        lost = next(r for r in roots if r.name == "Lost")
        assert lost.tool_count == 1
        assert lost.depth == 0

    def test_deep_chain_does_not_recurse(self):
        depth = 1500
        categories = [cat(1, "level-1")]
        categories += [cat(i, f"level-{i}", i - 1) for i in range(2, depth + 1)]
        tools = [stock(i, i) for i in range(1, depth + 1)]

        [root] = build_category_tree(categories, tools)

        assert root.tool_count == depth
        deepest = root.find(depth)
        assert deepest is not None
        assert deepest.depth == depth - 1
        assert deepest.tool_count == 1

    def test_corrupt_parent_loop_terminates(self):
        categories = [cat(1, "A", parent_id=2), cat(2, "B", parent_id=1)]

        roots = build_category_tree(categories, [stock(10, 1), stock(11, 2)])

        assert len(roots) == 1
        assert roots[0].tool_count == 2


class TestCategoryIndex:
    @pytest.fixture
    def index(self) -> CategoryIndex:
        return CategoryIndex(
            [cat(1, "Power Tools"), cat(2, "Saws", 1), cat(3, "Jigsaws", 2), cat(4, "Garden")]
        )

    def test_descendant_ids_include_self(self, index):
        assert index.descendant_ids(1) == {1, 2, 3}
        assert index.descendant_ids(3) == {3}

    def test_descendant_ids_of_unknown_is_empty(self, index):
        assert index.descendant_ids(42) == set()

    def test_ancestor_ids_nearest_first(self, index):
        assert index.ancestor_ids(3) == [2, 1]
        assert index.ancestor_ids(1) == []

    def test_walk_is_preorder_by_name(self, index):
        assert index.walk() == [(4, 0), (1, 0), (2, 1), (3, 2)]


def test_count_tools_in_subtree():
    categories = [cat(1, "X"), cat(2, "Y", 1), cat(3, "Z", 2), cat(4, "Other")]
    tools = [stock(10, 1), stock(11, 2), stock(12, 3), stock(13, 4)]

    assert count_tools_in_subtree(categories, tools, 1) == 3
    assert count_tools_in_subtree(categories, tools, 2) == 2
    assert count_tools_in_subtree(categories, tools, 4) == 1
    assert count_tools_in_subtree(categories, tools, 99) == 0


def test_category_options_carry_full_path():
    categories = [cat(1, "Power Tools"), cat(2, "Saws", 1), cat(3, "Jigsaws", 2)]

    options = category_options(categories)

    assert [o.path for o in options] == [
        "Power Tools",
        "Power Tools / Saws",
        "Power Tools / Saws / Jigsaws",
    ]
    assert [o.depth for o in options] == [0, 1, 2]
