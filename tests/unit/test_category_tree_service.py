"""
Unit tests for CategoryTreeService and tree helpers.

Run: pytest tests/unit/test_category_tree_service.py -v
"""

import pytest
from datetime import datetime

from exceptions import MasterShopNotFoundError, ShopNotFoundError
from models.category import MappingStatus
from services.category_tree_service import PATH_GUARD, CategoryTreeService, build_path, node_depth
from tests.factories import CategoryFactory
from tests.fakes import FakeCategoryRepository


def make_service(shop_repository, canonical=None, shop_nodes=None, mappings=None) -> CategoryTreeService:
    repository = FakeCategoryRepository(canonical, shop_nodes, mappings)
    return CategoryTreeService(category_repository=repository, shop_repository=shop_repository)


class TestBuildPath:
    """Tests for build_path() and node_depth()"""

    def test_path_from_root(self):
        root = CategoryFactory.canonical("c1", "Shoes")
        child = CategoryFactory.canonical("c2", "Boots", parent_id="c1")
        leaf = CategoryFactory.canonical("c3", "Winter", parent_id="c2")
        by_id = {n.id: n for n in (root, child, leaf)}

        assert build_path(leaf, by_id) == "Shoes > Boots > Winter"
        assert node_depth(leaf, by_id) == 3
        assert node_depth(root, by_id) == 1

    def test_missing_parent_stops_walk(self):
        node = CategoryFactory.canonical("c2", "Boots", parent_id="gone")

        assert build_path(node, {"c2": node}) == "Boots"

    def test_cycle_falls_back_to_name(self):
        a = CategoryFactory.canonical("a", "A", parent_id="b")
        b = CategoryFactory.canonical("b", "B", parent_id="a")
        by_id = {"a": a, "b": b}

        assert build_path(a, by_id) == "A"
        assert node_depth(a, by_id) == PATH_GUARD


class TestBuildTrees:
    """Tests for CategoryTreeService.build_trees()"""

    def test_nests_children_in_position_order(self, shop_repository):
        # Arrange
        service = make_service(shop_repository, canonical=[
            CategoryFactory.canonical("c1", "Shoes"),
            CategoryFactory.canonical("c3", "Sneakers", parent_id="c1", position=2),
            CategoryFactory.canonical("c2", "Boots", parent_id="c1", position=1),
        ])

        # Act
        trees = service.build_trees()

        # Assert
        assert len(trees.canonical) == 1
        root = trees.canonical[0]
        assert [child.name for child in root.children] == ["Boots", "Sneakers"]
        assert root.children[0].path == "Shoes > Boots"
        assert root.orphaned is False
        assert trees.target_shop is None
        assert trees.shop == []

    def test_missing_parent_becomes_orphaned_root(self, shop_repository):
        service = make_service(shop_repository, canonical=[
            CategoryFactory.canonical("c1", "Shoes"),
            CategoryFactory.canonical("c9", "Lost", parent_id="deleted"),
        ])

        trees = service.build_trees()

        by_name = {node.name: node for node in trees.canonical}
        assert by_name["Lost"].orphaned is True
        assert by_name["Shoes"].orphaned is False

    def test_self_parent_is_orphaned(self, shop_repository):
        service = make_service(shop_repository, canonical=[CategoryFactory.canonical("c1", "Loop", parent_id="c1")])

        trees = service.build_trees()

        assert trees.canonical[0].orphaned is True
        assert trees.canonical[0].children == []

    def test_cycle_is_surfaced_once(self, shop_repository):
        """Every node appears exactly once even when parents loop."""
        service = make_service(shop_repository, canonical=[
            CategoryFactory.canonical("a", "A", parent_id="b"),
            CategoryFactory.canonical("b", "B", parent_id="a"),
        ])

        trees = service.build_trees()

        assert len(trees.canonical) == 1
        root = trees.canonical[0]
        assert root.name == "A"
        assert root.orphaned is True
        assert [child.name for child in root.children] == ["B"]
        assert root.path == "A"

    def test_attaches_mappings_and_counts(self, shop_repository):
        service = make_service(
            shop_repository,
            canonical=[
                CategoryFactory.canonical("c1", "Shoes"),
                CategoryFactory.canonical("c2", "Boots", parent_id="c1"),
                CategoryFactory.canonical("c3", "Bags"),
            ],
            shop_nodes=[CategoryFactory.shop_node("s1", "Topánky")],
            mappings=[
                CategoryFactory.mapping("c1", "s1"),
                CategoryFactory.mapping("c3", None, status=MappingStatus.REJECTED),
            ],
        )

        trees = service.build_trees(target_shop_id=2)

        assert trees.target_shop.id == 2
        assert trees.summary.canonical_count == 3
        assert trees.summary.shop_count == 1
        assert trees.summary.mappings.total == 2
        assert trees.summary.mappings.confirmed == 1
        assert trees.summary.mappings.rejected == 1
        shoes = next(n for n in trees.canonical if n.id == "c1")
        assert shoes.mapping.shop_category.name == "Topánky"

    def test_shop_tree_prefers_stored_path(self, shop_repository):
        service = make_service(shop_repository, shop_nodes=[
            CategoryFactory.shop_node("s1", "Obuv"),
            CategoryFactory.shop_node("s2", "Čižmy", parent_id="s1", path="Obuv > Zimné čižmy"),
            CategoryFactory.shop_node("s3", "Tenisky", parent_id="s1"),
        ])

        trees = service.build_trees(target_shop_id=2)

        children = {child.id: child for child in trees.shop[0].children}
        assert children["s2"].path == "Obuv > Zimné čižmy"
        assert children["s3"].path == "Obuv > Tenisky"

    def test_shop_synced_at_is_latest_update(self, shop_repository):
        service = make_service(shop_repository, shop_nodes=[
            CategoryFactory.shop_node("s1", "A", updated_at=datetime(2026, 3, 1)),
            CategoryFactory.shop_node("s2", "B", updated_at=datetime(2026, 5, 1)),
            CategoryFactory.shop_node("s3", "C"),
        ])

        trees = service.build_trees(target_shop_id=2)

        assert trees.shop_synced_at == datetime(2026, 5, 1)

    def test_non_master_shop_rejected(self, shop_repository):
        service = make_service(shop_repository)

        with pytest.raises(MasterShopNotFoundError):
            service.build_trees(master_shop_id=2)

    def test_unknown_target_shop(self, shop_repository):
        service = make_service(shop_repository)

        with pytest.raises(ShopNotFoundError):
            service.build_trees(target_shop_id=42)
