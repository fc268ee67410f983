"""
Category tree service.

Assembles the canonical (master) tree with each node's mapping for a
target shop attached, and the target shop's own tree. Assembly
tolerates malformed data: nodes whose parent is missing and nodes only
reachable through a parent cycle are surfaced as roots flagged
`orphaned`, and ancestor walks stop after a fixed number of hops.
"""

from collections import defaultdict, deque
from typing import Callable, Optional, Protocol, TypeVar
import structlog

from models.category import (
    CanonicalCategory,
    CanonicalTreeNode,
    CategoryTrees,
    MappingCounts,
    MappingStatus,
    ShopCategoryNode,
    ShopSummary,
    ShopTreeNode,
    TreeSummary,
)
from repositories import CategoryRepository, ShopRepository
from utils.text_utils import join_path

logger = structlog.get_logger(__name__)

# Max ancestor hops when building a display path
PATH_GUARD = 50


class TreeNodeLike(Protocol):
    id: str
    name: str
    parent_id: Optional[str]
    position: int


N = TypeVar("N", bound=TreeNodeLike)
E = TypeVar("E")


# ===================
# PATHS
# ===================

def build_path(node: TreeNodeLike, nodes_by_id: dict[str, TreeNodeLike]) -> Optional[str]:
    """
    Display path "Root > Child > Node" walking up through parents.

    Falls back to the node's own name when the walk exceeds PATH_GUARD
    hops (parent cycle or absurdly deep chain).
    """
    segments = []
    current: Optional[TreeNodeLike] = node
    hops = 0

    while current is not None:
        if hops >= PATH_GUARD:
            logger.warning("category_path_guard_hit", node_id=node.id, guard=PATH_GUARD)
            return node.name
        segments.append(current.name)
        current = nodes_by_id.get(current.parent_id) if current.parent_id else None
        hops += 1

    return join_path(reversed(segments)) or node.name


def node_depth(node: TreeNodeLike, nodes_by_id: dict[str, TreeNodeLike]) -> int:
    """Number of nodes from the root down to `node` (root = 1), capped at PATH_GUARD."""
    depth = 0
    current: Optional[TreeNodeLike] = node

    while current is not None and depth < PATH_GUARD:
        depth += 1
        current = nodes_by_id.get(current.parent_id) if current.parent_id else None

    return depth


def _sort_key(node: TreeNodeLike) -> tuple:
    return (node.position, node.name.casefold(), node.id)


def assemble_forest(
    nodes: list[N],
    make_entry: Callable[[N, bool], E],
    children_of: Callable[[E], list],
    kind: str
) -> list[E]:
    """
    Link nodes into a forest without recursion.

    Roots are nodes without a parent. Nodes whose parent is not in the
    set, and nodes left unvisited because their parent chain loops, are
    added as extra roots with orphaned=True. Siblings are ordered by
    position, then case-folded name.

    Args:
        nodes: Flat node list
        make_entry: Builds a tree entry from (node, orphaned)
        children_of: Returns the mutable children list of an entry
        kind: Tree name for log context

    Returns:
        Root entries
    """
    by_id = {node.id: node for node in nodes}
    children: dict[str, list[N]] = defaultdict(list)
    roots: list[tuple[N, bool]] = []

    for node in nodes:
        if not node.parent_id:
            roots.append((node, False))
        elif node.parent_id not in by_id or node.parent_id == node.id:
            logger.warning(
                "category_node_orphaned",
                tree=kind,
                node_id=node.id,
                parent_id=node.parent_id
            )
            roots.append((node, True))
        else:
            children[node.parent_id].append(node)

    for siblings in children.values():
        siblings.sort(key=_sort_key)

    visited: set[str] = set()
    forest: list[E] = []

    def grow(root: N, orphaned: bool) -> None:
        entry = make_entry(root, orphaned)
        forest.append(entry)
        visited.add(root.id)
        queue = deque([(root, entry)])

        while queue:
            node, node_entry = queue.popleft()
            for child in children.get(node.id, []):
                if child.id in visited:
                    continue
                visited.add(child.id)
                child_entry = make_entry(child, False)
                children_of(node_entry).append(child_entry)
                queue.append((child, child_entry))

    for root, orphaned in sorted(roots, key=lambda r: _sort_key(r[0])):
        grow(root, orphaned)

    # Whatever is left hangs off a parent cycle
    for node in sorted(nodes, key=_sort_key):
        if node.id not in visited:
            logger.warning("category_cycle_detected", tree=kind, node_id=node.id)
            grow(node, True)

    return forest


# ===================
# SERVICE
# ===================

class CategoryTreeService:
    """Builds canonical and shop category trees."""

    def __init__(
        self,
        category_repository: Optional[CategoryRepository] = None,
        shop_repository: Optional[ShopRepository] = None
    ):
        self.categories = category_repository or CategoryRepository()
        self.shops = shop_repository or ShopRepository()

    def build_trees(
        self,
        target_shop_id: Optional[int] = None,
        master_shop_id: Optional[int] = None
    ) -> CategoryTrees:
        """
        Build both trees plus summary counters.

        Args:
            target_shop_id: Shop whose tree and mappings are attached (optional)
            master_shop_id: Explicit master shop; defaults to the first master

        Raises:
            MasterShopNotFoundError: No matching master shop
            ShopNotFoundError: Target shop doesn't exist
        """
        master_shop = self.shops.get_master(master_shop_id)
        target_shop = self.shops.get(target_shop_id) if target_shop_id is not None else None

        logger.info(
            "building_category_trees",
            master_shop_id=master_shop.id,
            target_shop_id=target_shop.id if target_shop else None
        )

        canonical = self.categories.list_canonical_with_mappings(
            master_shop.id,
            target_shop.id if target_shop else None
        )
        shop_nodes = self.categories.list_shop_nodes(target_shop.id) if target_shop else []

        canonical_tree = self._canonical_tree(canonical)
        shop_tree = self._shop_tree(shop_nodes)

        synced = [node.updated_at for node in shop_nodes if node.updated_at is not None]

        trees = CategoryTrees(
            master_shop=ShopSummary(id=master_shop.id, name=master_shop.name),
            target_shop=ShopSummary(id=target_shop.id, name=target_shop.name) if target_shop else None,
            canonical=canonical_tree,
            shop=shop_tree,
            summary=TreeSummary(
                canonical_count=len(canonical),
                shop_count=len(shop_nodes),
                mappings=self._count_mappings(canonical),
            ),
            shop_synced_at=max(synced) if synced else None,
        )

        logger.info(
            "category_trees_built",
            master_shop_id=master_shop.id,
            canonical_count=trees.summary.canonical_count,
            shop_count=trees.summary.shop_count
        )
        return trees

    def _canonical_tree(self, canonical: list[CanonicalCategory]) -> list[CanonicalTreeNode]:
        nodes = [entry.node for entry in canonical]
        by_id = {node.id: node for node in nodes}
        mapping_by_node = {entry.node.id: entry.mapping for entry in canonical}

        def make_entry(node, orphaned: bool) -> CanonicalTreeNode:
            return CanonicalTreeNode(
                id=node.id,
                guid=node.guid,
                name=node.name,
                slug=node.slug,
                path=build_path(node, by_id),
                orphaned=orphaned,
                mapping=mapping_by_node.get(node.id),
            )

        return assemble_forest(nodes, make_entry, lambda e: e.children, "canonical")

    def _shop_tree(self, shop_nodes: list[ShopCategoryNode]) -> list[ShopTreeNode]:
        by_id = {node.id: node for node in shop_nodes}

        def make_entry(node: ShopCategoryNode, orphaned: bool) -> ShopTreeNode:
            return ShopTreeNode(
                id=node.id,
                remote_guid=node.remote_guid,
                name=node.name,
                slug=node.slug,
                path=node.path or build_path(node, by_id),
                description=node.description,
                second_description=node.second_description,
                orphaned=orphaned,
            )

        return assemble_forest(shop_nodes, make_entry, lambda e: e.children, "shop")

    @staticmethod
    def _count_mappings(canonical: list[CanonicalCategory]) -> MappingCounts:
        mappings = [entry.mapping for entry in canonical if entry.mapping is not None]
        return MappingCounts(
            total=len(mappings),
            confirmed=sum(1 for m in mappings if m.status == MappingStatus.CONFIRMED),
            suggested=sum(1 for m in mappings if m.status == MappingStatus.SUGGESTED),
            rejected=sum(1 for m in mappings if m.status == MappingStatus.REJECTED),
        )


# Singleton instance
_service: Optional[CategoryTreeService] = None


def get_category_tree_service() -> CategoryTreeService:
    """Get or create CategoryTreeService instance."""
    global _service
    if _service is None:
        _service = CategoryTreeService()
    return _service
