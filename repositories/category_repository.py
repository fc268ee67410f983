"""
Category repository.

Covers canonical nodes, target shop nodes and the mappings between
them. Canonical nodes can be loaded as aggregates with the mapping for
one shop attached.
"""

from typing import Optional
import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import (
    DatabaseError,
    CategoryNodeNotFoundError,
    ShopCategoryNodeNotFoundError,
)
from models.category import (
    CategoryNode,
    ShopCategoryNode,
    CategoryMapping,
    CanonicalCategory,
)

logger = structlog.get_logger(__name__)

SHOP_CATEGORY_EMBED = "shop_category:shop_category_nodes(id, name, slug, path, remote_guid)"


class CategoryRepository:
    """Persistence for category trees and category mappings."""

    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_supabase_client()
        self.nodes_table = "category_nodes"
        self.shop_nodes_table = "shop_category_nodes"
        self.mappings_table = "category_mappings"

    # ===================
    # CANONICAL NODES
    # ===================

    def list_canonical_nodes(self, master_shop_id: int) -> list[CategoryNode]:
        """Get all canonical nodes of the master shop."""
        try:
            result = (
                self.db.table(self.nodes_table)
                .select("*")
                .eq("shop_id", master_shop_id)
                .order("position")
                .order("name")
                .execute()
            )

            return [CategoryNode(**row) for row in result.data]

        except Exception as e:
            logger.error(
                "list_canonical_nodes_failed",
                master_shop_id=master_shop_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e), {"shop_id": master_shop_id})

    def list_canonical_with_mappings(
        self,
        master_shop_id: int,
        shop_id: Optional[int]
    ) -> list[CanonicalCategory]:
        """
        Get canonical nodes with the mapping for one shop attached.

        Without a shop every node comes back with mapping=None.
        """
        nodes = self.list_canonical_nodes(master_shop_id)
        mappings = self.list_mappings(shop_id) if shop_id is not None else []
        by_node = {m.category_node_id: m for m in mappings}

        return [
            CanonicalCategory(node=node, mapping=by_node.get(node.id))
            for node in nodes
        ]

    def get_canonical_node(self, node_id: str) -> CategoryNode:
        """
        Get a canonical node by ID.

        Raises:
            CategoryNodeNotFoundError: Node doesn't exist
        """
        try:
            result = (
                self.db.table(self.nodes_table)
                .select("*")
                .eq("id", node_id)
                .execute()
            )

        except Exception as e:
            logger.error("get_canonical_node_failed", node_id=node_id, error=str(e))
            raise DatabaseError("select", str(e), {"category_node_id": node_id})

        if not result.data:
            raise CategoryNodeNotFoundError(node_id)

        return CategoryNode(**result.data[0])

    # ===================
    # SHOP NODES
    # ===================

    def list_shop_nodes(self, shop_id: int) -> list[ShopCategoryNode]:
        """Get all category nodes of a target shop."""
        try:
            result = (
                self.db.table(self.shop_nodes_table)
                .select("*")
                .eq("shop_id", shop_id)
                .order("position")
                .order("name")
                .execute()
            )

            return [ShopCategoryNode(**row) for row in result.data]

        except Exception as e:
            logger.error("list_shop_nodes_failed", shop_id=shop_id, error=str(e))
            raise DatabaseError("select", str(e), {"shop_id": shop_id})

    def page_shop_nodes(
        self,
        shop_id: int,
        page: int,
        per_page: int,
        search: Optional[str] = None
    ) -> tuple[list[ShopCategoryNode], int]:
        """
        Get one page of shop nodes ordered by path, then name.

        Returns:
            Tuple of (nodes, total matching count)
        """
        offset = (page - 1) * per_page

        try:
            query = (
                self.db.table(self.shop_nodes_table)
                .select("*", count="exact")
                .eq("shop_id", shop_id)
            )

            if search:
                term = search.strip()
                query = query.or_(
                    f"name.ilike.%{term}%,slug.ilike.%{term}%,path.ilike.%{term}%"
                )

            result = (
                query
                .order("path")
                .order("name")
                .range(offset, offset + per_page - 1)
                .execute()
            )

            nodes = [ShopCategoryNode(**row) for row in result.data]
            return nodes, result.count or 0

        except Exception as e:
            logger.error("page_shop_nodes_failed", shop_id=shop_id, error=str(e))
            raise DatabaseError("select", str(e), {"shop_id": shop_id})

    def get_shop_node(self, node_id: str) -> ShopCategoryNode:
        """
        Get a shop node by ID.

        Raises:
            ShopCategoryNodeNotFoundError: Node doesn't exist
        """
        try:
            result = (
                self.db.table(self.shop_nodes_table)
                .select("*")
                .eq("id", node_id)
                .execute()
            )

        except Exception as e:
            logger.error("get_shop_node_failed", node_id=node_id, error=str(e))
            raise DatabaseError("select", str(e), {"shop_category_node_id": node_id})

        if not result.data:
            raise ShopCategoryNodeNotFoundError(node_id)

        return ShopCategoryNode(**result.data[0])

    def update_shop_node_content(
        self,
        node_id: str,
        description: Optional[str],
        second_description: Optional[str]
    ) -> ShopCategoryNode:
        """Store the description texts of a shop node."""
        try:
            result = (
                self.db.table(self.shop_nodes_table)
                .update({
                    "description": description,
                    "second_description": second_description,
                })
                .eq("id", node_id)
                .execute()
            )

        except Exception as e:
            logger.error("update_shop_node_content_failed", node_id=node_id, error=str(e))
            raise DatabaseError("update", str(e), {"shop_category_node_id": node_id})

        if not result.data:
            raise ShopCategoryNodeNotFoundError(node_id)

        return ShopCategoryNode(**result.data[0])

    # ===================
    # MAPPINGS
    # ===================

    def list_mappings(self, shop_id: int) -> list[CategoryMapping]:
        """Get all mappings of a shop with the linked shop node attached."""
        try:
            result = (
                self.db.table(self.mappings_table)
                .select(f"*, {SHOP_CATEGORY_EMBED}")
                .eq("shop_id", shop_id)
                .execute()
            )

            return [CategoryMapping(**row) for row in result.data]

        except Exception as e:
            logger.error("list_category_mappings_failed", shop_id=shop_id, error=str(e))
            raise DatabaseError("select", str(e), {"shop_id": shop_id})

    def upsert_mapping(self, mapping: CategoryMapping) -> CategoryMapping:
        """
        Insert or update the mapping identified by (category_node_id, shop_id).
        """
        data = mapping.model_dump(
            mode="json",
            exclude={"id", "shop_category", "created_at", "updated_at"}
        )
        context = {
            "category_node_id": mapping.category_node_id,
            "shop_id": mapping.shop_id,
        }

        try:
            (
                self.db.table(self.mappings_table)
                .upsert(data, on_conflict="category_node_id,shop_id")
                .execute()
            )

            result = (
                self.db.table(self.mappings_table)
                .select(f"*, {SHOP_CATEGORY_EMBED}")
                .eq("category_node_id", mapping.category_node_id)
                .eq("shop_id", mapping.shop_id)
                .execute()
            )

        except Exception as e:
            logger.error("upsert_category_mapping_failed", error=str(e), **context)
            raise DatabaseError("upsert", str(e), context)

        if not result.data:
            raise DatabaseError("upsert", "mapping not returned", context)

        return CategoryMapping(**result.data[0])
