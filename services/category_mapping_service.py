"""
Category mapping service.

Confirm/reject workflow for canonical-to-shop category mappings, paged
listings for operators, and pushing category texts to a shop.
"""

from typing import Optional
import structlog

from exceptions import ConflictError
from integrations.shoptet import RemoteCatalogClient, get_shoptet_client
from models.base import PageMeta, PaginationParams
from models.category import (
    CanonicalMappingListResponse,
    CategoryMapping,
    MappingSource,
    MappingStatus,
    ShopCategoryListResponse,
    ShopCategoryNode,
)
from repositories import CategoryRepository, ShopRepository
from utils.text_utils import blank_to_none

logger = structlog.get_logger(__name__)


class CategoryMappingService:
    """
    Category mapping business logic.

    Both confirm and reject upsert on (category_node_id, shop_id), so
    repeating a call with the same input changes nothing but timestamps.
    """

    def __init__(
        self,
        category_repository: Optional[CategoryRepository] = None,
        shop_repository: Optional[ShopRepository] = None,
        remote_client: Optional[RemoteCatalogClient] = None
    ):
        self.categories = category_repository or CategoryRepository()
        self.shops = shop_repository or ShopRepository()
        self.remote = remote_client or get_shoptet_client()

    def confirm(
        self,
        category_node_id: str,
        shop_category_node_id: str,
        notes: Optional[str] = None
    ) -> CategoryMapping:
        """
        Confirm that a canonical node maps to a shop node.

        The shop is taken from the shop node.

        Raises:
            CategoryNodeNotFoundError: Canonical node doesn't exist
            ShopCategoryNodeNotFoundError: Shop node doesn't exist
        """
        node = self.categories.get_canonical_node(category_node_id)
        shop_node = self.categories.get_shop_node(shop_category_node_id)

        mapping = self.categories.upsert_mapping(CategoryMapping(
            category_node_id=node.id,
            shop_id=shop_node.shop_id,
            shop_category_node_id=shop_node.id,
            status=MappingStatus.CONFIRMED,
            confidence=1.0,
            source=MappingSource.MANUAL,
            notes=notes,
        ))

        logger.info(
            "category_mapping_confirmed",
            category_node_id=node.id,
            shop_id=shop_node.shop_id,
            shop_category_node_id=shop_node.id
        )
        return mapping

    def reject(
        self,
        category_node_id: str,
        shop_id: int,
        notes: Optional[str] = None
    ) -> CategoryMapping:
        """
        Record that a canonical node has no counterpart in a shop.

        Raises:
            CategoryNodeNotFoundError: Canonical node doesn't exist
            ShopNotFoundError: Shop doesn't exist
        """
        node = self.categories.get_canonical_node(category_node_id)
        shop = self.shops.get(shop_id)

        mapping = self.categories.upsert_mapping(CategoryMapping(
            category_node_id=node.id,
            shop_id=shop.id,
            shop_category_node_id=None,
            status=MappingStatus.REJECTED,
            confidence=None,
            source=MappingSource.MANUAL,
            notes=notes,
        ))

        logger.info("category_mapping_rejected", category_node_id=node.id, shop_id=shop.id)
        return mapping

    # ===================
    # LISTINGS
    # ===================

    def list_mappings(
        self,
        shop_id: int,
        master_shop_id: Optional[int] = None,
        pagination: Optional[PaginationParams] = None,
        search: Optional[str] = None,
        status: Optional[MappingStatus] = None
    ) -> CanonicalMappingListResponse:
        """
        Page through canonical nodes with their mapping for a shop.

        Args:
            shop_id: Target shop
            master_shop_id: Explicit master shop (default: first master)
            pagination: Page and page size
            search: Matches node name, slug or guid (case-insensitive)
            status: Only nodes whose mapping has this status
        """
        pagination = pagination or PaginationParams()
        self.shops.get(shop_id)
        master_shop = self.shops.get_master(master_shop_id)

        entries = self.categories.list_canonical_with_mappings(master_shop.id, shop_id)

        if search:
            term = search.strip().casefold()
            entries = [
                e for e in entries
                if term in e.node.name.casefold()
                or term in (e.node.slug or "").casefold()
                or term in e.node.guid.casefold()
            ]

        if status is not None:
            entries = [e for e in entries if e.mapping is not None and e.mapping.status == status]

        entries.sort(key=lambda e: (e.node.name.casefold(), e.node.id))
        page = entries[pagination.offset:pagination.offset + pagination.limit]

        return CanonicalMappingListResponse(
            data=page,
            meta=PageMeta.create(len(entries), pagination.page, pagination.per_page),
        )

    def list_shop_categories(
        self,
        shop_id: int,
        pagination: Optional[PaginationParams] = None,
        search: Optional[str] = None
    ) -> ShopCategoryListResponse:
        """Page through a shop's category nodes ordered by path, then name."""
        pagination = pagination or PaginationParams()
        self.shops.get(shop_id)

        nodes, total = self.categories.page_shop_nodes(
            shop_id,
            pagination.page,
            pagination.per_page,
            search
        )

        return ShopCategoryListResponse(
            data=nodes,
            meta=PageMeta.create(total, pagination.page, pagination.per_page),
        )

    # ===================
    # CONTENT PUSH
    # ===================

    def push_category_content(
        self,
        shop_id: int,
        shop_category_node_id: str,
        description: Optional[str] = None,
        second_description: Optional[str] = None
    ) -> ShopCategoryNode:
        """
        Send category descriptions to the shop, then store them locally.

        Blank texts are sent and stored as null. Nothing is stored when
        the remote update fails.

        Raises:
            ConflictError: Node belongs to another shop or has no remote GUID
            UpstreamUnavailableError: Remote update failed
        """
        shop = self.shops.get(shop_id)
        node = self.categories.get_shop_node(shop_category_node_id)
        context = {"shop_id": shop.id, "shop_category_node_id": node.id}

        if node.shop_id != shop.id:
            raise ConflictError(
                "Category does not belong to the selected shop",
                code="CATEGORY_SHOP_MISMATCH",
                details={**context, "node_shop_id": node.shop_id}
            )

        if not node.remote_guid:
            raise ConflictError(
                "Category has no Shoptet GUID",
                code="CATEGORY_GUID_MISSING",
                details=context
            )

        description = blank_to_none(description)
        second_description = blank_to_none(second_description)

        logger.info("pushing_category_content", remote_guid=node.remote_guid, **context)

        self.remote.update_category(shop, node.remote_guid, {
            "description": description,
            "secondDescription": second_description,
        })

        updated = self.categories.update_shop_node_content(node.id, description, second_description)

        logger.info("category_content_pushed", **context)
        return updated


# Singleton instance
_service: Optional[CategoryMappingService] = None


def get_category_mapping_service() -> CategoryMappingService:
    """Get or create CategoryMappingService instance."""
    global _service
    if _service is None:
        _service = CategoryMappingService()
    return _service
