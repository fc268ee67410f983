"""
Default category updater.

Sets or clears a product's default category on the master product or
in a target shop overlay. With sync_to_shoptet the change is pushed to
Shoptet first; local state is written only after the push succeeded.
"""

from typing import Any, Optional
import structlog

from exceptions import (
    AppError,
    DefaultCategoryConflictError,
    ValidationError,
)
from integrations.shoptet import RemoteCatalogClient, get_shoptet_client
from models.category import CategoryNode, ShopCategoryNode
from models.product import DEFAULT_CATEGORY_KEY, DefaultCategoryResult, Product
from models.shop import Shop
from repositories import CategoryRepository, ProductRepository, ShopRepository
from services.category_tree_service import build_path

logger = structlog.get_logger(__name__)


def assigned_category_guids(product_data: dict[str, Any]) -> list[str]:
    """Unique category GUIDs from a Shoptet product detail (`categories`)."""
    guids: list[str] = []
    for item in product_data.get("categories") or []:
        guid = item.get("guid") if isinstance(item, dict) else item
        if isinstance(guid, str) and guid and guid not in guids:
            guids.append(guid)
    return guids


class DefaultCategoryUpdater:
    """Writes default categories locally and, optionally, to Shoptet."""

    def __init__(
        self,
        product_repository: Optional[ProductRepository] = None,
        category_repository: Optional[CategoryRepository] = None,
        shop_repository: Optional[ShopRepository] = None,
        remote_client: Optional[RemoteCatalogClient] = None
    ):
        self.products = product_repository or ProductRepository()
        self.categories = category_repository or CategoryRepository()
        self.shops = shop_repository or ShopRepository()
        self.remote = remote_client or get_shoptet_client()

    # ===================
    # MASTER
    # ===================

    def apply_to_master(
        self,
        product: Product,
        category: CategoryNode,
        sync_to_shoptet: bool = False
    ) -> None:
        """
        Set the master product's default category to a canonical node.

        Raises:
            DefaultCategoryConflictError: Product not in a master shop,
                category from another shop, or a GUID missing for sync
            UpstreamUnavailableError: Push to Shoptet failed
        """
        shop = self._master_shop_of(product)

        if category.shop_id != product.shop_id:
            raise DefaultCategoryConflictError(
                "Category does not belong to the product's master shop",
                {"product_id": product.id, "category_id": category.id, "shop_id": product.shop_id}
            )

        nodes_by_id = {node.id: node for node in self.categories.list_canonical_nodes(category.shop_id)}
        payload = dict(product.base_payload or {})
        payload[DEFAULT_CATEGORY_KEY] = {
            "guid": category.guid,
            "name": category.name,
            "path": build_path(category, nodes_by_id),
        }

        if sync_to_shoptet:
            self._require_guid(category.guid, "Master category has no Shoptet GUID", product, shop)
            self._push(shop, product, category.guid)

        self.products.save_base_payload(product.id, payload)
        logger.info(
            "master_default_category_set",
            product_id=product.id,
            category_id=category.id,
            synced=sync_to_shoptet
        )

    def clear_master(self, product: Product, sync_to_shoptet: bool = False) -> None:
        """Remove the master product's default category."""
        shop = self._master_shop_of(product)

        payload = dict(product.base_payload or {})
        payload.pop(DEFAULT_CATEGORY_KEY, None)

        if sync_to_shoptet:
            self._push(shop, product, None)

        self.products.save_base_payload(product.id, payload)
        logger.info("master_default_category_cleared", product_id=product.id, synced=sync_to_shoptet)

    # ===================
    # SHOP OVERLAY
    # ===================

    def apply_to_shop(
        self,
        product: Product,
        shop: Shop,
        category: ShopCategoryNode,
        sync_to_shoptet: bool = False
    ) -> None:
        """
        Set the product's default category in one shop's overlay.

        Raises:
            DefaultCategoryConflictError: Category from another shop or a
                GUID missing for sync
            UpstreamUnavailableError: Push to Shoptet failed
        """
        if category.shop_id != shop.id:
            raise DefaultCategoryConflictError(
                "Category does not belong to the selected shop",
                {"product_id": product.id, "category_id": category.id, "shop_id": shop.id}
            )

        path = category.path
        if not path:
            nodes_by_id = {node.id: node for node in self.categories.list_shop_nodes(shop.id)}
            path = build_path(category, nodes_by_id)

        data = self._overlay_data(product, shop)
        data[DEFAULT_CATEGORY_KEY] = {
            "guid": category.remote_guid,
            "name": category.name,
            "path": path,
        }

        if sync_to_shoptet:
            self._require_guid(category.remote_guid, "Category has no Shoptet GUID", product, shop)
            self._push(shop, product, category.remote_guid)

        self.products.save_overlay_data(product.id, shop.id, data)
        logger.info(
            "shop_default_category_set",
            product_id=product.id,
            shop_id=shop.id,
            category_id=category.id,
            synced=sync_to_shoptet
        )

    def clear_shop(self, product: Product, shop: Shop, sync_to_shoptet: bool = False) -> None:
        """Remove the product's default category from one shop's overlay."""
        data = self._overlay_data(product, shop)
        data.pop(DEFAULT_CATEGORY_KEY, None)

        if sync_to_shoptet:
            self._push(shop, product, None)

        self.products.save_overlay_data(product.id, shop.id, data)
        logger.info(
            "shop_default_category_cleared",
            product_id=product.id,
            shop_id=shop.id,
            synced=sync_to_shoptet
        )

    # ===================
    # PUBLIC OPERATION
    # ===================

    def apply_default_category(
        self,
        product_id: str,
        target: str,
        category_id: Optional[str] = None,
        shop_id: Optional[int] = None,
        sync_to_shoptet: bool = True
    ) -> DefaultCategoryResult:
        """
        Set or clear a default category and report the sync context.

        Args:
            product_id: Master product
            target: "master" or "shop"
            category_id: Canonical node (master) or shop node (shop); None clears
            shop_id: Required for target="shop"
            sync_to_shoptet: Push to Shoptet before writing locally

        Returns:
            Message plus describe_sync_context() after the change
        """
        product = self.products.get(product_id)

        if target == "master":
            shop = self.shops.get(product.shop_id)
            if category_id:
                category = self.categories.get_canonical_node(category_id)
                self.apply_to_master(product, category, sync_to_shoptet)
                category_guid = category.guid
                message = "Default category set on the master product."
            else:
                self.clear_master(product, sync_to_shoptet)
                category_guid = None
                message = "Default category removed from the master product."

        elif target == "shop":
            if shop_id is None:
                raise ValidationError(
                    "shop_id is required when target is shop",
                    code="DEFAULT_CATEGORY_SHOP_REQUIRED",
                    details={"product_id": product_id}
                )
            shop = self.shops.get(shop_id)
            if category_id:
                shop_category = self.categories.get_shop_node(category_id)
                self.apply_to_shop(product, shop, shop_category, sync_to_shoptet)
                category_guid = shop_category.remote_guid
                message = "Default category set for the shop."
            else:
                self.clear_shop(product, shop, sync_to_shoptet)
                category_guid = None
                message = "Default category removed for the shop."

        else:
            raise ValidationError(
                "Target must be master or shop",
                code="DEFAULT_CATEGORY_INVALID_TARGET",
                details={"provided": target}
            )

        refreshed = self.products.get(product_id)
        return DefaultCategoryResult(
            message=message,
            debug=self.describe_sync_context(refreshed, shop, category_guid),
        )

    # ===================
    # DIAGNOSTICS
    # ===================

    def describe_sync_context(
        self,
        product: Product,
        shop: Optional[Shop] = None,
        category_guid: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Decision trail for a default-category push.

        Reads the product's current Shoptet categories but never writes.
        Anything that would block a push is listed under `notes`.
        """
        remote_ref = product.remote_ref_for(shop.id) if shop else None
        overlay = product.overlay_for(shop.id) if shop else None

        payload_preview: dict[str, Any] = {"defaultCategoryGuid": category_guid}
        assigned: Optional[list[str]] = None
        resolved_guid: Optional[str] = None
        notes: list[str] = []

        if shop:
            try:
                resolved_guid = self._resolve_product_guid(product, shop)
                product_data = self.remote.get_product(shop, resolved_guid, include="allCategories")
                assigned = assigned_category_guids(product_data)

                if category_guid:
                    payload_preview = {
                        "defaultCategoryGuid": category_guid,
                        "categoryGuids": assigned + ([] if category_guid in assigned else [category_guid]),
                    }
            except AppError as e:
                notes.append(f"Could not read product categories from Shoptet: {e.message}")

        has_ref_guid = bool(remote_ref and remote_ref.remote_guid)

        if not product.external_guid and not has_ref_guid:
            notes.append("Product has no stored Shoptet GUID.")

        if shop and not has_ref_guid and not (shop.is_master and product.external_guid):
            notes.append(f"Product has no remote GUID for shop #{shop.id}.")

        if shop and not category_guid:
            notes.append("Category has no Shoptet GUID.")

        return {
            "product": {
                "id": product.id,
                "sku": product.sku,
                "external_guid": product.external_guid,
            },
            "shop": shop.summary() if shop else None,
            "resolved_remote_guid": resolved_guid,
            "category_guid": category_guid,
            "payload_preview": payload_preview,
            "master_default_category": (product.base_payload or {}).get(DEFAULT_CATEGORY_KEY),
            "shop_overlay_default_category": (overlay.data if overlay else {}).get(DEFAULT_CATEGORY_KEY),
            "shoptet_assigned_categories": assigned,
            "notes": notes,
        }

    # ===================
    # HELPERS
    # ===================

    def _master_shop_of(self, product: Product) -> Shop:
        shop = self.shops.get(product.shop_id)
        if not shop.is_master:
            raise DefaultCategoryConflictError(
                "Product is not in a master shop",
                {"product_id": product.id, "shop_id": product.shop_id}
            )
        return shop

    @staticmethod
    def _overlay_data(product: Product, shop: Shop) -> dict[str, Any]:
        overlay = product.overlay_for(shop.id)
        return dict(overlay.data) if overlay and isinstance(overlay.data, dict) else {}

    @staticmethod
    def _require_guid(guid: Optional[str], message: str, product: Product, shop: Shop) -> str:
        if not guid:
            raise DefaultCategoryConflictError(message, {"product_id": product.id, "shop_id": shop.id})
        return guid

    @staticmethod
    def _resolve_product_guid(product: Product, shop: Shop) -> str:
        """
        Product GUID in a shop.

        The master shop uses the product's external GUID; other shops use
        the stored remote reference.

        Raises:
            DefaultCategoryConflictError: No GUID known for the shop
        """
        if shop.is_master and product.external_guid:
            return product.external_guid

        remote_ref = product.remote_ref_for(shop.id)
        if remote_ref and remote_ref.remote_guid:
            return remote_ref.remote_guid

        raise DefaultCategoryConflictError(
            "Product has no Shoptet GUID for the selected shop",
            {"product_id": product.id, "shop_id": shop.id}
        )

    def _push(self, shop: Shop, product: Product, category_guid: Optional[str]) -> None:
        """
        Send the default category to Shoptet.

        A new default is added to the product's category list as well;
        Shoptet rejects a default the product is not assigned to.
        """
        product_guid = self._resolve_product_guid(product, shop)

        if category_guid is None:
            payload: dict[str, Any] = {"defaultCategoryGuid": None}
        else:
            current = self.remote.get_product(shop, product_guid, include="allCategories")
            guids = assigned_category_guids(current)
            if category_guid not in guids:
                guids.append(category_guid)
            payload = {"defaultCategoryGuid": category_guid, "categoryGuids": guids}

        logger.info(
            "pushing_default_category",
            product_id=product.id,
            shop_id=shop.id,
            product_guid=product_guid,
            category_guid=category_guid
        )
        self.remote.update_product(shop, product_guid, payload)


# Singleton instance
_updater: Optional[DefaultCategoryUpdater] = None


def get_default_category_updater() -> DefaultCategoryUpdater:
    """Get or create DefaultCategoryUpdater instance."""
    global _updater
    if _updater is None:
        _updater = DefaultCategoryUpdater()
    return _updater
