"""
Attribute cache service.

Keeps a per-shop, per-type snapshot of normalized attribute items in
the shop's settings. A fresh remote fetch is always merged on top of
the cached snapshot: fields the fetch supplies win, everything the
fetch omits (fields, values, whole items) survives from the cache.
"""

from typing import Any, Optional
import structlog

from integrations.shoptet import RemoteCatalogClient, get_shoptet_client
from models.attribute import AttributeType, MappableItem, MappableValue
from models.shop import Shop
from repositories import SettingsRepository, ShopRepository
from services.item_normalizer import ItemNormalizer, sort_items, sort_values

logger = structlog.get_logger(__name__)


# ===================
# MERGE
# ===================

def _merge_values(base: list[dict], incoming: list[dict]) -> list[dict]:
    """Keyed merge of value dicts; incoming fields win."""
    merged: dict[str, dict] = {}
    for value in base:
        if value.get("key"):
            merged[value["key"]] = value
    for value in incoming:
        if not value.get("key"):
            continue
        merged[value["key"]] = {**merged.get(value["key"], {}), **value}
    return list(merged.values())


def merge_items(
    cached: list[MappableItem],
    fetched: list[MappableItem],
    supports_values: bool
) -> list[MappableItem]:
    """
    Overlay fetched items on cached items by key.

    Only fields that were actually supplied on a fetched item replace
    cached ones. `extra` is merged key by key; for value-bearing types
    `values` are merged by value key one level deeper.

    Args:
        cached: Items from the attribute cache (base)
        fetched: Freshly normalized remote items (overlay)
        supports_values: Whether the type carries nested values

    Returns:
        Merged items sorted by case-folded label
    """
    merged: dict[str, dict[str, Any]] = {}

    for item in cached:
        merged[item.key] = item.to_cache_dict()

    for item in fetched:
        incoming = item.to_cache_dict()
        base = merged.get(item.key)
        if base is None:
            merged[item.key] = incoming
            continue

        combined = {**base, **incoming}
        if "extra" in base and "extra" in incoming:
            combined["extra"] = {**base["extra"], **incoming["extra"]}
        if supports_values:
            combined["values"] = _merge_values(
                base.get("values", []),
                incoming.get("values", [])
            )
        merged[item.key] = combined

    items = []
    for data in merged.values():
        item = MappableItem(**data)
        if supports_values and "values" in data:
            item.values = sort_values(item.values)
        items.append(item)

    return sort_items(items)


# ===================
# SERVICE
# ===================

class AttributeCacheService:
    """Fetches remote attribute items and keeps the cache up to date."""

    def __init__(
        self,
        remote_client: Optional[RemoteCatalogClient] = None,
        settings_repository: Optional[SettingsRepository] = None,
        shop_repository: Optional[ShopRepository] = None,
        normalizer: Optional[ItemNormalizer] = None
    ):
        self.remote = remote_client or get_shoptet_client()
        self.settings_repository = settings_repository or SettingsRepository()
        self.shop_repository = shop_repository or ShopRepository()
        self.normalizer = normalizer or ItemNormalizer()

    def fetch_remote(self, shop: Shop, attribute_type: AttributeType) -> list[MappableItem]:
        """Fetch and normalize live items of one type."""
        if attribute_type is AttributeType.FLAGS:
            payload = self.remote.list_flags(shop)
        elif attribute_type is AttributeType.FILTERING_PARAMETERS:
            payload = self.remote.list_filtering_parameters(shop)
        else:
            payload = self.remote.list_variant_parameters(shop)

        return self.normalizer.normalize(attribute_type, payload)

    def load_items(self, shop: Shop, attribute_type: AttributeType) -> list[MappableItem]:
        """
        Current items of one type: remote fetch merged over the cache.

        Nothing is persisted.
        """
        fetched = self.fetch_remote(shop, attribute_type)
        cached = self.settings_repository.get_attribute_cache(shop.id, attribute_type)

        items = merge_items(cached, fetched, attribute_type.supports_values)

        logger.debug(
            "attribute_items_loaded",
            shop_id=shop.id,
            type=attribute_type.value,
            fetched=len(fetched),
            cached=len(cached),
            merged=len(items)
        )
        return items

    def sync(
        self,
        shop_id: int,
        types: Optional[list[AttributeType]] = None
    ) -> dict[str, int]:
        """
        Refresh the cache of a shop from the remote catalog.

        Every requested type is fetched before anything is written, so a
        remote failure leaves the cache untouched.

        Args:
            shop_id: Shop to refresh
            types: Types to refresh (default: all)

        Returns:
            Item count per refreshed type
        """
        shop = self.shop_repository.get(shop_id)
        requested = list(dict.fromkeys(types or list(AttributeType)))

        logger.info("attribute_cache_sync_started", shop_id=shop_id, types=[t.value for t in requested])

        entries: dict[AttributeType, list[MappableItem]] = {}
        for attribute_type in requested:
            entries[attribute_type] = self.load_items(shop, attribute_type)

        self.settings_repository.save_attribute_cache(shop_id, entries)

        counts = {t.value: len(items) for t, items in entries.items()}
        logger.info("attribute_cache_sync_completed", shop_id=shop_id, counts=counts)
        return counts


# Singleton instance
_service: Optional[AttributeCacheService] = None


def get_attribute_cache_service() -> AttributeCacheService:
    """Get or create AttributeCacheService instance."""
    global _service
    if _service is None:
        _service = AttributeCacheService()
    return _service
