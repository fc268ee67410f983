"""
Shop-scoped settings repository.

Each shop row carries a JSON settings document. The attribute cache
lives under settings.attribute_cache, keyed by attribute type, each
entry a list of normalized MappableItem records.
"""

from typing import Any, Optional
import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import DatabaseError, ShopNotFoundError
from models.attribute import AttributeType, MappableItem

logger = structlog.get_logger(__name__)

ATTRIBUTE_CACHE_KEY = "attribute_cache"


class SettingsRepository:
    """Reads and writes the settings document of a shop."""

    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_supabase_client()
        self.table = "shops"

    def get_settings(self, shop_id: int) -> dict[str, Any]:
        """
        Get the full settings document of a shop.

        Raises:
            ShopNotFoundError: Shop doesn't exist
            DatabaseError: Query failed
        """
        try:
            result = (
                self.db.table(self.table)
                .select("id, settings")
                .eq("id", shop_id)
                .execute()
            )

        except Exception as e:
            logger.error("get_shop_settings_failed", shop_id=shop_id, error=str(e))
            raise DatabaseError("select", str(e), {"shop_id": shop_id})

        if not result.data:
            raise ShopNotFoundError(shop_id)

        settings = result.data[0].get("settings")
        return settings if isinstance(settings, dict) else {}

    def save_settings(self, shop_id: int, settings: dict[str, Any]) -> None:
        """Replace the settings document of a shop."""
        try:
            (
                self.db.table(self.table)
                .update({"settings": settings})
                .eq("id", shop_id)
                .execute()
            )

        except Exception as e:
            logger.error("save_shop_settings_failed", shop_id=shop_id, error=str(e))
            raise DatabaseError("update", str(e), {"shop_id": shop_id})

    # ===================
    # ATTRIBUTE CACHE
    # ===================

    def get_attribute_cache(
        self,
        shop_id: int,
        attribute_type: AttributeType
    ) -> list[MappableItem]:
        """
        Get cached items of one type.

        Entries that no longer validate (missing key) are skipped.
        """
        cache = self.get_settings(shop_id).get(ATTRIBUTE_CACHE_KEY) or {}
        raw_items = cache.get(attribute_type.value) or []

        items = []
        for raw in raw_items:
            if not isinstance(raw, dict) or not str(raw.get("key") or "").strip():
                logger.warning(
                    "attribute_cache_entry_skipped",
                    shop_id=shop_id,
                    type=attribute_type.value
                )
                continue
            items.append(MappableItem.model_validate(raw))

        return items

    def save_attribute_cache(
        self,
        shop_id: int,
        entries: dict[AttributeType, list[MappableItem]]
    ) -> None:
        """
        Store cache entries for the given types in one settings write.

        Types not present in `entries` keep their cached items, and
        settings outside attribute_cache are left untouched.
        """
        settings = self.get_settings(shop_id)
        cache = dict(settings.get(ATTRIBUTE_CACHE_KEY) or {})

        for attribute_type, items in entries.items():
            cache[attribute_type.value] = [item.to_cache_dict() for item in items]

        settings[ATTRIBUTE_CACHE_KEY] = cache
        self.save_settings(shop_id, settings)

        logger.info(
            "attribute_cache_saved",
            shop_id=shop_id,
            types=[t.value for t in entries],
            counts={t.value: len(items) for t, items in entries.items()}
        )
