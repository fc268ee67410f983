"""
Shop repository for the shops table.
"""

from typing import Optional
import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import DatabaseError, ShopNotFoundError, MasterShopNotFoundError
from models.shop import Shop

logger = structlog.get_logger(__name__)


class ShopRepository:
    """Read access to shops."""

    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_supabase_client()
        self.table = "shops"

    def find(self, shop_id: int) -> Optional[Shop]:
        """
        Get a shop by ID.

        Args:
            shop_id: Shop ID

        Returns:
            Shop or None if not found
        """
        logger.debug("getting_shop", shop_id=shop_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", shop_id)
                .execute()
            )

            if not result.data:
                return None

            return Shop(**result.data[0])

        except Exception as e:
            logger.error("get_shop_failed", shop_id=shop_id, error=str(e))
            raise DatabaseError("select", str(e), {"shop_id": shop_id})

    def get(self, shop_id: int) -> Shop:
        """Get a shop by ID or raise ShopNotFoundError."""
        shop = self.find(shop_id)
        if shop is None:
            raise ShopNotFoundError(shop_id)
        return shop

    def get_master(self, shop_id: Optional[int] = None) -> Shop:
        """
        Resolve the master shop.

        An explicit ID must point at a shop flagged is_master. Without an
        ID, the master shop with the lowest ID is used.

        Raises:
            MasterShopNotFoundError: No matching master shop
        """
        logger.debug("resolving_master_shop", shop_id=shop_id)

        try:
            query = (
                self.db.table(self.table)
                .select("*")
                .eq("is_master", True)
            )
            if shop_id is not None:
                query = query.eq("id", shop_id)

            result = query.order("id").limit(1).execute()

        except Exception as e:
            logger.error("get_master_shop_failed", shop_id=shop_id, error=str(e))
            raise DatabaseError("select", str(e), {"shop_id": shop_id})

        if not result.data:
            logger.warning("master_shop_not_found", shop_id=shop_id)
            raise MasterShopNotFoundError(shop_id)

        return Shop(**result.data[0])
