"""
Product repository.

Products are loaded as aggregates: variant codes, shop overlays and
remote references come attached.
"""

from typing import Any, Iterator, Optional
import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import DatabaseError, ProductNotFoundError
from models.product import Product, ProductShopOverlay

logger = structlog.get_logger(__name__)

PRODUCT_SELECT = (
    "*, product_variants(code), product_shop_overlays(*), product_remote_refs(*)"
)


def _to_product(row: dict) -> Product:
    """Convert a product row with embedded relations to a Product."""
    row = dict(row)
    variants = row.pop("product_variants", None) or []
    overlays = row.pop("product_shop_overlays", None) or []
    remote_refs = row.pop("product_remote_refs", None) or []

    codes: list[str] = []
    for variant in variants:
        code = (variant or {}).get("code")
        if code and code not in codes:
            codes.append(code)

    return Product(
        **row,
        variant_codes=codes,
        overlays=overlays,
        remote_refs=remote_refs,
    )


class ProductRepository:
    """Persistence for master products and their shop overlays."""

    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_supabase_client()
        self.table = "products"
        self.variants_table = "product_variants"
        self.overlays_table = "product_shop_overlays"

    def get(self, product_id: str) -> Product:
        """
        Get a product aggregate by ID.

        Raises:
            ProductNotFoundError: Product doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select(PRODUCT_SELECT)
                .eq("id", product_id)
                .execute()
            )

        except Exception as e:
            logger.error("get_product_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e), {"product_id": product_id})

        if not result.data:
            raise ProductNotFoundError(product_id)

        return _to_product(result.data[0])

    def _variant_product_ids(self, term: str) -> list[str]:
        """IDs of products having a variant whose code contains `term`."""
        result = (
            self.db.table(self.variants_table)
            .select("product_id")
            .ilike("code", f"%{term}%")
            .execute()
        )
        ids: list[str] = []
        for row in result.data:
            if row["product_id"] not in ids:
                ids.append(row["product_id"])
        return ids

    def iter_master_products(
        self,
        master_shop_id: int,
        search: Optional[str] = None,
        chunk_size: int = 100
    ) -> Iterator[Product]:
        """
        Iterate over all products of the master shop ordered by SKU.

        Rows are read in chunks of `chunk_size`. A search term matches the
        SKU or any variant code.
        """
        term = search.strip() if search else None
        offset = 0

        try:
            variant_ids = self._variant_product_ids(term) if term else []

            while True:
                query = (
                    self.db.table(self.table)
                    .select(PRODUCT_SELECT)
                    .eq("shop_id", master_shop_id)
                )

                if term and variant_ids:
                    query = query.or_(
                        f"sku.ilike.%{term}%,id.in.({','.join(variant_ids)})"
                    )
                elif term:
                    query = query.ilike("sku", f"%{term}%")

                result = (
                    query
                    .order("sku")
                    .order("id")
                    .range(offset, offset + chunk_size - 1)
                    .execute()
                )

                for row in result.data:
                    yield _to_product(row)

                if len(result.data) < chunk_size:
                    break
                offset += chunk_size

        except Exception as e:
            logger.error(
                "iter_master_products_failed",
                master_shop_id=master_shop_id,
                offset=offset,
                error=str(e)
            )
            raise DatabaseError("select", str(e), {"shop_id": master_shop_id})

    def save_base_payload(self, product_id: str, base_payload: dict[str, Any]) -> None:
        """Replace the base payload of a master product."""
        try:
            (
                self.db.table(self.table)
                .update({"base_payload": base_payload})
                .eq("id", product_id)
                .execute()
            )

        except Exception as e:
            logger.error("save_base_payload_failed", product_id=product_id, error=str(e))
            raise DatabaseError("update", str(e), {"product_id": product_id})

    def save_overlay_data(
        self,
        product_id: str,
        shop_id: int,
        data: dict[str, Any]
    ) -> ProductShopOverlay:
        """Insert or replace the overlay data of a product in one shop."""
        context = {"product_id": product_id, "shop_id": shop_id}

        try:
            result = (
                self.db.table(self.overlays_table)
                .upsert(
                    {"product_id": product_id, "shop_id": shop_id, "data": data},
                    on_conflict="product_id,shop_id"
                )
                .execute()
            )

        except Exception as e:
            logger.error("save_overlay_data_failed", error=str(e), **context)
            raise DatabaseError("upsert", str(e), context)

        row = result.data[0] if result.data else {"product_id": product_id, "shop_id": shop_id, "data": data}
        return ProductShopOverlay(**row)
