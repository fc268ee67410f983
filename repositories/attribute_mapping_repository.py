"""
Attribute mapping repository.

Reads come back as AttributeMapping aggregates with their value
mappings attached. Writes go through the apply_attribute_mapping_plan
database function so a whole save commits in one transaction.
"""

from typing import Optional
import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import DatabaseError
from models.attribute import AttributeType
from models.attribute_mapping import AttributeMapping, AttributeMappingPlan

logger = structlog.get_logger(__name__)

APPLY_PLAN_FUNCTION = "apply_attribute_mapping_plan"


class AttributeMappingRepository:
    """Persistence for attribute mappings and their value mappings."""

    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_supabase_client()
        self.table = "attribute_mappings"
        self.values_table = "attribute_value_mappings"

    def list_for_scope(
        self,
        master_shop_id: int,
        target_shop_id: int,
        attribute_type: AttributeType
    ) -> list[AttributeMapping]:
        """
        Get all mappings of one (master, target, type) scope.

        Returns:
            Mappings ordered by master_key, values attached
        """
        scope = {
            "master_shop_id": master_shop_id,
            "target_shop_id": target_shop_id,
            "type": attribute_type.value,
        }
        logger.debug("listing_attribute_mappings", **scope)

        try:
            result = (
                self.db.table(self.table)
                .select(f"*, values:{self.values_table}(*)")
                .eq("master_shop_id", master_shop_id)
                .eq("target_shop_id", target_shop_id)
                .eq("type", attribute_type.value)
                .order("master_key")
                .execute()
            )

            return [AttributeMapping(**row) for row in result.data]

        except Exception as e:
            logger.error("list_attribute_mappings_failed", error=str(e), **scope)
            raise DatabaseError("select", str(e), scope)

    def apply_plan(self, plan: AttributeMappingPlan) -> None:
        """
        Commit a save plan atomically.

        Deletes the listed master keys (values cascade), then upserts every
        write. A write with values=None keeps its stored value rows.
        """
        scope = {
            "master_shop_id": plan.master_shop_id,
            "target_shop_id": plan.target_shop_id,
            "type": plan.type.value,
        }

        if plan.is_empty:
            logger.debug("attribute_mapping_plan_empty", **scope)
            return

        payload = plan.model_dump(mode="json")

        try:
            self.db.rpc(
                APPLY_PLAN_FUNCTION,
                {
                    "p_master_shop_id": plan.master_shop_id,
                    "p_target_shop_id": plan.target_shop_id,
                    "p_type": plan.type.value,
                    "p_delete_keys": payload["delete_master_keys"],
                    "p_upserts": payload["upserts"],
                }
            ).execute()

            logger.info(
                "attribute_mapping_plan_applied",
                deleted=len(plan.delete_master_keys),
                upserted=len(plan.upserts),
                **scope
            )

        except Exception as e:
            logger.error("apply_attribute_mapping_plan_failed", error=str(e), **scope)
            raise DatabaseError("rpc", str(e), scope)
