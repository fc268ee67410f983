"""
Attribute mapping service.

Builds the mapping view of a (master shop, target shop, type) scope and
saves submitted mapping sets. A save is planned entirely in memory,
validated, and then committed as one unit, so a failing save leaves
the stored mappings untouched.

Invariants kept by every save:
    - each target_key is claimed by at most one master_key per scope
    - within one mapping, each target_value_key is used at most once
    - the submitted set fully replaces the stored set of the scope
"""

from typing import Any, Optional, Union
import structlog

from config import get_admin_client
from exceptions import InvalidAttributeTypeError, ValidationError
from models.attribute import AttributeType, MappableItem, MappableValue
from models.attribute_mapping import (
    AttributeMapping,
    AttributeMappingPlan,
    AttributeMappingSubmission,
    AttributeMappingView,
    AttributeMappingWrite,
    AttributeValueMapping,
    ValueMappingSubmission,
)
from models.shop import Shop
from repositories import AttributeMappingRepository, ShopRepository
from services.attribute_cache_service import AttributeCacheService, get_attribute_cache_service
from utils.text_utils import normalize_label

logger = structlog.get_logger(__name__)


def parse_attribute_type(value: str) -> AttributeType:
    """
    Convert a raw type string to AttributeType.

    Raises:
        InvalidAttributeTypeError: Unknown type
    """
    try:
        return AttributeType(value)
    except ValueError:
        raise InvalidAttributeTypeError(value)


def _snapshot(item: Union[MappableItem, MappableValue]) -> dict[str, Any]:
    """Label and fields of an item at save time, without key and values."""
    return item.model_dump(
        mode="json",
        exclude={"key", "values", "likely_master_language"}
    )


# ===================
# ANNOTATION
# ===================

def annotate_target(
    master_items: list[MappableItem],
    target_items: list[MappableItem]
) -> list[MappableItem]:
    """
    Flag target items and values whose label still equals the master's.

    Labels are compared trimmed and case-folded against the master item
    (or master value) with the same key. Returns annotated copies.
    """
    master_by_key = {item.key: item for item in master_items}
    annotated = []

    for item in target_items:
        copy = item.model_copy(deep=True)
        master = master_by_key.get(item.key)

        label = normalize_label(copy.label)
        copy.likely_master_language = bool(
            master is not None and label and label == normalize_label(master.label)
        )

        master_values = (
            {v.key: normalize_label(v.label) for v in master.values}
            if master is not None else {}
        )
        for value in copy.values:
            value_label = normalize_label(value.label)
            value.likely_master_language = bool(
                value_label and master_values.get(value.key) == value_label
            )

        annotated.append(copy)

    return annotated


# ===================
# SAVE PLANNING
# ===================

def _build_value_mappings(
    master_item: MappableItem,
    target_item: MappableItem,
    submitted: list[ValueMappingSubmission]
) -> list[AttributeValueMapping]:
    """Value rows for one mapping; unknown keys skipped, first target use wins."""
    master_values = master_item.values_by_key()
    target_values = target_item.values_by_key()
    used: set[str] = set()
    rows = []

    for entry in submitted:
        master_value = master_values.get(entry.master_key) if entry.master_key else None
        if master_value is None:
            continue

        target_key = entry.target_key
        target_value = target_values.get(target_key) if target_key else None
        if target_value is None or target_key in used:
            continue

        used.add(target_key)
        rows.append(AttributeValueMapping(
            master_value_key=master_value.key,
            master_value_label=master_value.label,
            target_value_key=target_value.key,
            target_value_label=target_value.label,
            meta={"master": _snapshot(master_value), "target": _snapshot(target_value)},
        ))

    return rows


def plan_save(
    master_shop_id: int,
    target_shop_id: int,
    attribute_type: AttributeType,
    master_items: dict[str, MappableItem],
    target_items: dict[str, MappableItem],
    existing_rows: list[AttributeMapping],
    submissions: list[AttributeMappingSubmission]
) -> AttributeMappingPlan:
    """
    Compute the complete change set of a save without touching storage.

    Submissions are applied in order against a working copy of the
    stored mappings:
        1. unknown master keys are skipped
        2. an empty target key removes the mapping
        3. unknown target keys are skipped
        4. a target key owned by another master key is taken over
        5. the mapping is (re)written with fresh label snapshots
        6. a supplied value list rebuilds the value mappings
        7. stored mappings not submitted at all are removed
    """
    scope = {
        "master_shop_id": master_shop_id,
        "target_shop_id": target_shop_id,
        "type": attribute_type.value,
    }

    working: dict[str, AttributeMappingWrite] = {
        row.master_key: AttributeMappingWrite(
            master_key=row.master_key,
            master_label=row.master_label,
            target_key=row.target_key,
            target_label=row.target_label,
            meta=row.meta,
        )
        for row in existing_rows
    }
    owner: dict[str, str] = {
        write.target_key: master_key
        for master_key, write in working.items()
        if write.target_key
    }
    submitted: set[str] = set()
    dropped: set[str] = set()

    def release(master_key: str) -> None:
        write = working.pop(master_key)
        if write.target_key and owner.get(write.target_key) == master_key:
            del owner[write.target_key]
        dropped.add(master_key)

    for entry in submissions:
        master_key = entry.master_key
        master_item = master_items.get(master_key)
        if master_item is None:
            logger.warning("stale_master_key_skipped", master_key=master_key, **scope)
            continue

        target_key = entry.target_key
        if not target_key:
            if master_key in working:
                release(master_key)
            continue

        target_item = target_items.get(target_key)
        if target_item is None:
            logger.warning(
                "unknown_target_key_skipped",
                master_key=master_key,
                target_key=target_key,
                **scope
            )
            continue

        current_owner = owner.get(target_key)
        if current_owner is not None and current_owner != master_key and current_owner in working:
            logger.warning(
                "attribute_target_reassigned",
                target_key=target_key,
                previous_master_key=current_owner,
                master_key=master_key,
                **scope
            )
            release(current_owner)

        previous = working.get(master_key)
        if previous is not None and previous.target_key and owner.get(previous.target_key) == master_key:
            del owner[previous.target_key]

        if not attribute_type.supports_values:
            values: Optional[list[AttributeValueMapping]] = []
        elif entry.values is not None:
            values = _build_value_mappings(master_item, target_item, entry.values)
        elif master_key in dropped:
            # Removed earlier in this submission, so its stored values are gone too
            values = []
        else:
            values = previous.values if previous is not None else None

        working[master_key] = AttributeMappingWrite(
            master_key=master_key,
            master_label=master_item.label,
            target_key=target_key,
            target_label=target_item.label,
            meta={"master": _snapshot(master_item), "target": _snapshot(target_item)},
            values=values,
        )
        owner[target_key] = master_key
        submitted.add(master_key)

    final = [write for key, write in working.items() if key in submitted]
    final_keys = {write.master_key for write in final}

    plan = AttributeMappingPlan(
        master_shop_id=master_shop_id,
        target_shop_id=target_shop_id,
        type=attribute_type,
        delete_master_keys=[row.master_key for row in existing_rows if row.master_key not in final_keys],
        upserts=final,
    )
    validate_plan(plan)
    return plan


def validate_plan(plan: AttributeMappingPlan) -> None:
    """
    Check the uniqueness invariants of a plan before it is committed.

    Raises:
        ValidationError: Plan would violate an invariant
    """
    scope = {
        "master_shop_id": plan.master_shop_id,
        "target_shop_id": plan.target_shop_id,
        "type": plan.type.value,
    }

    seen_masters: set[str] = set()
    seen_targets: set[str] = set()

    for write in plan.upserts:
        if write.master_key in seen_masters:
            raise ValidationError(
                "Master key appears twice in the save plan",
                code="ATTRIBUTE_MAPPING_DUPLICATE_MASTER",
                details={"master_key": write.master_key, **scope}
            )
        seen_masters.add(write.master_key)

        if write.target_key:
            if write.target_key in seen_targets:
                raise ValidationError(
                    "Target key is claimed by more than one master key",
                    code="ATTRIBUTE_MAPPING_DUPLICATE_TARGET",
                    details={"target_key": write.target_key, **scope}
                )
            seen_targets.add(write.target_key)

        used_values: set[str] = set()
        for value in write.values or []:
            if value.target_value_key and value.target_value_key in used_values:
                raise ValidationError(
                    "Target value key is used twice within one mapping",
                    code="ATTRIBUTE_MAPPING_DUPLICATE_TARGET_VALUE",
                    details={
                        "master_key": write.master_key,
                        "target_value_key": value.target_value_key,
                        **scope
                    }
                )
            if value.target_value_key:
                used_values.add(value.target_value_key)


# ===================
# SERVICE
# ===================

class AttributeMappingService:
    """
    Attribute mapping business logic.

    Handles view building, target annotation and full-set saves.
    """

    def __init__(
        self,
        cache_service: Optional[AttributeCacheService] = None,
        mapping_repository: Optional[AttributeMappingRepository] = None,
        shop_repository: Optional[ShopRepository] = None
    ):
        self.cache = cache_service or get_attribute_cache_service()
        self.repository = mapping_repository or AttributeMappingRepository(db=get_admin_client())
        self.shops = shop_repository or ShopRepository()

    def _resolve_scope(self, master_shop_id: int, target_shop_id: int) -> tuple[Shop, Shop]:
        if master_shop_id == target_shop_id:
            raise ValidationError(
                "Target shop must differ from master shop",
                code="ATTRIBUTE_MAPPING_SAME_SHOP",
                details={"master_shop_id": master_shop_id, "target_shop_id": target_shop_id}
            )
        return self.shops.get(master_shop_id), self.shops.get(target_shop_id)

    def _build_view(
        self,
        master_shop: Shop,
        target_shop: Shop,
        attribute_type: AttributeType,
        master_items: list[MappableItem],
        target_items: list[MappableItem]
    ) -> AttributeMappingView:
        mappings = self.repository.list_for_scope(master_shop.id, target_shop.id, attribute_type)

        return AttributeMappingView(
            master_shop_id=master_shop.id,
            target_shop_id=target_shop.id,
            type=attribute_type,
            master=master_items,
            target=annotate_target(master_items, target_items),
            mappings=mappings,
        )

    def fetch_view(
        self,
        master_shop_id: int,
        target_shop_id: int,
        attribute_type: AttributeType
    ) -> AttributeMappingView:
        """
        Get master items, annotated target items and stored mappings.

        Items of both shops are fetched live and merged over their cache.
        """
        master_shop, target_shop = self._resolve_scope(master_shop_id, target_shop_id)

        logger.info(
            "building_attribute_mapping_view",
            master_shop_id=master_shop_id,
            target_shop_id=target_shop_id,
            type=attribute_type.value
        )

        master_items = self.cache.load_items(master_shop, attribute_type)
        target_items = self.cache.load_items(target_shop, attribute_type)

        return self._build_view(master_shop, target_shop, attribute_type, master_items, target_items)

    def save(
        self,
        master_shop_id: int,
        target_shop_id: int,
        attribute_type: AttributeType,
        submissions: list[AttributeMappingSubmission]
    ) -> AttributeMappingView:
        """
        Replace the mapping set of a scope with the submitted set.

        Concurrent saves on the same scope are last-write-wins.

        Returns:
            Refreshed view of the scope
        """
        master_shop, target_shop = self._resolve_scope(master_shop_id, target_shop_id)
        scope = {
            "master_shop_id": master_shop_id,
            "target_shop_id": target_shop_id,
            "type": attribute_type.value,
        }

        logger.info("saving_attribute_mappings", submitted=len(submissions), **scope)

        master_items = self.cache.load_items(master_shop, attribute_type)
        target_items = self.cache.load_items(target_shop, attribute_type)
        existing = self.repository.list_for_scope(master_shop_id, target_shop_id, attribute_type)

        plan = plan_save(
            master_shop_id,
            target_shop_id,
            attribute_type,
            {item.key: item for item in master_items},
            {item.key: item for item in target_items},
            existing,
            submissions,
        )
        self.repository.apply_plan(plan)

        logger.info(
            "attribute_mappings_saved",
            upserted=len(plan.upserts),
            deleted=len(plan.delete_master_keys),
            **scope
        )

        return self._build_view(master_shop, target_shop, attribute_type, master_items, target_items)


# Singleton instance
_service: Optional[AttributeMappingService] = None


def get_attribute_mapping_service() -> AttributeMappingService:
    """Get or create AttributeMappingService instance."""
    global _service
    if _service is None:
        _service = AttributeMappingService()
    return _service
