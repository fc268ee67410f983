"""
Default category validator.

Sweeps all master products and reports those whose default category in
a target shop does not match what the confirmed category mappings say
it should be.
"""

from typing import Any, Optional
import re
import structlog

from config import settings
from models.base import PageMeta
from models.category import CategoryNode, MappingStatus, ShopCategoryNode
from models.product import (
    DEFAULT_CATEGORY_KEY,
    DefaultCategoryIssue,
    DefaultCategoryRef,
    DefaultCategoryValidation,
    IssueReason,
    Product,
)
from repositories import CategoryRepository, ProductRepository, ShopRepository
from services.category_tree_service import build_path

logger = structlog.get_logger(__name__)

MAX_PER_PAGE = 200


CATEGORY_LIST_KEYS = (
    "allCategories",
    "categories",
    "categoryAssignments",
    "category",
    "secondaryCategories",
    "categoriesAssignments",
    "categoryGuids",
    "categoriesGuids",
    "categoriesPaths",
)


def default_category_guid(payload: Optional[dict[str, Any]]) -> Optional[str]:
    """GUID of the defaultCategory document in a payload, if any."""
    default = (payload or {}).get(DEFAULT_CATEGORY_KEY)
    if not isinstance(default, dict):
        return None
    guid = default.get("guid") or default.get("remoteGuid")
    return str(guid) if guid else None


def split_path_segments(path: Optional[str]) -> list[str]:
    """Split "A > B > C" (or "A / B / C") into trimmed segments."""
    if not isinstance(path, str) or not path.strip():
        return []

    segments = re.split(r"\s*>\s*", path.strip())
    if len(segments) <= 1:
        segments = re.split(r"\s*/\s*", path.strip())

    return [segment.strip() for segment in segments if segment.strip()]


def _same_segments(a: list[str], b: list[str]) -> bool:
    return len(a) == len(b) and all(x.casefold() == y.casefold() for x, y in zip(a, b))


def assigned_categories(
    payload: dict[str, Any],
    shop_by_guid: dict[str, ShopCategoryNode]
) -> list[DefaultCategoryRef]:
    """
    Categories referenced anywhere in an overlay payload.

    Entries may be GUID strings, path strings or category objects; GUIDs
    of known shop nodes are completed with the node's name and path.
    """
    found: dict[str, DefaultCategoryRef] = {}

    def add(guid: Optional[str], name: Optional[str], path: Optional[str]) -> None:
        node = shop_by_guid.get(guid) if guid else None
        if node is not None:
            path = path or node.path
            name = name or node.name
        path = path.strip() if isinstance(path, str) else None
        if not guid and not path:
            return
        key = f"{guid or ''}|{path or ''}".casefold()
        found.setdefault(key, DefaultCategoryRef(
            id=node.id if node else None,
            guid=guid,
            name=name,
            path=path,
        ))

    def process(entry: Any) -> None:
        if isinstance(entry, str):
            text = entry.strip()
            if not text:
                return
            if ">" in text or "/" in text:
                add(None, None, text)
            else:
                add(text, None, None)
            return

        if not isinstance(entry, dict):
            return

        nested = entry.get("category") if isinstance(entry.get("category"), dict) else {}
        guid = (
            entry.get("guid") or entry.get("remoteGuid") or entry.get("categoryGuid")
            or nested.get("guid") or nested.get("remoteGuid")
        )
        path = (
            entry.get("path") or entry.get("fullPath") or entry.get("categoryPath")
            or nested.get("path") or nested.get("fullPath")
        )
        name = (
            entry.get("name") or entry.get("title") or entry.get("label")
            or nested.get("name") or nested.get("title")
        )
        add(str(guid) if guid else None, name, path)

    for key in CATEGORY_LIST_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            for entry in value:
                process(entry)
        elif value is not None:
            process(value)

    if isinstance(payload.get(DEFAULT_CATEGORY_KEY), dict):
        process(payload[DEFAULT_CATEGORY_KEY])

    return list(found.values())


def find_deeper_category(
    default_guid: Optional[str],
    default_path: Optional[str],
    payload: dict[str, Any],
    shop_by_guid: dict[str, ShopCategoryNode]
) -> Optional[DefaultCategoryRef]:
    """
    Deepest assigned category lying below the default category's path.

    Ties on depth go to the alphabetically first path.
    """
    default_segments = split_path_segments(default_path)
    if not default_segments:
        return None

    candidates = []
    for candidate in assigned_categories(payload, shop_by_guid):
        if candidate.guid and default_guid and candidate.guid.casefold() == default_guid.casefold():
            continue

        segments = split_path_segments(candidate.path)
        if len(segments) <= len(default_segments):
            continue
        if not _same_segments(default_segments, segments[:len(default_segments)]):
            continue

        candidates.append((segments, candidate))

    if not candidates:
        return None

    candidates.sort(key=lambda pair: (-len(pair[0]), pair[1].path or ""))
    return candidates[0][1]


class DefaultCategoryValidator:
    """
    Default category consistency checks.

    Only confirmed mappings whose shop node still exists are trusted.
    """

    def __init__(
        self,
        product_repository: Optional[ProductRepository] = None,
        category_repository: Optional[CategoryRepository] = None,
        shop_repository: Optional[ShopRepository] = None,
        chunk_size: Optional[int] = None
    ):
        self.products = product_repository or ProductRepository()
        self.categories = category_repository or CategoryRepository()
        self.shops = shop_repository or ShopRepository()
        self.chunk_size = chunk_size or settings.validator_chunk_size

    def validate(
        self,
        master_shop_id: int,
        target_shop_id: int,
        page: int = 1,
        per_page: int = 50,
        search: Optional[str] = None,
        all: bool = False
    ) -> DefaultCategoryValidation:
        """
        Find products with an inconsistent default category in a target shop.

        Args:
            master_shop_id: Master shop whose products are checked
            target_shop_id: Shop whose overlays are compared
            page: Page of issues to return (1-based)
            per_page: Issues per page, clamped to 1..200
            search: Matches SKU or variant code
            all: Return every issue instead of one page

        Returns:
            Issues of the page, paging meta, and issue counts by reason
            over the whole filtered product set
        """
        page = max(1, page)
        per_page = max(1, min(per_page, MAX_PER_PAGE))

        master_shop = self.shops.get_master(master_shop_id)
        target_shop = self.shops.get(target_shop_id)

        logger.info(
            "validating_default_categories",
            master_shop_id=master_shop.id,
            target_shop_id=target_shop.id,
            page=page,
            per_page=per_page,
            search=search
        )

        canonical_nodes = self.categories.list_canonical_nodes(master_shop.id)
        canonical_by_id = {node.id: node for node in canonical_nodes}
        canonical_by_guid = {node.guid: node for node in canonical_nodes}

        shop_nodes = self.categories.list_shop_nodes(target_shop.id)
        shop_by_id = {node.id: node for node in shop_nodes}
        shop_by_guid = {node.remote_guid: node for node in shop_nodes if node.remote_guid}

        expected_by_guid: dict[str, ShopCategoryNode] = {}
        for mapping in self.categories.list_mappings(target_shop.id):
            if mapping.status != MappingStatus.CONFIRMED:
                continue
            canonical = canonical_by_id.get(mapping.category_node_id)
            shop_node = shop_by_id.get(mapping.shop_category_node_id) if mapping.shop_category_node_id else None
            if canonical is None or shop_node is None:
                continue
            if not shop_node.remote_guid:
                logger.warning(
                    "mapped_shop_category_without_guid",
                    category_node_id=canonical.id,
                    shop_category_node_id=shop_node.id
                )
                continue
            expected_by_guid[canonical.guid] = shop_node

        offset = (page - 1) * per_page
        issues: list[DefaultCategoryIssue] = []
        stats: dict[str, int] = {}
        total = 0
        checked = 0

        for product in self.products.iter_master_products(master_shop.id, search, self.chunk_size):
            checked += 1
            issue = self._evaluate(
                product,
                target_shop.id,
                canonical_by_guid,
                canonical_by_id,
                expected_by_guid,
                shop_by_guid,
                shop_by_id
            )
            if issue is None:
                continue

            total += 1
            stats[issue.reason.value] = stats.get(issue.reason.value, 0) + 1

            if all or offset < total <= offset + per_page:
                issues.append(issue)

        logger.info(
            "default_categories_validated",
            master_shop_id=master_shop.id,
            target_shop_id=target_shop.id,
            checked=checked,
            issues=total,
            stats=stats
        )

        return DefaultCategoryValidation(
            data=issues,
            meta=PageMeta.create(total, page, per_page),
            stats=stats,
        )

    def _evaluate(
        self,
        product: Product,
        target_shop_id: int,
        canonical_by_guid: dict[str, CategoryNode],
        canonical_by_id: dict[str, CategoryNode],
        expected_by_guid: dict[str, ShopCategoryNode],
        shop_by_guid: dict[str, ShopCategoryNode],
        shop_by_id: dict[str, ShopCategoryNode]
    ) -> Optional[DefaultCategoryIssue]:
        """Issue for one product, or None when it is consistent."""
        master_guid = default_category_guid(product.base_payload)
        canonical = canonical_by_guid.get(master_guid) if master_guid else None
        expected = expected_by_guid.get(master_guid) if master_guid else None

        overlay = product.overlay_for(target_shop_id)
        overlay_data = overlay.data if overlay else {}
        actual_guid = default_category_guid(overlay_data)
        recommended: Optional[DefaultCategoryRef] = None

        if not master_guid:
            reason = IssueReason.MISSING_MASTER_CATEGORY
        elif expected is None:
            reason = IssueReason.UNMAPPED_CATEGORY
        elif not actual_guid or actual_guid != expected.remote_guid:
            reason = IssueReason.MISMATCHED_CATEGORY
        else:
            actual_node = shop_by_guid.get(actual_guid)
            default_path = (
                ((actual_node.path or build_path(actual_node, shop_by_id)) if actual_node else None)
                or (overlay_data.get(DEFAULT_CATEGORY_KEY) or {}).get("path")
                or expected.path
            )
            recommended = find_deeper_category(actual_guid, default_path, overlay_data, shop_by_guid)
            if recommended is None:
                return None
            reason = IssueReason.DEFAULT_NOT_DEEPEST

        master_default = (product.base_payload or {}).get(DEFAULT_CATEGORY_KEY) or {}
        master_category = None
        if master_guid:
            master_category = DefaultCategoryRef(
                id=canonical.id if canonical else None,
                guid=master_guid,
                name=canonical.name if canonical else master_default.get("name"),
                path=build_path(canonical, canonical_by_id) if canonical else master_default.get("path"),
            )

        expected_category = None
        if expected is not None:
            expected_category = DefaultCategoryRef(
                id=expected.id,
                guid=expected.remote_guid,
                name=expected.name,
                path=expected.path or build_path(expected, shop_by_id),
            )

        actual_category = None
        actual_default = overlay_data.get(DEFAULT_CATEGORY_KEY) or {}
        if actual_guid or actual_default:
            actual_node = shop_by_guid.get(actual_guid) if actual_guid else None
            actual_category = DefaultCategoryRef(
                id=actual_node.id if actual_node else None,
                guid=actual_guid,
                name=actual_node.name if actual_node else actual_default.get("name"),
                path=(actual_node.path or actual_node.name) if actual_node else actual_default.get("path"),
            )

        return DefaultCategoryIssue(
            product_id=product.id,
            sku=product.sku,
            name=(product.base_payload or {}).get("name"),
            codes=product.variant_codes,
            reason=reason,
            master_category=master_category,
            expected_category=expected_category,
            actual_category=actual_category,
            recommended_category=recommended,
        )


# Singleton instance
_validator: Optional[DefaultCategoryValidator] = None


def get_default_category_validator() -> DefaultCategoryValidator:
    """Get or create DefaultCategoryValidator instance."""
    global _validator
    if _validator is None:
        _validator = DefaultCategoryValidator()
    return _validator
