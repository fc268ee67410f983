"""
In-memory collaborators for service tests.

Each fake mirrors the public methods of the real repository or client
it replaces, keeping data in plain dicts so tests can inspect state.
"""

from copy import deepcopy
from typing import Any, Optional

from exceptions import (
    CategoryNodeNotFoundError,
    DatabaseError,
    MasterShopNotFoundError,
    ProductNotFoundError,
    ShopCategoryNodeNotFoundError,
    ShopNotFoundError,
    UpstreamUnavailableError,
)
from models.attribute import AttributeType, MappableItem
from models.attribute_mapping import AttributeMapping, AttributeMappingPlan, AttributeValueMapping
from models.category import (
    CanonicalCategory,
    CategoryMapping,
    CategoryNode,
    ShopCategoryNode,
    ShopCategoryRef,
)
from models.product import Product, ProductShopOverlay
from models.shop import Shop


# ===================
# REPOSITORIES
# ===================

class FakeShopRepository:
    def __init__(self, shops: list[Shop]):
        self.shops = {shop.id: shop for shop in shops}

    def find(self, shop_id: int) -> Optional[Shop]:
        return self.shops.get(shop_id)

    def get(self, shop_id: int) -> Shop:
        shop = self.find(shop_id)
        if shop is None:
            raise ShopNotFoundError(shop_id)
        return shop

    def get_master(self, shop_id: Optional[int] = None) -> Shop:
        masters = sorted(
            (s for s in self.shops.values() if s.is_master and (shop_id is None or s.id == shop_id)),
            key=lambda s: s.id
        )
        if not masters:
            raise MasterShopNotFoundError(shop_id)
        return masters[0]


class FakeSettingsRepository:
    """Stores the attribute cache the same way the shops.settings column does."""

    def __init__(self):
        self.settings: dict[int, dict[str, Any]] = {}
        self.save_calls = 0

    def get_settings(self, shop_id: int) -> dict[str, Any]:
        return deepcopy(self.settings.get(shop_id, {}))

    def save_settings(self, shop_id: int, settings: dict[str, Any]) -> None:
        self.save_calls += 1
        self.settings[shop_id] = deepcopy(settings)

    def get_attribute_cache(self, shop_id: int, attribute_type: AttributeType) -> list[MappableItem]:
        cache = self.get_settings(shop_id).get("attribute_cache") or {}
        return [MappableItem.model_validate(raw) for raw in cache.get(attribute_type.value) or []]

    def save_attribute_cache(
        self,
        shop_id: int,
        entries: dict[AttributeType, list[MappableItem]]
    ) -> None:
        settings = self.get_settings(shop_id)
        cache = dict(settings.get("attribute_cache") or {})
        for attribute_type, items in entries.items():
            cache[attribute_type.value] = [item.to_cache_dict() for item in items]
        settings["attribute_cache"] = cache
        self.save_settings(shop_id, settings)


class FakeAttributeMappingRepository:
    """Applies save plans the way apply_attribute_mapping_plan does."""

    def __init__(self):
        self.rows: dict[tuple, AttributeMapping] = {}
        self.applied_plans: list[AttributeMappingPlan] = []
        self.fail_next = False
        self._next_id = 1

    def list_for_scope(
        self,
        master_shop_id: int,
        target_shop_id: int,
        attribute_type: AttributeType
    ) -> list[AttributeMapping]:
        rows = [
            row for (m, t, ty, _), row in self.rows.items()
            if (m, t, ty) == (master_shop_id, target_shop_id, attribute_type)
        ]
        return [row.model_copy(deep=True) for row in sorted(rows, key=lambda r: r.master_key)]

    def apply_plan(self, plan: AttributeMappingPlan) -> None:
        if self.fail_next:
            self.fail_next = False
            raise DatabaseError("rpc", "simulated failure", {"master_shop_id": plan.master_shop_id})

        self.applied_plans.append(plan)
        scope = (plan.master_shop_id, plan.target_shop_id, plan.type)

        for key in plan.delete_master_keys:
            self.rows.pop((*scope, key), None)

        for write in plan.upserts:
            existing = self.rows.get((*scope, write.master_key))
            row_id = existing.id if existing else self._take_id()

            if write.values is None:
                values = existing.values if existing else []
            else:
                values = [
                    AttributeValueMapping(**{**value.model_dump(), "attribute_mapping_id": row_id})
                    for value in write.values
                ]

            self.rows[(*scope, write.master_key)] = AttributeMapping(
                id=row_id,
                master_shop_id=plan.master_shop_id,
                target_shop_id=plan.target_shop_id,
                type=plan.type,
                master_key=write.master_key,
                master_label=write.master_label,
                target_key=write.target_key,
                target_label=write.target_label,
                meta=write.meta,
                values=values,
            )

    def add(self, mapping: AttributeMapping) -> None:
        if mapping.id is None:
            mapping.id = self._take_id()
        key = (mapping.master_shop_id, mapping.target_shop_id, mapping.type, mapping.master_key)
        self.rows[key] = mapping

    def _take_id(self) -> int:
        row_id = self._next_id
        self._next_id += 1
        return row_id


class FakeCategoryRepository:
    def __init__(
        self,
        canonical: Optional[list[CategoryNode]] = None,
        shop_nodes: Optional[list[ShopCategoryNode]] = None,
        mappings: Optional[list[CategoryMapping]] = None
    ):
        self.canonical = {node.id: node for node in canonical or []}
        self.shop_nodes = {node.id: node for node in shop_nodes or []}
        self.mappings: dict[tuple[str, int], CategoryMapping] = {
            (m.category_node_id, m.shop_id): m for m in mappings or []
        }
        self.upsert_calls = 0

    def list_canonical_nodes(self, master_shop_id: int) -> list[CategoryNode]:
        nodes = [n for n in self.canonical.values() if n.shop_id == master_shop_id]
        return sorted(nodes, key=lambda n: (n.position, n.name))

    def list_canonical_with_mappings(self, master_shop_id: int, shop_id: Optional[int]) -> list[CanonicalCategory]:
        by_node = {m.category_node_id: m for m in self.list_mappings(shop_id)} if shop_id is not None else {}
        return [
            CanonicalCategory(node=node, mapping=by_node.get(node.id))
            for node in self.list_canonical_nodes(master_shop_id)
        ]

    def get_canonical_node(self, node_id: str) -> CategoryNode:
        if node_id not in self.canonical:
            raise CategoryNodeNotFoundError(node_id)
        return self.canonical[node_id]

    def list_shop_nodes(self, shop_id: int) -> list[ShopCategoryNode]:
        nodes = [n for n in self.shop_nodes.values() if n.shop_id == shop_id]
        return sorted(nodes, key=lambda n: (n.position, n.name))

    def page_shop_nodes(
        self,
        shop_id: int,
        page: int,
        per_page: int,
        search: Optional[str] = None
    ) -> tuple[list[ShopCategoryNode], int]:
        nodes = [n for n in self.shop_nodes.values() if n.shop_id == shop_id]
        if search:
            term = search.strip().casefold()
            nodes = [
                n for n in nodes
                if term in n.name.casefold()
                or term in (n.slug or "").casefold()
                or term in (n.path or "").casefold()
            ]
        nodes.sort(key=lambda n: (n.path or "", n.name))
        offset = (page - 1) * per_page
        return nodes[offset:offset + per_page], len(nodes)

    def get_shop_node(self, node_id: str) -> ShopCategoryNode:
        if node_id not in self.shop_nodes:
            raise ShopCategoryNodeNotFoundError(node_id)
        return self.shop_nodes[node_id]

    def update_shop_node_content(
        self,
        node_id: str,
        description: Optional[str],
        second_description: Optional[str]
    ) -> ShopCategoryNode:
        node = self.get_shop_node(node_id).model_copy(update={
            "description": description,
            "second_description": second_description,
        })
        self.shop_nodes[node_id] = node
        return node

    def list_mappings(self, shop_id: int) -> list[CategoryMapping]:
        return [self._with_shop_category(m) for m in self.mappings.values() if m.shop_id == shop_id]

    def upsert_mapping(self, mapping: CategoryMapping) -> CategoryMapping:
        self.upsert_calls += 1
        key = (mapping.category_node_id, mapping.shop_id)
        existing = self.mappings.get(key)
        stored = mapping.model_copy(update={
            "id": existing.id if existing else len(self.mappings) + 1,
            "shop_category": None,
        })
        self.mappings[key] = stored
        return self._with_shop_category(stored)

    def _with_shop_category(self, mapping: CategoryMapping) -> CategoryMapping:
        node = self.shop_nodes.get(mapping.shop_category_node_id) if mapping.shop_category_node_id else None
        ref = ShopCategoryRef(
            id=node.id, name=node.name, slug=node.slug, path=node.path, remote_guid=node.remote_guid
        ) if node else None
        return mapping.model_copy(update={"shop_category": ref})


class FakeProductRepository:
    def __init__(self, products: Optional[list[Product]] = None):
        self.products = {p.id: p for p in products or []}
        self.base_payload_writes: list[str] = []
        self.overlay_writes: list[tuple[str, int]] = []

    def get(self, product_id: str) -> Product:
        if product_id not in self.products:
            raise ProductNotFoundError(product_id)
        return self.products[product_id].model_copy(deep=True)

    def iter_master_products(self, master_shop_id: int, search: Optional[str] = None, chunk_size: int = 100):
        products = [p for p in self.products.values() if p.shop_id == master_shop_id]
        if search:
            term = search.strip().casefold()
            products = [
                p for p in products
                if term in p.sku.casefold() or any(term in c.casefold() for c in p.variant_codes)
            ]
        for product in sorted(products, key=lambda p: (p.sku, p.id)):
            yield product.model_copy(deep=True)

    def save_base_payload(self, product_id: str, base_payload: dict[str, Any]) -> None:
        self.base_payload_writes.append(product_id)
        product = self.products[product_id]
        self.products[product_id] = product.model_copy(update={"base_payload": deepcopy(base_payload)})

    def save_overlay_data(self, product_id: str, shop_id: int, data: dict[str, Any]) -> ProductShopOverlay:
        self.overlay_writes.append((product_id, shop_id))
        product = self.products[product_id]
        overlay = ProductShopOverlay(product_id=product_id, shop_id=shop_id, data=deepcopy(data))
        overlays = [o for o in product.overlays if o.shop_id != shop_id] + [overlay]
        self.products[product_id] = product.model_copy(update={"overlays": overlays})
        return overlay


# ===================
# REMOTE CLIENTS
# ===================

class ScriptedRemoteClient:
    """
    Remote catalog returning prepared payloads and recording writes.

    Set `fail_on` to a method name to make that method raise
    UpstreamUnavailableError.
    """

    def __init__(self):
        self.listings: dict[tuple[int, AttributeType], dict] = {}
        self.products: dict[tuple[int, str], dict] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def set_listing(self, shop_id: int, attribute_type: AttributeType, payload: dict) -> None:
        self.listings[(shop_id, attribute_type)] = payload

    def _check(self, method: str, shop: Shop, *args) -> None:
        self.calls.append((method, shop.id, *args))
        if method in self.fail_on:
            raise UpstreamUnavailableError("shoptet", f"{method} failed", {"shop_id": shop.id})

    def list_flags(self, shop: Shop) -> dict:
        self._check("list_flags", shop)
        return deepcopy(self.listings.get((shop.id, AttributeType.FLAGS), {"data": {"flags": []}}))

    def list_filtering_parameters(self, shop: Shop) -> dict:
        self._check("list_filtering_parameters", shop)
        return deepcopy(self.listings.get(
            (shop.id, AttributeType.FILTERING_PARAMETERS),
            {"data": {"filteringParameters": []}}
        ))

    def list_variant_parameters(self, shop: Shop) -> dict:
        self._check("list_variant_parameters", shop)
        return deepcopy(self.listings.get((shop.id, AttributeType.VARIANTS), {"data": {"parameters": []}}))

    def get_product(self, shop: Shop, guid: str, include: Optional[str] = None) -> dict:
        self._check("get_product", shop, guid, include)
        return deepcopy(self.products.get((shop.id, guid), {}))

    def update_product(self, shop: Shop, guid: str, payload: dict) -> dict:
        self._check("update_product", shop, guid, payload)
        return {}

    def update_category(self, shop: Shop, guid: str, payload: dict) -> dict:
        self._check("update_category", shop, guid, payload)
        return {}

    def calls_to(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]


class ScriptedOracle:
    """Suggestion oracle answering with prepared mapping lists."""

    def __init__(self, category_answer: Optional[list[dict]] = None, attribute_answer: Optional[list[dict]] = None):
        self.category_answer = category_answer or []
        self.attribute_answer = attribute_answer or []
        self.category_payloads: list[dict] = []
        self.attribute_payloads: list[tuple[AttributeType, dict]] = []

    def suggest_category_mappings(self, payload: dict) -> list[dict]:
        self.category_payloads.append(payload)
        return deepcopy(self.category_answer)

    def suggest_attribute_mappings(self, attribute_type: AttributeType, payload: dict) -> list[dict]:
        self.attribute_payloads.append((attribute_type, payload))
        return deepcopy(self.attribute_answer)
