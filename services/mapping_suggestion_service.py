"""
Mapping suggestion service.

Prepares bounded item sets for the suggestion oracle and keeps only the
parts of its answer that refer to real items. Suggestions are returned
to the operator and never persisted.
"""

from typing import Any, Optional
import structlog

from exceptions import ValidationError
from integrations.claude_oracle import SuggestionOracle, get_suggestion_oracle
from models.attribute import AttributeType, MappableItem
from models.category import CategoryNode, ShopCategoryNode
from models.shop import Shop
from models.suggestion import (
    AttributeSuggestionResponse,
    CategorySuggestion,
    SuggestedAttributeMapping,
    SuggestedCanonical,
    SuggestedShopCategory,
    SuggestedValueMapping,
)
from repositories import CategoryRepository, ShopRepository
from services.attribute_mapping_service import AttributeMappingService, get_attribute_mapping_service
from services.category_tree_service import build_path, node_depth
from utils.text_utils import fold, keywords, similarity, truncate

logger = structlog.get_logger(__name__)

# Attribute payload limits
MAX_ATTRIBUTES = 30
MAX_VALUES = 20

# Category payload limits
MAX_CANONICAL = 120
MAX_SHOP_NODES = 220
MAX_CANDIDATES = 6
MAX_INSTRUCTIONS = 500
KEYWORD_LIMIT = 6

# Candidate scoring
NAME_WEIGHT = 0.55
PATH_WEIGHT = 0.35
KEYWORD_WEIGHT = 0.2
DEPTH_PENALTY = 0.15
MAX_DEPTH_DIFFERENCE = 2
MIN_CANDIDATE_SCORE = 0.15
DEFAULT_SIMILARITY = 0.5

CATEGORY_INSTRUCTIONS = [
    "Match canonical categories to target categories.",
    "Respect hierarchy depth: prefer matches with depth difference <= 1.",
    "Only map if meaning is very close even across languages (translate mentally).",
    "If no suitable match exists, return null for target_id.",
    "Never suggest categories conflicting with user instructions.",
    "Use the candidates array for each canonical category as the allowed target list.",
    "Provide a short reason referencing matching keywords, hierarchy, or instructions.",
]


def _clamp_confidence(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return round(max(0.0, min(number, 1.0)), 4)


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ===================
# ATTRIBUTE PAYLOAD
# ===================

def attribute_payload_items(
    items: list[MappableItem],
    include_values: bool,
    strip_master_language: bool
) -> list[dict[str, Any]]:
    """
    Bounded item list for the oracle.

    Takes the first MAX_ATTRIBUTES items and MAX_VALUES values per item.
    With strip_master_language, items and values whose label still
    matches the master label are withheld.
    """
    payload = []

    for item in items[:MAX_ATTRIBUTES]:
        if strip_master_language and item.likely_master_language:
            continue

        entry: dict[str, Any] = {"key": item.key, "label": item.label}
        if item.extra.get("code"):
            entry["code"] = item.extra["code"]

        if include_values and item.values:
            entry["values"] = [
                {"key": value.key, "label": value.label}
                for value in item.values[:MAX_VALUES]
                if not (strip_master_language and value.likely_master_language)
            ]
            if len(item.values) > MAX_VALUES:
                entry["value_truncated"] = True

        entry["likely_master_language"] = item.likely_master_language
        payload.append(entry)

    return payload


def sanitize_attribute_suggestions(
    raw: list[dict],
    master_items: list[MappableItem],
    target_items: list[MappableItem],
    supports_values: bool
) -> list[SuggestedAttributeMapping]:
    """
    Keep only suggestions that point at existing items.

    Unknown master keys drop the entry, unknown target keys become null.
    Each master key and each target key is used once (first wins); within
    a mapping each target value key is used once (first wins).
    """
    masters = {item.key: item for item in master_items}
    targets = {item.key: item for item in target_items}

    seen_masters: set[str] = set()
    used_targets: set[str] = set()
    result: list[SuggestedAttributeMapping] = []

    for entry in raw:
        master_key = _text_or_none(entry.get("master_key"))
        if not master_key or master_key not in masters or master_key in seen_masters:
            continue
        seen_masters.add(master_key)

        target_key = _text_or_none(entry.get("target_key"))
        if target_key and (target_key not in targets or target_key in used_targets):
            target_key = None

        values: list[SuggestedValueMapping] = []
        if supports_values and target_key:
            master_values = masters[master_key].values_by_key()
            target_values = targets[target_key].values_by_key()
            used_values: set[str] = set()

            raw_values = entry.get("values")
            for value_entry in raw_values if isinstance(raw_values, list) else []:
                if not isinstance(value_entry, dict):
                    continue
                master_value_key = _text_or_none(value_entry.get("master_key"))
                target_value_key = _text_or_none(value_entry.get("target_key"))
                if not master_value_key or master_value_key not in master_values:
                    continue
                if not target_value_key or target_value_key not in target_values:
                    continue
                if target_value_key in used_values:
                    continue
                used_values.add(target_value_key)
                values.append(SuggestedValueMapping(
                    master_key=master_value_key,
                    target_key=target_value_key,
                ))

        if target_key:
            used_targets.add(target_key)

        result.append(SuggestedAttributeMapping(
            master_key=master_key,
            target_key=target_key,
            values=values,
            confidence=_clamp_confidence(entry.get("confidence")),
            reason=_text_or_none(entry.get("reason")),
        ))

    return result


# ===================
# CATEGORY CANDIDATES
# ===================

class _ShopEntry:
    """Pre-computed comparison data of one shop category."""

    def __init__(self, node: ShopCategoryNode, nodes_by_id: dict[str, ShopCategoryNode]):
        self.node = node
        self.name = truncate(node.name)
        self.path = truncate(node.path or build_path(node, nodes_by_id))
        self.depth = node_depth(node, nodes_by_id)
        self.folded_name = fold(node.name)
        self.folded_path = fold(self.path)
        self.keywords = keywords(f"{node.name} {self.path or ''}", KEYWORD_LIMIT)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.node.id,
            "name": self.name,
            "path": self.path,
            "depth": self.depth,
            "parent_id": self.node.parent_id,
            "remote_guid": self.node.remote_guid,
            "keywords": self.keywords,
        }


def score_candidate(
    name: str,
    path: Optional[str],
    depth: int,
    canonical_keywords: list[str],
    entry: _ShopEntry
) -> Optional[float]:
    """
    Candidate score of a shop category for a canonical node.

    Weighted name similarity, path similarity and keyword overlap, minus
    0.15 for every level of depth difference beyond the first. Returns
    None for depth differences above 2 and scores below 0.15.
    """
    depth_difference = abs(entry.depth - depth)
    if depth_difference > MAX_DEPTH_DIFFERENCE:
        return None

    name_score = similarity(fold(name), entry.folded_name)
    path_score = similarity(fold(path), entry.folded_path)

    overlap = 0.0
    if canonical_keywords and entry.keywords:
        shared = set(canonical_keywords) & set(entry.keywords)
        overlap = len(shared) / len(canonical_keywords)

    score = name_score * NAME_WEIGHT + path_score * PATH_WEIGHT + overlap * KEYWORD_WEIGHT
    if depth_difference > 1:
        score -= DEPTH_PENALTY * (depth_difference - 1)

    if score < MIN_CANDIDATE_SCORE:
        return None
    return round(max(score, 0.0), 4)


def build_candidates(
    node: CategoryNode,
    path: Optional[str],
    depth: int,
    shop_entries: list[_ShopEntry]
) -> list[dict[str, Any]]:
    """Best-scoring shop categories for one canonical node, highest first."""
    canonical_keywords = keywords(f"{node.name} {path or ''}", KEYWORD_LIMIT)
    candidates = []

    for entry in shop_entries:
        score = score_candidate(node.name, path, depth, canonical_keywords, entry)
        if score is None:
            continue
        candidates.append({
            "id": entry.node.id,
            "name": entry.name,
            "path": entry.path,
            "depth": entry.depth,
            "score": score,
        })

    candidates.sort(key=lambda c: c["score"], reverse=True)
    return candidates[:MAX_CANDIDATES]


# ===================
# SERVICE
# ===================

class MappingSuggestionService:
    """AI suggestions for attribute and category mappings."""

    def __init__(
        self,
        mapping_service: Optional[AttributeMappingService] = None,
        category_repository: Optional[CategoryRepository] = None,
        shop_repository: Optional[ShopRepository] = None,
        oracle: Optional[SuggestionOracle] = None
    ):
        self.mappings = mapping_service or get_attribute_mapping_service()
        self.categories = category_repository or CategoryRepository()
        self.shops = shop_repository or ShopRepository()
        self.oracle = oracle or get_suggestion_oracle()

    def suggest_attribute_mappings(
        self,
        master_shop_id: int,
        target_shop_id: int,
        attribute_type: AttributeType
    ) -> AttributeSuggestionResponse:
        """
        Ask the oracle to pair master and target attributes of one type.

        Returns:
            Master items, annotated target items and sanitized suggestions

        Raises:
            ConfigurationError: Oracle credentials missing
            UpstreamUnavailableError: Oracle failed or answered garbage
        """
        view = self.mappings.fetch_view(master_shop_id, target_shop_id, attribute_type)
        master_shop = self.shops.get(master_shop_id)
        target_shop = self.shops.get(target_shop_id)
        supports_values = attribute_type.supports_values

        payload = {
            "type": attribute_type.value,
            "master_shop": self._shop_payload(master_shop),
            "target_shop": self._shop_payload(target_shop),
            "master_attributes": attribute_payload_items(view.master, supports_values, False),
            "target_attributes": attribute_payload_items(view.target, supports_values, True),
        }

        logger.info(
            "suggesting_attribute_mappings",
            master_shop_id=master_shop_id,
            target_shop_id=target_shop_id,
            type=attribute_type.value,
            master_count=len(payload["master_attributes"]),
            target_count=len(payload["target_attributes"])
        )

        raw = self.oracle.suggest_attribute_mappings(attribute_type, payload)
        suggestions = sanitize_attribute_suggestions(raw, view.master, view.target, supports_values)

        logger.info(
            "attribute_mappings_suggested",
            master_shop_id=master_shop_id,
            target_shop_id=target_shop_id,
            type=attribute_type.value,
            received=len(raw),
            kept=len(suggestions)
        )

        return AttributeSuggestionResponse(
            master=view.master,
            target=view.target,
            mappings=suggestions,
        )

    def pre_map_categories(
        self,
        target_shop_id: int,
        master_shop_id: Optional[int] = None,
        include_mapped: bool = False,
        instructions: Optional[str] = None
    ) -> list[CategorySuggestion]:
        """
        Propose shop categories for canonical categories.

        Each canonical node is offered its best pre-scored candidates; an
        answer is accepted only when it picks one of them.

        Args:
            target_shop_id: Shop whose categories are proposed
            master_shop_id: Explicit master shop (default: first master)
            include_mapped: Also propose for nodes that already have a target
            instructions: Operator hints appended to the prompt (max 500 chars)

        Raises:
            ValidationError: Instructions too long
            ConfigurationError: Oracle credentials missing
            UpstreamUnavailableError: Oracle failed or answered garbage
        """
        instructions = _text_or_none(instructions)
        if instructions and len(instructions) > MAX_INSTRUCTIONS:
            raise ValidationError(
                f"Instructions must be at most {MAX_INSTRUCTIONS} characters",
                code="PREMAP_INSTRUCTIONS_TOO_LONG",
                details={"length": len(instructions), "max": MAX_INSTRUCTIONS}
            )

        master_shop = self.shops.get_master(master_shop_id)
        target_shop = self.shops.get(target_shop_id)
        scope = {"master_shop_id": master_shop.id, "target_shop_id": target_shop.id}

        canonical_nodes = self.categories.list_canonical_nodes(master_shop.id)
        shop_nodes = self.categories.list_shop_nodes(target_shop.id)

        if not canonical_nodes or not shop_nodes:
            logger.info(
                "category_premap_skipped",
                canonical_count=len(canonical_nodes),
                shop_count=len(shop_nodes),
                **scope
            )
            return []

        mapped_ids = {
            mapping.category_node_id
            for mapping in self.categories.list_mappings(target_shop.id)
            if mapping.shop_category_node_id
        }

        shop_by_id = {node.id: node for node in shop_nodes}
        ordered_shop_nodes = sorted(shop_nodes, key=lambda n: ((n.path or "").casefold(), n.name.casefold()))
        shop_entries = [_ShopEntry(node, shop_by_id) for node in ordered_shop_nodes[:MAX_SHOP_NODES]]

        canonical_by_id = {node.id: node for node in canonical_nodes}
        canonical_payload: list[dict[str, Any]] = []

        for node in canonical_nodes:
            if not include_mapped and node.id in mapped_ids:
                continue
            if len(canonical_payload) >= MAX_CANONICAL:
                break

            path = truncate(build_path(node, canonical_by_id))
            depth = node_depth(node, canonical_by_id)
            canonical_payload.append({
                "id": node.id,
                "guid": node.guid,
                "name": truncate(node.name),
                "path": path,
                "depth": depth,
                "parent_id": node.parent_id,
                "already_mapped": node.id in mapped_ids,
                "keywords": keywords(f"{node.name} {path or ''}", KEYWORD_LIMIT),
                "candidates": build_candidates(node, path, depth, shop_entries),
            })

        if not canonical_payload:
            logger.info("category_premap_nothing_unmapped", **scope)
            return []

        instruction_lines = list(CATEGORY_INSTRUCTIONS)
        if not include_mapped:
            instruction_lines.append(
                "Skip canonical categories that already have confirmed mapping unless the mapping is null."
            )
        if instructions:
            instruction_lines.append(f"User instructions: {instructions}")

        logger.info(
            "suggesting_category_mappings",
            canonical_count=len(canonical_payload),
            shop_count=len(shop_entries),
            include_mapped=include_mapped,
            **scope
        )

        raw = self.oracle.suggest_category_mappings({
            "canonical_categories": canonical_payload,
            "target_categories": [entry.to_payload() for entry in shop_entries],
            "instructions": instruction_lines,
        })

        suggestions = self._accept_category_answer(raw, canonical_payload, shop_entries)

        logger.info(
            "category_mappings_suggested",
            received=len(raw),
            kept=len(suggestions),
            **scope
        )
        return suggestions

    @staticmethod
    def _accept_category_answer(
        raw: list[dict],
        canonical_payload: list[dict[str, Any]],
        shop_entries: list[_ShopEntry]
    ) -> list[CategorySuggestion]:
        canonical_map = {entry["id"]: entry for entry in canonical_payload}
        shop_map = {entry.node.id: entry for entry in shop_entries}
        suggestions: list[CategorySuggestion] = []

        for answer in raw:
            canonical_id = _text_or_none(answer.get("canonical_id"))
            target_id = _text_or_none(answer.get("target_id"))

            if not canonical_id or canonical_id not in canonical_map:
                continue
            if not target_id or target_id not in shop_map:
                continue

            canonical = canonical_map[canonical_id]
            if not any(c["id"] == target_id for c in canonical["candidates"]):
                logger.warning(
                    "category_suggestion_not_offered",
                    canonical_id=canonical_id,
                    target_id=target_id
                )
                continue

            confidence = _clamp_confidence(answer.get("confidence"))
            shop_entry = shop_map[target_id]

            suggestions.append(CategorySuggestion(
                canonical=SuggestedCanonical(
                    id=canonical["id"],
                    guid=canonical["guid"],
                    name=canonical["name"],
                    path=canonical["path"],
                ),
                suggested=SuggestedShopCategory(
                    id=shop_entry.node.id,
                    name=shop_entry.name,
                    path=shop_entry.path,
                    remote_guid=shop_entry.node.remote_guid,
                ),
                similarity=confidence if confidence is not None else DEFAULT_SIMILARITY,
                reason=_text_or_none(answer.get("reason")),
            ))

        return suggestions

    @staticmethod
    def _shop_payload(shop: Shop) -> dict[str, Any]:
        return {"id": shop.id, "name": shop.name, "locale": shop.locale}


# Singleton instance
_service: Optional[MappingSuggestionService] = None


def get_mapping_suggestion_service() -> MappingSuggestionService:
    """Get or create MappingSuggestionService instance."""
    global _service
    if _service is None:
        _service = MappingSuggestionService()
    return _service
