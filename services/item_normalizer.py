"""
Normalize Shoptet attribute payloads into MappableItem records.

This is the only module that knows the remote field names of the flag,
filtering parameter and variant parameter listings. Fields absent from
the payload stay unset on the produced models, so the cache merge can
tell "not supplied" apart from "supplied".
"""

from typing import Any, Optional
import structlog

from models.attribute import AttributeType, MappableItem, MappableValue

logger = structlog.get_logger(__name__)


def sort_items(items: list[MappableItem]) -> list[MappableItem]:
    """Sort by case-folded label, key as fallback."""
    return sorted(items, key=lambda item: ((item.label or item.key).casefold(), item.key))


def sort_values(values: list[MappableValue]) -> list[MappableValue]:
    return sorted(values, key=lambda value: ((value.label or value.key).casefold(), value.key))


def _first(raw: dict, *names: str) -> Optional[Any]:
    """First non-empty field among `names`."""
    for name in names:
        value = raw.get(name)
        if value is not None and value != "":
            return value
    return None


def _key(raw: dict, *names: str) -> str:
    value = _first(raw, *names)
    return "" if value is None else str(value).strip()


def _collection(payload: dict, name: str) -> list[dict]:
    data = payload.get("data") if isinstance(payload, dict) else None
    items = data.get(name) if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class ItemNormalizer:
    """Converts raw listing payloads of each attribute type."""

    def normalize(self, attribute_type: AttributeType, payload: dict) -> list[MappableItem]:
        """
        Normalize a raw listing payload of the given type.

        Items without a usable key are skipped.
        """
        if attribute_type is AttributeType.FLAGS:
            items = self.normalize_flags(payload)
        elif attribute_type is AttributeType.FILTERING_PARAMETERS:
            items = self.normalize_filtering_parameters(payload)
        else:
            items = self.normalize_variant_parameters(payload)

        unique: dict[str, MappableItem] = {}
        for item in items:
            if item.key in unique:
                logger.warning("duplicate_item_key_skipped", type=attribute_type.value, key=item.key)
                continue
            unique[item.key] = item

        logger.debug("items_normalized", type=attribute_type.value, count=len(unique))
        return sort_items(list(unique.values()))

    # ===================
    # FLAGS
    # ===================

    def normalize_flags(self, payload: dict) -> list[MappableItem]:
        items = []
        for flag in _collection(payload, "flags"):
            code = _key(flag, "code")
            if not code:
                continue

            fields: dict[str, Any] = {
                "key": code,
                "label": str(_first(flag, "title") or code),
            }
            if "color" in flag:
                fields["color"] = flag["color"]

            extra: dict[str, Any] = {"code": code}
            if "system" in flag:
                extra["system"] = bool(flag["system"])
            if "showInDetail" in flag:
                extra["show_in_detail"] = bool(flag["showInDetail"])
            if "showInCategory" in flag:
                extra["show_in_category"] = bool(flag["showInCategory"])
            fields["extra"] = extra

            items.append(MappableItem(**fields))
        return items

    # ===================
    # FILTERING PARAMETERS
    # ===================

    def normalize_filtering_parameters(self, payload: dict) -> list[MappableItem]:
        items = []
        for parameter in _collection(payload, "filteringParameters"):
            key = _key(parameter, "code", "id")
            if not key:
                continue

            fields: dict[str, Any] = {
                "key": key,
                "label": str(_first(parameter, "displayName", "name", "code") or key),
            }
            if "priority" in parameter:
                fields["priority"] = parameter["priority"]

            extra: dict[str, Any] = {}
            for name in ("code", "id", "description"):
                if name in parameter:
                    extra[name] = parameter[name]
            fields["extra"] = extra

            if "values" in parameter:
                fields["values"] = sort_values(self._values(
                    parameter.get("values") or [],
                    key_fields=("valueIndex", "id"),
                    label_fields=("name", "valueIndex"),
                    priority_field="priority",
                ))

            items.append(MappableItem(**fields))
        return items

    # ===================
    # VARIANT PARAMETERS
    # ===================

    def normalize_variant_parameters(self, payload: dict) -> list[MappableItem]:
        items = []
        for parameter in _collection(payload, "parameters"):
            key = _key(parameter, "paramIndex", "id")
            if not key:
                continue

            fields: dict[str, Any] = {
                "key": key,
                "label": str(_first(parameter, "displayName", "paramName") or key),
            }
            if "priority" in parameter:
                fields["priority"] = parameter["priority"]

            extra: dict[str, Any] = {}
            if "paramIndex" in parameter:
                extra["index"] = parameter["paramIndex"]
            if "id" in parameter:
                extra["id"] = parameter["id"]
            fields["extra"] = extra

            if "values" in parameter:
                fields["values"] = sort_values(self._values(
                    parameter.get("values") or [],
                    key_fields=("rawValue", "id"),
                    label_fields=("paramValue", "rawValue"),
                    priority_field="valuePriority",
                ))

            items.append(MappableItem(**fields))
        return items

    def _values(
        self,
        raw_values: list,
        key_fields: tuple[str, ...],
        label_fields: tuple[str, ...],
        priority_field: str
    ) -> list[MappableValue]:
        values = []
        seen: set[str] = set()

        for raw in raw_values:
            if not isinstance(raw, dict):
                continue
            key = _key(raw, *key_fields)
            if not key or key in seen:
                continue
            seen.add(key)

            fields: dict[str, Any] = {
                "key": key,
                "label": str(_first(raw, *label_fields) or key),
            }
            if "color" in raw:
                fields["color"] = raw["color"]
            if priority_field in raw:
                fields["priority"] = raw[priority_field]

            values.append(MappableValue(**fields))
        return values
