"""
Attribute item schemas.

Flags, filtering parameters and variant parameters from every shop are
normalized into MappableItem / MappableValue. Only the item normalizer
knows the remote field names; everything downstream works with these.
"""

from pydantic import Field
from typing import Any, Optional, Union
from enum import Enum

from models.base import BaseSchema


class AttributeType(str, Enum):
    """Kinds of attributes that can be mapped between shops."""
    FLAGS = "flags"
    FILTERING_PARAMETERS = "filtering_parameters"
    VARIANTS = "variants"

    @property
    def supports_values(self) -> bool:
        """Flags have no nested values; parameters do."""
        return self is not AttributeType.FLAGS


class MappableValue(BaseSchema):
    """A selectable value of a parameterized attribute."""

    key: str = Field(..., min_length=1, description="Value key, unique within its item")
    label: str = Field(default="", description="Display label")
    color: Optional[str] = Field(None, description="Swatch color, if any")
    priority: Optional[Union[int, float]] = Field(None, description="Sort priority")
    likely_master_language: bool = Field(
        default=False,
        description="Label still matches the master shop's label for the same key"
    )


class MappableItem(BaseSchema):
    """
    Canonical attribute shape shared by all shops and types.

    `extra` holds platform fields that have no first-class attribute
    (code, id, index, description, system, show_in_detail, ...).
    """

    key: str = Field(..., min_length=1, description="Item key, unique within (shop, type)")
    label: str = Field(default="", description="Display label")
    color: Optional[str] = Field(None, description="Flag color")
    priority: Optional[Union[int, float]] = Field(None, description="Sort priority")
    values: list[MappableValue] = Field(default_factory=list, description="Nested values")
    extra: dict[str, Any] = Field(default_factory=dict, description="Non-promoted fields")
    likely_master_language: bool = Field(
        default=False,
        description="Label still matches the master shop's label for the same key"
    )

    def to_cache_dict(self) -> dict:
        """Serialize only the fields that were actually supplied."""
        return self.model_dump(
            exclude_unset=True,
            exclude={
                "likely_master_language": True,
                "values": {"__all__": {"likely_master_language"}},
            },
        )

    def values_by_key(self) -> dict[str, MappableValue]:
        return {value.key: value for value in self.values}


class AttributeCacheEntry(BaseSchema):
    """Cached, normalized items of one type for one shop."""

    shop_id: int
    type: AttributeType
    items: list[MappableItem] = Field(default_factory=list)
