"""
Attribute mapping schemas.

An AttributeMapping pairs one master attribute key with one target
attribute key inside a (master_shop, target_shop, type) scope. Value
mappings hang off the parent and are rebuilt whenever the parent's
value list is resubmitted.
"""

from pydantic import Field, field_validator
from typing import Any, Optional

from models.base import BaseSchema, TimestampMixin
from models.attribute import AttributeType, MappableItem


# ===================
# STORED RECORDS
# ===================

class AttributeValueMapping(BaseSchema):
    """Pairing of a master value with a target value under one parent."""

    attribute_mapping_id: Optional[int] = None
    master_value_key: str = Field(..., min_length=1)
    master_value_label: Optional[str] = None
    target_value_key: Optional[str] = None
    target_value_label: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)


class AttributeMapping(BaseSchema, TimestampMixin):
    """Stored attribute mapping with its value mappings."""

    id: Optional[int] = None
    master_shop_id: int
    target_shop_id: int
    type: AttributeType
    master_key: str = Field(..., min_length=1)
    master_label: Optional[str] = None
    target_key: Optional[str] = None
    target_label: Optional[str] = None
    meta: dict[str, Any] = Field(
        default_factory=dict,
        description="Label/field snapshot of both sides at save time"
    )
    values: list[AttributeValueMapping] = Field(default_factory=list)


# ===================
# SUBMISSION
# ===================

class ValueMappingSubmission(BaseSchema):
    """One submitted value pairing."""

    master_key: str = Field(default="", description="Master value key")
    target_key: Optional[str] = Field(None, description="Target value key")

    @field_validator("master_key", mode="before")
    @classmethod
    def coerce_master_key(cls, v):
        return "" if v is None else str(v)


class AttributeMappingSubmission(BaseSchema):
    """
    One submitted attribute pairing.

    `values=None` means the caller did not send a value list, so existing
    value mappings are left alone. An empty list clears them.
    """

    master_key: str = Field(..., description="Master attribute key")
    target_key: Optional[str] = Field(None, description="Target key; empty clears the mapping")
    values: Optional[list[ValueMappingSubmission]] = Field(
        None,
        description="Value pairings (filtering_parameters and variants only)"
    )

    @field_validator("master_key", mode="before")
    @classmethod
    def coerce_master_key(cls, v):
        return "" if v is None else str(v)

    @field_validator("target_key", mode="before")
    @classmethod
    def coerce_target_key(cls, v):
        if v is None:
            return None
        return str(v)


class SaveAttributeMappingsRequest(BaseSchema):
    """Request body for saving a full mapping set of one scope."""

    master_shop_id: int
    target_shop_id: int
    type: AttributeType
    mappings: list[AttributeMappingSubmission] = Field(default_factory=list)


class SyncAttributeCacheRequest(BaseSchema):
    """Request body for refreshing a shop's attribute cache."""

    shop_id: int
    types: Optional[list[AttributeType]] = Field(
        None,
        description="Types to refresh; all types when omitted"
    )


# ===================
# VIEW
# ===================

class AttributeMappingView(BaseSchema):
    """Current state of one mapping scope as shown to an operator."""

    master_shop_id: int
    target_shop_id: int
    type: AttributeType
    master: list[MappableItem] = Field(default_factory=list)
    target: list[MappableItem] = Field(default_factory=list)
    mappings: list[AttributeMapping] = Field(default_factory=list)


# ===================
# WRITE PLAN
# ===================

class AttributeMappingWrite(BaseSchema):
    """
    Final state of one mapping row inside a save plan.

    `values=None` keeps the value rows already stored for the mapping.
    """

    master_key: str
    master_label: Optional[str] = None
    target_key: Optional[str] = None
    target_label: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)
    values: Optional[list[AttributeValueMapping]] = None


class AttributeMappingPlan(BaseSchema):
    """Complete change set of one save, committed as a single unit."""

    master_shop_id: int
    target_shop_id: int
    type: AttributeType
    delete_master_keys: list[str] = Field(default_factory=list)
    upserts: list[AttributeMappingWrite] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.delete_master_keys and not self.upserts
