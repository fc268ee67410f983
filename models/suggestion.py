"""
AI suggestion schemas.

Suggestions are proposals only; nothing here is persisted.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema
from models.attribute import AttributeType, MappableItem


# ===================
# ATTRIBUTES
# ===================

class SuggestedValueMapping(BaseSchema):
    master_key: str
    target_key: Optional[str] = None


class SuggestedAttributeMapping(BaseSchema):
    master_key: str
    target_key: Optional[str] = None
    values: list[SuggestedValueMapping] = Field(default_factory=list)
    confidence: Optional[float] = Field(None, ge=0, le=1)
    reason: Optional[str] = None


class AttributeSuggestionRequest(BaseSchema):
    master_shop_id: int
    target_shop_id: int
    type: AttributeType


class AttributeSuggestionResponse(BaseSchema):
    master: list[MappableItem] = Field(default_factory=list)
    target: list[MappableItem] = Field(default_factory=list)
    mappings: list[SuggestedAttributeMapping] = Field(default_factory=list)


# ===================
# CATEGORIES
# ===================

class PreMapRequest(BaseSchema):
    target_shop_id: int
    master_shop_id: Optional[int] = None
    include_mapped: bool = False
    instructions: Optional[str] = Field(None, max_length=500)


class SuggestedCanonical(BaseSchema):
    id: str
    guid: str
    name: str
    path: Optional[str] = None


class SuggestedShopCategory(BaseSchema):
    id: str
    name: str
    path: Optional[str] = None
    remote_guid: Optional[str] = None


class CategorySuggestion(BaseSchema):
    canonical: SuggestedCanonical
    suggested: Optional[SuggestedShopCategory] = None
    similarity: float = Field(..., ge=0, le=1)
    reason: Optional[str] = None
