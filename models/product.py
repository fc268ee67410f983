"""
Product schemas used by default-category validation and updates.

The master product keeps its default category in
base_payload.defaultCategory; each target shop keeps its own in the
overlay's data.defaultCategory. Both are {guid, name, path} documents.
"""

from pydantic import Field
from typing import Any, Optional, Literal
from enum import Enum

from models.base import BaseSchema, TimestampMixin, PageMeta


DEFAULT_CATEGORY_KEY = "defaultCategory"


# ===================
# PRODUCT AGGREGATE
# ===================

class ProductShopOverlay(BaseSchema, TimestampMixin):
    """Shop-specific product data."""

    id: Optional[int] = None
    product_id: str
    shop_id: int
    data: dict[str, Any] = Field(default_factory=dict)


class ProductRemoteRef(BaseSchema):
    """Product's GUID in a given shop."""

    product_id: str
    shop_id: int
    remote_guid: Optional[str] = None


class Product(BaseSchema, TimestampMixin):
    """Master product with its variants' codes, overlays and remote refs."""

    id: str
    shop_id: int
    sku: str
    external_guid: Optional[str] = None
    base_payload: dict[str, Any] = Field(default_factory=dict)
    variant_codes: list[str] = Field(default_factory=list)
    overlays: list[ProductShopOverlay] = Field(default_factory=list)
    remote_refs: list[ProductRemoteRef] = Field(default_factory=list)

    def overlay_for(self, shop_id: int) -> Optional[ProductShopOverlay]:
        return next((o for o in self.overlays if o.shop_id == shop_id), None)

    def remote_ref_for(self, shop_id: int) -> Optional[ProductRemoteRef]:
        return next((r for r in self.remote_refs if r.shop_id == shop_id), None)


class DefaultCategoryRef(BaseSchema):
    """Category reference reported in issues and debug output."""

    id: Optional[str] = None
    guid: Optional[str] = None
    name: Optional[str] = None
    path: Optional[str] = None


# ===================
# VALIDATION
# ===================

class IssueReason(str, Enum):
    """Why a product's default category is inconsistent."""
    MISSING_MASTER_CATEGORY = "missing_master_category"
    UNMAPPED_CATEGORY = "unmapped_category"
    MISMATCHED_CATEGORY = "mismatched_category"
    DEFAULT_NOT_DEEPEST = "default_not_deepest"


class DefaultCategoryIssue(BaseSchema):
    product_id: str
    sku: str
    name: Optional[str] = None
    codes: list[str] = Field(default_factory=list)
    reason: IssueReason
    master_category: Optional[DefaultCategoryRef] = None
    expected_category: Optional[DefaultCategoryRef] = None
    actual_category: Optional[DefaultCategoryRef] = None
    recommended_category: Optional[DefaultCategoryRef] = Field(
        None,
        description="Deeper assigned category on the same path as the default"
    )


class DefaultCategoryValidation(BaseSchema):
    """One page of issues with stats over the whole filtered set."""

    data: list[DefaultCategoryIssue] = Field(default_factory=list)
    meta: PageMeta
    stats: dict[str, int] = Field(default_factory=dict)


# ===================
# UPDATE
# ===================

class ApplyDefaultCategoryRequest(BaseSchema):
    """
    Set or clear a product's default category.

    For target=master, category_id is a canonical node id; for
    target=shop, a shop category node id of shop_id. Omitting
    category_id clears the default category.
    """

    target: Literal["master", "shop"]
    category_id: Optional[str] = None
    shop_id: Optional[int] = None
    sync_to_shoptet: bool = True


class DefaultCategoryResult(BaseSchema):
    message: str
    debug: dict[str, Any] = Field(default_factory=dict)
