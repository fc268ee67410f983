"""
Category schemas.

Canonical nodes form the master tree; shop nodes form one tree per
target shop. A CategoryMapping links a canonical node to a shop node
for one shop and carries a suggested/confirmed/rejected workflow.
"""

from pydantic import Field
from typing import Optional
from datetime import datetime
from enum import Enum

from models.base import BaseSchema, TimestampMixin, PageMeta


# ===================
# ENUMS
# ===================

class MappingStatus(str, Enum):
    """Category mapping workflow states."""
    SUGGESTED = "suggested"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class MappingSource(str, Enum):
    """Who produced the mapping."""
    MANUAL = "manual"
    AI = "ai"


# ===================
# NODES
# ===================

class CategoryNode(BaseSchema, TimestampMixin):
    """Canonical (master) category node."""

    id: str
    shop_id: int
    guid: str
    name: str
    slug: Optional[str] = None
    parent_id: Optional[str] = None
    position: int = 0


class ShopCategoryNode(BaseSchema, TimestampMixin):
    """Category node of a target shop."""

    id: str
    shop_id: int
    remote_guid: Optional[str] = None
    remote_id: Optional[int] = None
    parent_id: Optional[str] = None
    name: str
    slug: Optional[str] = None
    position: int = 0
    path: Optional[str] = None
    description: Optional[str] = None
    second_description: Optional[str] = None


class ShopCategoryRef(BaseSchema):
    """Compact shop category attached to a mapping."""

    id: str
    name: str
    slug: Optional[str] = None
    path: Optional[str] = None
    remote_guid: Optional[str] = None


# ===================
# MAPPINGS
# ===================

class CategoryMapping(BaseSchema, TimestampMixin):
    """Mapping of a canonical node to a shop node; one per (node, shop)."""

    id: Optional[int] = None
    category_node_id: str
    shop_id: int
    shop_category_node_id: Optional[str] = None
    status: MappingStatus = MappingStatus.SUGGESTED
    confidence: Optional[float] = Field(None, ge=0, le=1)
    source: MappingSource = MappingSource.MANUAL
    notes: Optional[str] = None
    shop_category: Optional[ShopCategoryRef] = Field(
        None,
        description="Linked shop node, populated by the repository"
    )


class CanonicalCategory(BaseSchema):
    """Canonical node with its mapping for one shop attached."""

    node: CategoryNode
    mapping: Optional[CategoryMapping] = None


# ===================
# TREES
# ===================

class CanonicalTreeNode(BaseSchema):
    """Canonical tree entry."""

    id: str
    guid: str
    name: str
    slug: Optional[str] = None
    path: Optional[str] = None
    orphaned: bool = False
    mapping: Optional[CategoryMapping] = None
    children: list["CanonicalTreeNode"] = Field(default_factory=list)


class ShopTreeNode(BaseSchema):
    """Shop tree entry."""

    id: str
    remote_guid: Optional[str] = None
    name: str
    slug: Optional[str] = None
    path: Optional[str] = None
    description: Optional[str] = None
    second_description: Optional[str] = None
    orphaned: bool = False
    children: list["ShopTreeNode"] = Field(default_factory=list)


class MappingCounts(BaseSchema):
    total: int = 0
    confirmed: int = 0
    suggested: int = 0
    rejected: int = 0


class TreeSummary(BaseSchema):
    canonical_count: int = 0
    shop_count: int = 0
    mappings: MappingCounts = Field(default_factory=MappingCounts)


class ShopSummary(BaseSchema):
    id: int
    name: str


class CategoryTrees(BaseSchema):
    """Both trees plus summary counters."""

    master_shop: ShopSummary
    target_shop: Optional[ShopSummary] = None
    canonical: list[CanonicalTreeNode] = Field(default_factory=list)
    shop: list[ShopTreeNode] = Field(default_factory=list)
    summary: TreeSummary = Field(default_factory=TreeSummary)
    shop_synced_at: Optional[datetime] = None


# ===================
# REQUESTS / LISTINGS
# ===================

class ConfirmCategoryMappingRequest(BaseSchema):
    category_node_id: str
    shop_category_node_id: str
    notes: Optional[str] = Field(None, max_length=1000)


class RejectCategoryMappingRequest(BaseSchema):
    category_node_id: str
    shop_id: int
    notes: Optional[str] = Field(None, max_length=1000)


class PushCategoryContentRequest(BaseSchema):
    shop_category_node_id: str
    description: Optional[str] = None
    second_description: Optional[str] = None


class CanonicalMappingListResponse(BaseSchema):
    data: list[CanonicalCategory]
    meta: PageMeta


class ShopCategoryListResponse(BaseSchema):
    data: list[ShopCategoryNode]
    meta: PageMeta
