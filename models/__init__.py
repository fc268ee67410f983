"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin,
    PaginationParams,
    PageMeta,
)
from models.shop import Shop
from models.attribute import (
    AttributeType,
    MappableValue,
    MappableItem,
    AttributeCacheEntry,
)
from models.attribute_mapping import (
    AttributeValueMapping,
    AttributeMapping,
    ValueMappingSubmission,
    AttributeMappingSubmission,
    SaveAttributeMappingsRequest,
    SyncAttributeCacheRequest,
    AttributeMappingView,
    AttributeMappingWrite,
    AttributeMappingPlan,
)
from models.category import (
    MappingStatus,
    MappingSource,
    CategoryNode,
    ShopCategoryNode,
    ShopCategoryRef,
    CategoryMapping,
    CanonicalCategory,
    CanonicalTreeNode,
    ShopTreeNode,
    MappingCounts,
    TreeSummary,
    ShopSummary,
    CategoryTrees,
    ConfirmCategoryMappingRequest,
    RejectCategoryMappingRequest,
    PushCategoryContentRequest,
    CanonicalMappingListResponse,
    ShopCategoryListResponse,
)
from models.product import (
    DEFAULT_CATEGORY_KEY,
    Product,
    ProductShopOverlay,
    ProductRemoteRef,
    DefaultCategoryRef,
    IssueReason,
    DefaultCategoryIssue,
    DefaultCategoryValidation,
    ApplyDefaultCategoryRequest,
    DefaultCategoryResult,
)
from models.suggestion import (
    SuggestedValueMapping,
    SuggestedAttributeMapping,
    AttributeSuggestionRequest,
    AttributeSuggestionResponse,
    PreMapRequest,
    SuggestedCanonical,
    SuggestedShopCategory,
    CategorySuggestion,
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    "PaginationParams",
    "PageMeta",
    # Shop
    "Shop",
    # Attributes
    "AttributeType",
    "MappableValue",
    "MappableItem",
    "AttributeCacheEntry",
    "AttributeValueMapping",
    "AttributeMapping",
    "ValueMappingSubmission",
    "AttributeMappingSubmission",
    "SaveAttributeMappingsRequest",
    "SyncAttributeCacheRequest",
    "AttributeMappingView",
    "AttributeMappingWrite",
    "AttributeMappingPlan",
    # Categories
    "MappingStatus",
    "MappingSource",
    "CategoryNode",
    "ShopCategoryNode",
    "ShopCategoryRef",
    "CategoryMapping",
    "CanonicalCategory",
    "CanonicalTreeNode",
    "ShopTreeNode",
    "MappingCounts",
    "TreeSummary",
    "ShopSummary",
    "CategoryTrees",
    "ConfirmCategoryMappingRequest",
    "RejectCategoryMappingRequest",
    "PushCategoryContentRequest",
    "CanonicalMappingListResponse",
    "ShopCategoryListResponse",
    # Products
    "DEFAULT_CATEGORY_KEY",
    "Product",
    "ProductShopOverlay",
    "ProductRemoteRef",
    "DefaultCategoryRef",
    "IssueReason",
    "DefaultCategoryIssue",
    "DefaultCategoryValidation",
    "ApplyDefaultCategoryRequest",
    "DefaultCategoryResult",
    # Suggestions
    "SuggestedValueMapping",
    "SuggestedAttributeMapping",
    "AttributeSuggestionRequest",
    "AttributeSuggestionResponse",
    "PreMapRequest",
    "SuggestedCanonical",
    "SuggestedShopCategory",
    "CategorySuggestion",
]
