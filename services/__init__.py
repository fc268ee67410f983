"""
Business logic services.

Each service handles one domain area.
"""

from services.item_normalizer import ItemNormalizer
from services.attribute_cache_service import AttributeCacheService, get_attribute_cache_service
from services.attribute_mapping_service import AttributeMappingService, get_attribute_mapping_service
from services.category_tree_service import CategoryTreeService, get_category_tree_service
from services.category_mapping_service import CategoryMappingService, get_category_mapping_service
from services.default_category_validator import DefaultCategoryValidator, get_default_category_validator
from services.default_category_updater import DefaultCategoryUpdater, get_default_category_updater
from services.mapping_suggestion_service import MappingSuggestionService, get_mapping_suggestion_service

__all__ = [
    "ItemNormalizer",
    "AttributeCacheService",
    "get_attribute_cache_service",
    "AttributeMappingService",
    "get_attribute_mapping_service",
    "CategoryTreeService",
    "get_category_tree_service",
    "CategoryMappingService",
    "get_category_mapping_service",
    "DefaultCategoryValidator",
    "get_default_category_validator",
    "DefaultCategoryUpdater",
    "get_default_category_updater",
    "MappingSuggestionService",
    "get_mapping_suggestion_service",
]
