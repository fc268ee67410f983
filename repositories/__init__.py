"""
Persistence layer.

One repository per aggregate; each returns fully populated models and
wraps driver failures in DatabaseError.
"""

from repositories.shop_repository import ShopRepository
from repositories.settings_repository import SettingsRepository, ATTRIBUTE_CACHE_KEY
from repositories.attribute_mapping_repository import AttributeMappingRepository
from repositories.category_repository import CategoryRepository
from repositories.product_repository import ProductRepository

__all__ = [
    "ShopRepository",
    "SettingsRepository",
    "ATTRIBUTE_CACHE_KEY",
    "AttributeMappingRepository",
    "CategoryRepository",
    "ProductRepository",
]
