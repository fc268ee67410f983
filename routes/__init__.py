"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.attribute_mappings import router as attribute_mappings_router
from routes.category_mappings import router as category_mappings_router
from routes.default_categories import router as default_categories_router

__all__ = [
    "attribute_mappings_router",
    "category_mappings_router",
    "default_categories_router",
]
