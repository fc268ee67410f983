"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    UpstreamUnavailableError,
    ConfigurationError,
    DatabaseError,

    # Shops
    ShopNotFoundError,
    MasterShopNotFoundError,

    # Attributes
    InvalidAttributeTypeError,

    # Categories
    CategoryNodeNotFoundError,
    ShopCategoryNodeNotFoundError,

    # Products
    ProductNotFoundError,
    DefaultCategoryConflictError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "UpstreamUnavailableError",
    "ConfigurationError",
    "DatabaseError",

    # Shops
    "ShopNotFoundError",
    "MasterShopNotFoundError",

    # Attributes
    "InvalidAttributeTypeError",

    # Categories
    "CategoryNodeNotFoundError",
    "ShopCategoryNodeNotFoundError",

    # Products
    "ProductNotFoundError",
    "DefaultCategoryConflictError",
]
