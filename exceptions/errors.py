"""
Custom exception classes for the application.

Every error carries a machine-readable code, an HTTP status and a
details dict with the identifiers (shop id, type, key) needed to
reproduce the failure.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "SHOP_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None,
        message: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=message or f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Precondition of the operation does not hold (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class UpstreamUnavailableError(AppError):
    """Remote catalog or suggestion backend failed (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_UNAVAILABLE",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class ConfigurationError(AppError):
    """Required credentials or settings are missing (500)."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CONFIGURATION_ERROR",
            message=message,
            status_code=500,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# SHOPS
# ===================

class ShopNotFoundError(NotFoundError):
    """Shop not found."""

    def __init__(self, shop_id: int):
        super().__init__(
            resource="Shop",
            identifier=str(shop_id),
            code="SHOP_NOT_FOUND"
        )


class MasterShopNotFoundError(NotFoundError):
    """No master shop matches the request."""

    def __init__(self, shop_id: Optional[int] = None):
        super().__init__(
            resource="Master shop",
            identifier=str(shop_id) if shop_id is not None else "",
            code="MASTER_SHOP_NOT_FOUND",
            message=(
                "Master shop not found"
                if shop_id is not None
                else "No master shop configured"
            )
        )


# ===================
# ATTRIBUTES
# ===================

class InvalidAttributeTypeError(ValidationError):
    """Unknown attribute type."""

    def __init__(self, attribute_type: str):
        super().__init__(
            code="ATTRIBUTE_INVALID_TYPE",
            message="Type must be flags, filtering_parameters, or variants",
            details={
                "provided": attribute_type,
                "valid": ["flags", "filtering_parameters", "variants"]
            }
        )


# ===================
# CATEGORIES
# ===================

class CategoryNodeNotFoundError(NotFoundError):
    """Canonical category node not found."""

    def __init__(self, node_id: str):
        super().__init__(
            resource="Category node",
            identifier=node_id,
            code="CATEGORY_NODE_NOT_FOUND"
        )


class ShopCategoryNodeNotFoundError(NotFoundError):
    """Target shop category node not found."""

    def __init__(self, node_id: str):
        super().__init__(
            resource="Shop category node",
            identifier=node_id,
            code="SHOP_CATEGORY_NODE_NOT_FOUND"
        )


# ===================
# PRODUCTS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class DefaultCategoryConflictError(ConflictError):
    """Default category cannot be applied in the current state."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="DEFAULT_CATEGORY_CONFLICT",
            message=message,
            details=details
        )
