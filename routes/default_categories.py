"""
Default category API routes.

Consistency report of product default categories across shops and the
endpoint that sets or clears one.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.product import (
    ApplyDefaultCategoryRequest,
    DefaultCategoryResult,
    DefaultCategoryValidation,
)
from services.default_category_validator import get_default_category_validator
from services.default_category_updater import get_default_category_updater
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("/validate", response_model=DefaultCategoryValidation)
async def validate_default_categories(
    master_shop_id: int = Query(..., description="Master shop ID"),
    target_shop_id: int = Query(..., description="Target shop ID"),
    page: int = Query(1, description="Page number"),
    per_page: int = Query(50, description="Issues per page (clamped to 1..200)"),
    search: Optional[str] = Query(None, description="Search SKU or variant code"),
    all: bool = Query(False, description="Return every issue")
):
    """
    Report products whose default category in the target shop is
    missing, unmapped or different from the confirmed mapping.

    Raises:
        404: Shop not found
    """
    try:
        validator = get_default_category_validator()
        return validator.validate(
            master_shop_id,
            target_shop_id,
            page=page,
            per_page=per_page,
            search=search,
            all=all
        )

    except Exception as e:
        return handle_error(e)


@router.post("/products/{product_id}", response_model=DefaultCategoryResult)
async def apply_default_category(product_id: str, data: ApplyDefaultCategoryRequest):
    """
    Set or clear a product's default category.

    Omitting category_id clears it. With sync_to_shoptet the change is
    pushed to Shoptet before it is stored.

    Raises:
        404: Product, shop or category not found
        409: Preconditions not met (see message)
        422: shop_id missing for target=shop
        503: Shoptet unavailable
    """
    try:
        updater = get_default_category_updater()
        return updater.apply_default_category(
            product_id,
            data.target,
            category_id=data.category_id,
            shop_id=data.shop_id,
            sync_to_shoptet=data.sync_to_shoptet
        )

    except Exception as e:
        return handle_error(e)
