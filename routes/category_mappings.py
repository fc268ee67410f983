"""
Category mapping API routes.

Canonical and shop category trees, the confirm/reject workflow, AI
pre-mapping and pushing category texts to Shoptet.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.base import PaginationParams
from models.category import (
    CanonicalMappingListResponse,
    CategoryMapping,
    CategoryTrees,
    ConfirmCategoryMappingRequest,
    MappingStatus,
    PushCategoryContentRequest,
    RejectCategoryMappingRequest,
    ShopCategoryListResponse,
    ShopCategoryNode,
)
from models.suggestion import PreMapRequest
from services.category_tree_service import get_category_tree_service
from services.category_mapping_service import get_category_mapping_service
from services.mapping_suggestion_service import get_mapping_suggestion_service
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
# TREES & LISTINGS
# ===================

@router.get("/tree", response_model=CategoryTrees)
async def get_category_trees(
    target_shop_id: Optional[int] = Query(None, description="Shop whose tree and mappings to include"),
    master_shop_id: Optional[int] = Query(None, description="Master shop (default: first master)")
):
    """
    Get the canonical tree with mappings and the target shop tree.

    Raises:
        404: Master or target shop not found
    """
    try:
        service = get_category_tree_service()
        return service.build_trees(target_shop_id, master_shop_id)

    except Exception as e:
        return handle_error(e)


@router.get("", response_model=CanonicalMappingListResponse)
async def list_category_mappings(
    shop_id: int = Query(..., description="Target shop ID"),
    master_shop_id: Optional[int] = Query(None, description="Master shop (default: first master)"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(50, ge=1, le=200, description="Items per page"),
    search: Optional[str] = Query(None, description="Search name, slug or GUID"),
    status: Optional[MappingStatus] = Query(None, description="Filter by mapping status")
):
    """List canonical categories with their mapping for a shop."""
    try:
        service = get_category_mapping_service()
        return service.list_mappings(
            shop_id,
            master_shop_id=master_shop_id,
            pagination=PaginationParams(page=page, per_page=per_page),
            search=search,
            status=status
        )

    except Exception as e:
        return handle_error(e)


@router.get("/shop-categories", response_model=ShopCategoryListResponse)
async def list_shop_categories(
    shop_id: int = Query(..., description="Shop ID"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(50, ge=1, le=200, description="Items per page"),
    search: Optional[str] = Query(None, description="Search name, slug or path")
):
    """List a shop's categories ordered by path."""
    try:
        service = get_category_mapping_service()
        return service.list_shop_categories(
            shop_id,
            pagination=PaginationParams(page=page, per_page=per_page),
            search=search
        )

    except Exception as e:
        return handle_error(e)


# ===================
# MAPPING WORKFLOW
# ===================

@router.post("/confirm", response_model=CategoryMapping)
async def confirm_category_mapping(data: ConfirmCategoryMappingRequest):
    """
    Confirm a canonical-to-shop category mapping.

    Raises:
        404: Canonical or shop category not found
    """
    try:
        service = get_category_mapping_service()
        return service.confirm(data.category_node_id, data.shop_category_node_id, data.notes)

    except Exception as e:
        return handle_error(e)


@router.post("/reject", response_model=CategoryMapping)
async def reject_category_mapping(data: RejectCategoryMappingRequest):
    """
    Mark a canonical category as having no counterpart in a shop.

    Raises:
        404: Canonical category or shop not found
    """
    try:
        service = get_category_mapping_service()
        return service.reject(data.category_node_id, data.shop_id, data.notes)

    except Exception as e:
        return handle_error(e)


@router.post("/ai-premap")
async def pre_map_categories(data: PreMapRequest):
    """
    Ask the AI to propose shop categories for canonical categories.

    Suggestions are returned for review; nothing is saved.

    Raises:
        500: AI key not configured
        503: AI unavailable
    """
    try:
        service = get_mapping_suggestion_service()
        suggestions = service.pre_map_categories(
            data.target_shop_id,
            master_shop_id=data.master_shop_id,
            include_mapped=data.include_mapped,
            instructions=data.instructions
        )

        return {
            "data": [s.model_dump() for s in suggestions],
            "total": len(suggestions)
        }

    except Exception as e:
        return handle_error(e)


# ===================
# CONTENT
# ===================

@router.post("/shops/{shop_id}/content", response_model=ShopCategoryNode)
async def push_category_content(shop_id: int, data: PushCategoryContentRequest):
    """
    Send category descriptions to Shoptet and store them.

    Raises:
        404: Shop or category not found
        409: Category belongs to another shop or has no Shoptet GUID
        503: Shoptet unavailable
    """
    try:
        service = get_category_mapping_service()
        return service.push_category_content(
            shop_id,
            data.shop_category_node_id,
            data.description,
            data.second_description
        )

    except Exception as e:
        return handle_error(e)
