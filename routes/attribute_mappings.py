"""
Attribute mapping API routes.

Master-to-target pairing of flags, filtering parameters and variant
parameters, plus the attribute cache refresh.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from models.attribute_mapping import (
    AttributeMappingView,
    SaveAttributeMappingsRequest,
    SyncAttributeCacheRequest,
)
from models.suggestion import AttributeSuggestionRequest, AttributeSuggestionResponse
from services.attribute_cache_service import get_attribute_cache_service
from services.attribute_mapping_service import get_attribute_mapping_service, parse_attribute_type
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
# ROUTES
# ===================

@router.get("", response_model=AttributeMappingView)
async def get_attribute_mapping_view(
    master_shop_id: int = Query(..., description="Master shop ID"),
    target_shop_id: int = Query(..., description="Target shop ID"),
    type: str = Query(..., description="flags, filtering_parameters or variants")
):
    """
    Get master items, annotated target items and stored mappings.

    Raises:
        404: Shop not found
        422: Unknown type or same shop on both sides
        503: Shoptet unavailable
    """
    try:
        service = get_attribute_mapping_service()
        return service.fetch_view(master_shop_id, target_shop_id, parse_attribute_type(type))

    except Exception as e:
        return handle_error(e)


@router.post("", response_model=AttributeMappingView)
async def save_attribute_mappings(data: SaveAttributeMappingsRequest):
    """
    Replace the mapping set of one (master, target, type) scope.

    Master keys missing from the submission are deleted.

    Raises:
        404: Shop not found
        422: Same shop on both sides
        503: Shoptet unavailable
    """
    try:
        service = get_attribute_mapping_service()
        return service.save(data.master_shop_id, data.target_shop_id, data.type, data.mappings)

    except Exception as e:
        return handle_error(e)


@router.post("/suggest", response_model=AttributeSuggestionResponse)
async def suggest_attribute_mappings(data: AttributeSuggestionRequest):
    """
    Ask the AI for attribute pairings. Nothing is saved.

    Raises:
        500: AI key not configured
        503: AI or Shoptet unavailable
    """
    try:
        service = get_mapping_suggestion_service()
        return service.suggest_attribute_mappings(data.master_shop_id, data.target_shop_id, data.type)

    except Exception as e:
        return handle_error(e)


@router.post("/sync")
async def sync_attribute_cache(data: SyncAttributeCacheRequest):
    """
    Refresh a shop's cached attribute items from Shoptet.

    Returns:
        Item count per refreshed type
    """
    try:
        service = get_attribute_cache_service()
        counts = service.sync(data.shop_id, data.types)

        return {
            "shop_id": data.shop_id,
            "synced": counts
        }

    except Exception as e:
        return handle_error(e)
