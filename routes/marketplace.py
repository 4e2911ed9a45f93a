"""
Marketplace sync API routes.

Both endpoints run one pass synchronously and return its counters.
Errors from any stage are returned with their message so the caller
can tell a missing token from a rejected request or a failed write.
"""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
import structlog

from exceptions import AppError
from models.marketplace import CategoryLookupResponse, SkuSyncResponse, SyncRequest
from services.category_lookup_service import CategoryLookupService
from services.sku_sync_service import SkuSyncService

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# DEPENDENCIES
# ===================

def get_sku_sync_service() -> SkuSyncService:
    """New service per request: a pass owns its index and patch map."""
    return SkuSyncService()


def get_category_lookup_service() -> CategoryLookupService:
    return CategoryLookupService()


# ===================
# HELPERS
# ===================

def handle_error(e: Exception, operation: str) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        logger.error(
            "sync_failed",
            operation=operation,
            code=e.code,
            error=e.message,
            details=e.details
        )
        return JSONResponse(status_code=e.status_code, content=e.to_dict())

    logger.error(
        "sync_unexpected_error",
        operation=operation,
        error=str(e),
        error_type=type(e).__name__
    )
    return JSONResponse(
        status_code=500,
        content={"error": str(e) or type(e).__name__, "code": "INTERNAL_ERROR"}
    )


async def read_sync_request(request: Request) -> SyncRequest:
    """
    Parse the body leniently.

    Invalid JSON is an empty request; a bare array is a barcode list.
    """
    try:
        body: Any = await request.json()
    except ValueError:
        body = {}
    if isinstance(body, list):
        body = {"barcodes": body}
    if not isinstance(body, dict):
        body = {}
    return SyncRequest.model_validate(body)


# ===================
# ROUTES
# ===================

@router.post(
    "/sync-skus",
    response_model=SkuSyncResponse,
    response_model_exclude_none=True
)
async def sync_skus(request: Request):
    """
    Scan the whole catalog and write nmID/category onto matching products.

    Falls back to recent supplies when the catalog returns no cards.
    """
    try:
        sync_request = await read_sync_request(request)
        logger.info(
            "sku_sync_requested",
            debug=sync_request.debug,
            max_pages=sync_request.max_pages
        )
        service = get_sku_sync_service()
        return await run_in_threadpool(service.run, sync_request)
    except Exception as e:
        return handle_error(e, "sync_skus")


@router.post(
    "/categories-by-barcode",
    response_model=CategoryLookupResponse,
    response_model_exclude_none=True
)
async def categories_by_barcode(request: Request):
    """
    Resolve barcodes, vendor codes or nmIDs to marketplace categories.

    Accepts an object body or a bare array of barcodes.
    """
    try:
        sync_request = await read_sync_request(request)
        logger.info(
            "category_lookup_requested",
            barcodes=len(sync_request.barcodes),
            nm_ids=len(sync_request.nm_ids),
            vendor_codes=len(sync_request.vendor_codes),
            debug=sync_request.debug
        )
        service = get_category_lookup_service()
        return await run_in_threadpool(service.run, sync_request)
    except Exception as e:
        return handle_error(e, "categories_by_barcode")
