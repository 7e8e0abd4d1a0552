"""Admin API routes for Printful fulfillment."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from printful_fulfillment.api.dependencies import (
    get_app_settings,
    get_fulfillment_workflow,
    get_printful_service,
)
from printful_fulfillment.config import Settings
from printful_fulfillment.exceptions import ProviderError
from printful_fulfillment.printful.results import ErrorKind, PrintfulError
from printful_fulfillment.printful.service import PrintfulService
from printful_fulfillment.workflows.fulfillment import CreateFulfillmentWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/printful", tags=["admin"])


class FulfillOrderRequest(BaseModel):
    """Request to create Printful fulfillment for a local order."""

    local_order_id: str = Field(..., min_length=1, description="ID of the local order")
    confirm_immediately: bool = Field(
        default=False,
        description="Submit the Printful order for production right away",
    )


def _provider_error(context: str, error: PrintfulError) -> ProviderError:
    """Translate a Printful failure into an HTTP-mapped error (404 stays 404)."""
    status_code = 404 if error.code == 404 else 502
    return ProviderError(context, detail=f"{context}: {error.message}", status_code=status_code)


@router.post("/fulfill", summary="Create Printful fulfillment for a local order")
async def fulfill_order(
    body: FulfillOrderRequest,
    workflow: CreateFulfillmentWorkflow = Depends(get_fulfillment_workflow),
) -> dict[str, Any]:
    """
    Run the create-fulfillment workflow.

    Re-running for an already linked order is safe and reports
    already_exists=true without creating anything.
    """
    outcome = await workflow.run(body.local_order_id, confirm_immediately=body.confirm_immediately)
    if not outcome.success:
        raise ProviderError(
            "Failed to create Printful order",
            detail=outcome.error or "Failed to create Printful order",
        )

    if outcome.already_exists:
        message = "Order already has Printful fulfillment"
    elif outcome.confirm_error:
        message = "Printful order created but confirmation failed"
    elif outcome.confirmed:
        message = "Order created and confirmed in Printful"
    else:
        message = "Order created in Printful"

    return {"message": message, **outcome.to_dict()}


@router.get("/orders", summary="List Printful orders")
async def list_orders(
    status: str | None = Query(default=None, description="Filter by Printful order status"),
    limit: int = Query(default=100, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    service: PrintfulService = Depends(get_printful_service),
) -> dict[str, Any]:
    result = await service.list_orders_page(status=status, limit=limit, offset=offset)
    if not result.success:
        raise _provider_error("Failed to fetch orders", result.error)

    page = result.data
    return {
        "orders": page.items,
        "paging": {"total": page.total, "offset": page.offset, "limit": page.limit},
        "success": True,
    }


@router.get("/orders/{printful_order_id}", summary="Get a Printful order")
async def get_order(
    printful_order_id: str,
    service: PrintfulService = Depends(get_printful_service),
) -> dict[str, Any]:
    result = await service.get_order(printful_order_id)
    if not result.success:
        raise _provider_error("Failed to fetch order", result.error)

    return {"order": result.data.model_dump(mode="json"), "success": True}


@router.delete("/orders/{printful_order_id}", summary="Cancel a Printful order")
async def cancel_order(
    printful_order_id: str,
    service: PrintfulService = Depends(get_printful_service),
) -> dict[str, Any]:
    result = await service.cancel_order(printful_order_id)
    if not result.success:
        raise _provider_error("Failed to cancel order", result.error)

    return {"message": "Order canceled successfully", "success": True}


@router.get("/status", summary="Printful connection status")
async def printful_status(
    service: PrintfulService = Depends(get_printful_service),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    store_info = await service.test_connection()

    if store_info.success:
        connection_status = "connected"
    elif store_info.error.kind == ErrorKind.CONFIGURATION:
        connection_status = "not_configured"
    else:
        connection_status = "failed"

    return {
        "connection_status": connection_status,
        "connection_error": store_info.error.message if store_info.error else None,
        "store_info": store_info.data.model_dump(mode="json") if store_info.success else None,
        "environment": {
            "api_key_configured": bool(settings.printful_api_key),
            "store_id_configured": bool(settings.printful_store_id),
            "webhook_secret_configured": bool(settings.printful_webhook_secret),
        },
        "success": True,
    }


@router.get("/sync", summary="List synced products")
async def get_sync_products(
    service: PrintfulService = Depends(get_printful_service),
) -> dict[str, Any]:
    result = await service.get_sync_products()
    if not result.success:
        raise _provider_error("Failed to fetch sync products", result.error)

    return {
        "sync_products": [p.model_dump(mode="json") for p in result.data],
        "success": True,
    }


@router.post("/sync", summary="Fetch catalog and synced products")
async def sync_products(
    service: PrintfulService = Depends(get_printful_service),
) -> dict[str, Any]:
    catalog = await service.get_catalog_products()
    if not catalog.success:
        raise _provider_error("Failed to fetch catalog products", catalog.error)

    synced = await service.get_sync_products()
    if not synced.success:
        raise _provider_error("Failed to fetch sync products", synced.error)

    logger.info(
        f"Fetched {len(catalog.data)} catalog products and {len(synced.data)} sync products"
    )
    return {
        "message": "Product catalog synced successfully",
        "catalog_products": [p.model_dump(mode="json") for p in catalog.data],
        "sync_products": [p.model_dump(mode="json") for p in synced.data],
        "success": True,
    }
