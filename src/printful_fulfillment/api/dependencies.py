"""Application components and FastAPI dependency providers."""

from dataclasses import dataclass

import redis.asyncio as redis
from fastapi import HTTPException, Request, status

from printful_fulfillment.config import Settings
from printful_fulfillment.orders.locks import OrderLock
from printful_fulfillment.orders.store import OrderStore
from printful_fulfillment.printful.client import PrintfulClient
from printful_fulfillment.printful.service import PrintfulService
from printful_fulfillment.workflows.fulfillment import CreateFulfillmentWorkflow
from printful_fulfillment.workflows.reconciliation import ReconcileOrderWorkflow


@dataclass
class AppComponents:
    """Everything the routes need, wired once in the lifespan."""

    settings: Settings
    client: PrintfulClient
    service: PrintfulService
    store: OrderStore
    lock: OrderLock
    fulfillment: CreateFulfillmentWorkflow
    reconciliation: ReconcileOrderWorkflow
    redis_client: redis.Redis | None = None


def get_components(request: Request) -> AppComponents:
    """Get the components attached to app state."""
    components = getattr(request.app.state, "components", None)
    if components is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return components


def get_printful_service(request: Request) -> PrintfulService:
    return get_components(request).service


def get_fulfillment_workflow(request: Request) -> CreateFulfillmentWorkflow:
    return get_components(request).fulfillment


def get_reconciliation_workflow(request: Request) -> ReconcileOrderWorkflow:
    return get_components(request).reconciliation


def get_app_settings(request: Request) -> Settings:
    return get_components(request).settings
