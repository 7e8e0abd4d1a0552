"""FastAPI application server."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from printful_fulfillment.api.dependencies import AppComponents
from printful_fulfillment.api.middleware import RequestLoggingMiddleware
from printful_fulfillment.api.routes import router as admin_router
from printful_fulfillment.api.webhooks import router as webhooks_router
from printful_fulfillment.config import Settings, get_settings
from printful_fulfillment.exceptions import FulfillmentError
from printful_fulfillment.observability.logging import configure_logging
from printful_fulfillment.orders.locks import InMemoryOrderLock, OrderLock, RedisOrderLock
from printful_fulfillment.orders.store import InMemoryOrderStore, OrderStore
from printful_fulfillment.printful.client import PrintfulClient, PrintfulConfig
from printful_fulfillment.printful.service import PrintfulService
from printful_fulfillment.workflows.fulfillment import CreateFulfillmentWorkflow
from printful_fulfillment.workflows.reconciliation import ReconcileOrderWorkflow

logger = logging.getLogger(__name__)


async def _connect_lock(settings: Settings) -> tuple[OrderLock, redis.Redis | None]:
    """Use a Redis lock when REDIS_URL is reachable, else an in-process lock."""
    if settings.redis_url:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        try:
            await client.ping()
        except (redis.ConnectionError, OSError) as e:
            logger.warning("Redis not available, using in-process order locks: %s", e, exc_info=True)
            await client.aclose()
        else:
            logger.info("Redis connected; using distributed order locks")
            lock = RedisOrderLock(
                client,
                ttl_seconds=settings.order_lock_ttl_seconds,
                wait_seconds=settings.order_lock_wait_seconds,
            )
            return lock, client

    if settings.service_environment == "production":
        logger.warning(
            "Production: REDIS_URL not set; order locks only guard a single process."
        )
    return InMemoryOrderLock(wait_seconds=settings.order_lock_wait_seconds), None


async def build_components(
    settings: Settings,
    order_store: OrderStore | None = None,
    client: PrintfulClient | None = None,
) -> AppComponents:
    """Wire the client, service, store, lock and workflows."""
    client = client or PrintfulClient(PrintfulConfig.from_settings(settings))
    service = PrintfulService(client)
    store = order_store or InMemoryOrderStore()
    lock, redis_client = await _connect_lock(settings)

    return AppComponents(
        settings=settings,
        client=client,
        service=service,
        store=store,
        lock=lock,
        fulfillment=CreateFulfillmentWorkflow(
            service,
            store,
            lock=lock,
            max_attempts=settings.printful_max_attempts,
            backoff_seconds=settings.printful_retry_backoff_seconds,
        ),
        reconciliation=ReconcileOrderWorkflow(store, lock=lock),
        redis_client=redis_client,
    )


def create_app(
    settings: Settings | None = None,
    order_store: OrderStore | None = None,
    client: PrintfulClient | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment settings).
        order_store: The backend's order store; an in-memory store is used if omitted.
        client: Pre-built Printful client (mainly for tests).
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(level=settings.log_level, json_format=settings.log_json)
        logger.info("Starting Printful fulfillment service...")

        if not settings.printful_api_key:
            logger.warning("PRINTFUL_API_KEY not configured")
        if not settings.printful_webhook_secret:
            logger.warning(
                "PRINTFUL_WEBHOOK_SECRET not configured: webhook signatures are NOT verified"
            )
        if order_store is None:
            logger.warning("No order store provided; using in-memory order store")

        components = await build_components(settings, order_store=order_store, client=client)
        app.state.components = components
        logger.info("Printful fulfillment service ready")

        yield

        logger.info("Shutting down Printful fulfillment service...")
        await components.client.close()
        if components.redis_client:
            await components.redis_client.aclose()
            logger.info("Redis disconnected")
        app.state.components = None
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Creates Printful fulfillment orders and mirrors their status onto local orders.",
        lifespan=lifespan,
    )

    # Domain exception handler: map FulfillmentError to JSON response
    @app.exception_handler(FulfillmentError)
    async def fulfillment_error_handler(request: Request, exc: FulfillmentError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(admin_router)
    app.include_router(webhooks_router)

    @app.get("/health", include_in_schema=False)
    async def health():
        return {"status": "healthy", "version": settings.api_version}

    return app


def run() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "printful_fulfillment.api.server:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
    )
