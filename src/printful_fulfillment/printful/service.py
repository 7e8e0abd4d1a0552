"""Printful fulfillment service: order lifecycle, catalog reads and webhooks."""

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from printful_fulfillment.orders.models import LocalOrder
from printful_fulfillment.printful.client import Page, PrintfulClient
from printful_fulfillment.printful.mapping import map_order_to_printful
from printful_fulfillment.printful.models import (
    CatalogProduct,
    CatalogVariant,
    CreateOrderItem,
    Recipient,
    RemoteOrder,
    ShippingRate,
    StoreInfo,
    SyncProduct,
    SyncVariant,
    WebhookEvent,
    WebhookType,
)
from printful_fulfillment.printful.results import ErrorKind, PrintfulError, ServiceResult

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class PrintfulService:
    """
    Order lifecycle operations on top of PrintfulClient.

    Every operation returns a ServiceResult. Mapping a local order that
    has no shipping address raises OrderValidationError instead, since
    that is a caller precondition and not an external failure.

    Webhook handlers only log at this layer; local order updates are the
    reconciliation workflow's job, so this service never touches the
    order store.
    """

    def __init__(self, client: PrintfulClient) -> None:
        """
        Initialize the service.

        Args:
            client: Configured Printful API client.
        """
        self.client = client
        self.webhook_secret = client.config.webhook_secret

        self._webhook_handlers: dict[WebhookType, Callable[[WebhookEvent], Awaitable[None]]] = {
            WebhookType.PACKAGE_SHIPPED: self._handle_package_shipped,
            WebhookType.PACKAGE_RETURNED: self._handle_package_returned,
            WebhookType.ORDER_FAILED: self._handle_order_failed,
            WebhookType.ORDER_CANCELED: self._handle_order_canceled,
        }

    # =========================================================================
    # Store
    # =========================================================================

    async def get_store_info(self) -> ServiceResult[StoreInfo]:
        """Get store information (GET /store)."""
        result = await self.client.request("/store")
        return self._parse(result, StoreInfo, "Failed to get store info")

    async def test_connection(self) -> ServiceResult[StoreInfo]:
        """
        Check that an API key is configured and accepted.

        Returns:
            ServiceResult with the store info; a configuration error
            without calling Printful when no API key is set.
        """
        if not self.client.config.api_key:
            return ServiceResult.fail(
                PrintfulError(
                    message="PRINTFUL_API_KEY not configured",
                    reason="not_configured",
                    code=0,
                    kind=ErrorKind.CONFIGURATION,
                )
            )
        return await self.get_store_info()

    # =========================================================================
    # Orders
    # =========================================================================

    async def create_order(self, order: LocalOrder) -> ServiceResult[RemoteOrder]:
        """
        Create a Printful order from a local order (POST /orders).

        The order is created as a draft; confirm_order submits it.

        Raises:
            OrderValidationError: If the order has no shipping address.
        """
        request = map_order_to_printful(order)
        result = await self.client.request("/orders", "POST", request.to_payload())
        parsed = self._parse(result, RemoteOrder, f"Failed to create Printful order for {order.id}")

        if parsed.success:
            logger.info(f"Created Printful order {parsed.data.id} for local order {order.id}")
        return parsed

    async def get_order(self, printful_order_id: str | int) -> ServiceResult[RemoteOrder]:
        """Get a Printful order (GET /orders/{id}).

        Printful also accepts "@<external_id>" to look up by local order ID.
        """
        result = await self.client.request(f"/orders/{printful_order_id}")
        return self._parse(result, RemoteOrder, f"Failed to get Printful order {printful_order_id}")

    async def list_orders(
        self,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> ServiceResult[list[RemoteOrder]]:
        """List Printful orders (GET /orders), optionally filtered by status."""
        result = await self.list_orders_page(status=status, limit=limit, offset=offset)
        if not result.success:
            return ServiceResult.fail(result.error)
        return self._parse_list(
            ServiceResult.ok(result.data.items), RemoteOrder, "Failed to get Printful orders"
        )

    async def list_orders_page(
        self,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> ServiceResult[Page]:
        """List Printful orders keeping the paging totals."""
        result = await self.client.request_page(
            "/orders",
            params={"limit": limit, "offset": offset, "status": status},
        )
        if not result.success:
            logger.error(f"Failed to get Printful orders: {result.error}")
        return result

    async def cancel_order(self, printful_order_id: str | int) -> ServiceResult[Any]:
        """Cancel a Printful order (DELETE /orders/{id})."""
        result = await self.client.request(f"/orders/{printful_order_id}", "DELETE")
        if not result.success:
            logger.error(f"Failed to cancel Printful order {printful_order_id}: {result.error}")
            return result

        logger.info(f"Canceled Printful order {printful_order_id}")
        return result

    async def confirm_order(self, printful_order_id: str | int) -> ServiceResult[RemoteOrder]:
        """Submit a draft order for fulfillment (POST /orders/{id}/confirm)."""
        result = await self.client.request(f"/orders/{printful_order_id}/confirm", "POST")
        parsed = self._parse(result, RemoteOrder, f"Failed to confirm Printful order {printful_order_id}")

        if parsed.success:
            logger.info(f"Confirmed Printful order {printful_order_id} for fulfillment")
        return parsed

    async def get_shipping_rates(
        self,
        recipient: Recipient,
        items: list[CreateOrderItem],
    ) -> ServiceResult[list[ShippingRate]]:
        """Quote shipping for a recipient and items (POST /shipping/rates)."""
        body = {
            "recipient": recipient.model_dump(mode="json", exclude_none=True),
            "items": [item.model_dump(mode="json", exclude_none=True) for item in items],
        }
        result = await self.client.request("/shipping/rates", "POST", body)
        return self._parse_list(result, ShippingRate, "Failed to get shipping rates")

    # =========================================================================
    # Sync products and catalog
    # =========================================================================

    async def get_sync_products(self) -> ServiceResult[list[SyncProduct]]:
        """Get products synced to the store (GET /sync/products)."""
        result = await self.client.request("/sync/products")
        return self._parse_list(result, SyncProduct, "Failed to get sync products")

    async def get_sync_variants(self, sync_product_id: str | int) -> ServiceResult[list[SyncVariant]]:
        """Get variants of a sync product (GET /sync/products/{id})."""
        result = await self.client.request(f"/sync/products/{sync_product_id}")
        if result.success and isinstance(result.data, dict):
            result = ServiceResult.ok(result.data.get("sync_variants", []))
        return self._parse_list(
            result, SyncVariant, f"Failed to get sync variants for product {sync_product_id}"
        )

    async def get_catalog_products(
        self,
        category_id: int | None = None,
    ) -> ServiceResult[list[CatalogProduct]]:
        """Get catalog products (GET /products[?category_id=])."""
        params = {"category_id": category_id} if category_id else None
        result = await self.client.request("/products", params=params)
        return self._parse_list(result, CatalogProduct, "Failed to get catalog products")

    async def get_catalog_variants(self, product_id: int) -> ServiceResult[list[CatalogVariant]]:
        """Get variants of a catalog product (GET /products/{id})."""
        result = await self.client.request(f"/products/{product_id}")
        if result.success and isinstance(result.data, dict):
            result = ServiceResult.ok(result.data.get("variants", []))
        return self._parse_list(
            result, CatalogVariant, f"Failed to get catalog variants for product {product_id}"
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    def verify_signature(self, payload: bytes, signature: str | None) -> bool:
        """
        Verify a webhook signature using HMAC-SHA256.

        The signature is the hex digest of the raw request body keyed
        with the shared webhook secret.

        With no secret configured verification is skipped and every
        payload is accepted. This is a development convenience; set
        PRINTFUL_WEBHOOK_SECRET in any deployed environment.

        Args:
            payload: Raw request body bytes.
            signature: Signature from the X-Printful-Signature header.

        Returns:
            True if signature is valid (or verification is disabled).
        """
        if not self.webhook_secret:
            logger.warning("Webhook secret not configured, skipping signature verification")
            return True

        if not signature:
            return False

        expected_signature = hmac.new(
            self.webhook_secret.encode("utf-8"),
            payload,
            hashlib.sha256,
        ).hexdigest()

        # Use constant-time comparison to prevent timing attacks
        return hmac.compare_digest(expected_signature, signature.strip().lower())

    async def handle_webhook(
        self,
        payload: bytes,
        signature: str | None,
    ) -> ServiceResult[WebhookEvent]:
        """
        Verify and dispatch a webhook delivery.

        Unknown event types are logged and acknowledged: Printful retries
        on failure responses, and harmless events must not be retried.

        Args:
            payload: Raw request body bytes.
            signature: Signature header value.

        Returns:
            ServiceResult with the parsed WebhookEvent.
        """
        if not self.verify_signature(payload, signature):
            logger.warning("Rejected Printful webhook with invalid signature")
            return ServiceResult.fail(
                PrintfulError(
                    message="Invalid webhook signature",
                    reason="invalid_signature",
                    code=401,
                    kind=ErrorKind.SIGNATURE,
                )
            )

        try:
            raw = json.loads(payload)
            event = WebhookEvent.model_validate(raw)
        except (ValueError, ValidationError) as e:
            event = self._parse_unhandled_event(raw if isinstance(e, ValidationError) else None)
            if event is None:
                logger.error(f"Failed to parse Printful webhook payload: {e}")
                return ServiceResult.fail(
                    PrintfulError(
                        message="Invalid webhook payload",
                        reason="invalid_payload",
                        code=400,
                        kind=ErrorKind.VALIDATION,
                    )
                )

        logger.info(f"Processing Printful webhook: {event.type} (retries={event.retries})")

        handler = self._webhook_handlers.get(event.event_type) if event.event_type else None
        if handler is None:
            logger.warning(f"Unhandled webhook type: {event.type}")
            return ServiceResult.ok(event)

        await handler(event)
        return ServiceResult.ok(event)

    async def _handle_package_shipped(self, event: WebhookEvent) -> None:
        order, shipment = event.data.order, event.data.shipment
        if not order or not shipment:
            return
        logger.info(f"Order {order.external_id} shipped with tracking: {shipment.tracking_number}")

    async def _handle_package_returned(self, event: WebhookEvent) -> None:
        if event.data.order:
            logger.info(f"Order {event.data.order.external_id} was returned")

    async def _handle_order_failed(self, event: WebhookEvent) -> None:
        if event.data.order:
            logger.error(f"Order {event.data.order.external_id} failed in Printful")

    async def _handle_order_canceled(self, event: WebhookEvent) -> None:
        if event.data.order:
            logger.info(f"Order {event.data.order.external_id} was canceled in Printful")

    # =========================================================================
    # Parsing helpers
    # =========================================================================

    def _parse_unhandled_event(self, raw: Any) -> WebhookEvent | None:
        """
        Envelope-only parse for event types this service does not handle.

        Their data block is never read, so a shape we do not model must
        not turn the delivery into a 400 that Printful keeps retrying.
        """
        if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
            return None
        envelope = {key: raw[key] for key in ("type", "created", "retries", "store") if key in raw}
        try:
            event = WebhookEvent.model_validate(envelope)
        except ValidationError:
            return None
        if event.event_type in self._webhook_handlers:
            return None
        return event

    def _parse(self, result: ServiceResult, model: type[M], context: str) -> ServiceResult[M]:
        if not result.success:
            logger.error(f"{context}: {result.error}")
            return result
        try:
            return ServiceResult.ok(model.model_validate(result.data))
        except ValidationError as e:
            return self._invalid_response(context, e)

    def _parse_list(
        self,
        result: ServiceResult,
        model: type[M],
        context: str,
    ) -> ServiceResult[list[M]]:
        if not result.success:
            logger.error(f"{context}: {result.error}")
            return result
        try:
            return ServiceResult.ok(TypeAdapter(list[model]).validate_python(result.data or []))
        except ValidationError as e:
            return self._invalid_response(context, e)

    def _invalid_response(self, context: str, exc: ValidationError) -> ServiceResult:
        logger.error(f"{context}: unexpected response shape: {exc}")
        return ServiceResult.fail(
            PrintfulError(
                message=f"Unexpected response from Printful: {exc.error_count()} validation errors",
                reason="invalid_response",
                code=502,
                kind=ErrorKind.API,
            )
        )
