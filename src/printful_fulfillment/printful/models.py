"""Pydantic models for Printful API payloads."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RemoteOrderStatus(str, Enum):
    """Order statuses reported by Printful."""

    DRAFT = "draft"  # Created, not yet submitted for fulfillment
    PENDING = "pending"  # Submitted, waiting to be processed
    FAILED = "failed"  # Rejected (bad address, missing files, ...)
    CANCELED = "canceled"
    ONHOLD = "onhold"  # Needs attention from the store owner
    INPROCESS = "inprocess"  # In production
    PARTIAL = "partial"  # Some items shipped
    FULFILLED = "fulfilled"  # All items shipped


class WebhookType(str, Enum):
    """Webhook event types Printful delivers."""

    PACKAGE_SHIPPED = "package_shipped"
    PACKAGE_RETURNED = "package_returned"
    ORDER_FAILED = "order_failed"
    ORDER_CANCELED = "order_canceled"
    STOCK_UPDATED = "stock_updated"


class PrintfulModel(BaseModel):
    """Base for response models; unknown fields from the API are kept."""

    model_config = ConfigDict(extra="allow")


class Recipient(PrintfulModel):
    """Shipping recipient of a Printful order."""

    name: str = ""
    company: str | None = None
    address1: str = ""
    address2: str | None = None
    city: str = ""
    state_code: str | None = None
    state_name: str | None = None
    country_code: str = "US"
    country_name: str | None = None
    zip: str = ""
    phone: str | None = None
    email: str | None = None


class ProductRef(PrintfulModel):
    """Catalog product reference embedded in order items."""

    variant_id: int | None = None
    product_id: int | None = None
    image: str | None = None
    name: str | None = None


class OrderItem(PrintfulModel):
    """Item of an existing Printful order."""

    id: int | None = None
    external_id: str | None = None
    variant_id: int | None = None
    sync_variant_id: int | None = None
    external_variant_id: str | None = None
    quantity: int = 1
    price: str | None = None
    retail_price: str | None = None
    name: str | None = None
    product: ProductRef | None = None


class OrderCosts(PrintfulModel):
    """Cost breakdown of a Printful order (decimal strings)."""

    currency: str = "USD"
    subtotal: str | None = None
    discount: str | None = None
    shipping: str | None = None
    tax: str | None = None
    total: str | None = None


class ShipmentItem(PrintfulModel):
    item_id: int
    quantity: int


class Shipment(PrintfulModel):
    """Shipment of (part of) a Printful order."""

    id: int | None = None
    carrier: str | None = None
    service: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    created: int | None = None
    ship_date: str | None = None
    shipped_at: int | None = None
    reshipment: bool = False
    items: list[ShipmentItem] = Field(default_factory=list)


class RemoteOrder(PrintfulModel):
    """
    An order as Printful reports it.

    external_id holds the local order ID. The status here is
    authoritative; local metadata only mirrors it.
    """

    id: int
    external_id: str | None = None
    # Unlisted statuses (inreview, archived, ...) are kept as raw strings
    status: RemoteOrderStatus | str = Field(default=RemoteOrderStatus.DRAFT, union_mode="left_to_right")
    shipping: str | None = None
    shipping_service_name: str | None = None
    created: int | None = None
    updated: int | None = None
    recipient: Recipient | None = None
    items: list[OrderItem] = Field(default_factory=list)
    costs: OrderCosts | None = None
    retail_costs: OrderCosts | None = None
    shipments: list[Shipment] = Field(default_factory=list)
    shipment: Shipment | None = None


class CreateOrderItem(BaseModel):
    """Item in an order-creation request."""

    external_variant_id: str | None = None
    variant_id: int | None = None
    sync_variant_id: int | None = None
    quantity: int
    retail_price: str | None = None
    name: str | None = None


class CreateOrderRequest(BaseModel):
    """Body of POST /orders."""

    external_id: str
    shipping: str
    recipient: Recipient
    items: list[CreateOrderItem]

    def to_payload(self) -> dict[str, Any]:
        """JSON body with absent optional fields omitted."""
        return self.model_dump(mode="json", exclude_none=True)


class WebhookData(PrintfulModel):
    order: RemoteOrder | None = None
    shipment: Shipment | None = None


class WebhookEvent(PrintfulModel):
    """
    Webhook delivery from Printful.

    type is kept as the raw string so unknown event types still parse;
    event_type resolves it to a WebhookType when known.
    """

    type: str
    created: int = 0
    retries: int = 0
    store: int | None = None
    data: WebhookData = Field(default_factory=WebhookData)

    @property
    def event_type(self) -> WebhookType | None:
        try:
            return WebhookType(self.type)
        except ValueError:
            return None


class ShippingRate(PrintfulModel):
    id: str
    name: str
    rate: str
    currency: str = "USD"
    min_delivery_days: int | None = None
    max_delivery_days: int | None = None


class StoreInfo(PrintfulModel):
    id: int | None = None
    name: str | None = None
    type: str | None = None


class SyncProduct(PrintfulModel):
    """Product synced between the store and Printful."""

    id: int
    external_id: str | None = None
    name: str | None = None
    variants: int = 0
    synced: int = 0
    thumbnail_url: str | None = None
    is_ignored: bool = False


class SyncVariant(PrintfulModel):
    id: int
    external_id: str | None = None
    sync_product_id: int | None = None
    name: str | None = None
    synced: bool = False
    variant_id: int | None = None
    retail_price: str | None = None
    sku: str | None = None
    currency: str | None = None
    is_ignored: bool = False


class CatalogProduct(PrintfulModel):
    """Blank product from the Printful catalog."""

    id: int
    main_category_id: int | None = None
    type: str | None = None
    type_name: str | None = None
    title: str | None = None
    brand: str | None = None
    model: str | None = None
    image: str | None = None
    variant_count: int = 0
    currency: str | None = None
    is_discontinued: bool = False


class CatalogVariant(PrintfulModel):
    id: int
    product_id: int | None = None
    name: str | None = None
    size: str | None = None
    color: str | None = None
    color_code: str | None = None
    image: str | None = None
    price: str | None = None
    in_stock: bool = True
