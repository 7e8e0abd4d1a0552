"""Mapping of local orders into Printful's order schema."""

from decimal import Decimal

from printful_fulfillment.exceptions import OrderValidationError
from printful_fulfillment.orders.models import LocalOrder, OrderLineItem
from printful_fulfillment.printful.models import (
    CreateOrderItem,
    CreateOrderRequest,
    Recipient,
    WebhookType,
)

DEFAULT_SHIPPING_METHOD = "STANDARD"
DEFAULT_COUNTRY_CODE = "US"

_CENTS = Decimal(100)
_TWO_PLACES = Decimal("0.01")

# Webhook type -> value stored in printful_status metadata
WEBHOOK_STATUS_MAP: dict[WebhookType, str] = {
    WebhookType.PACKAGE_SHIPPED: "shipped",
    WebhookType.PACKAGE_RETURNED: "returned",
    WebhookType.ORDER_FAILED: "failed",
    WebhookType.ORDER_CANCELED: "canceled",
}

# Carrier codes Printful reports in shipments
CARRIER_MAP: dict[str, str] = {
    "usps": "USPS",
    "ups": "UPS",
    "fedex": "FedEx",
    "dhl": "DHL",
    "dhl_express": "DHL Express",
    "royal_mail": "Royal Mail",
    "canada_post": "Canada Post",
    "australia_post": "Australia Post",
    "asendia": "Asendia",
    "globegistics": "Globegistics",
}


def format_retail_price(minor_units: int | None) -> str:
    """
    Convert a minor-unit amount into Printful's decimal price string.

    Uses Decimal so the request body never carries binary float noise.

    Args:
        minor_units: Amount in cents (e.g., 2500).

    Returns:
        Two-place decimal string (e.g., "25.00").
    """
    amount = Decimal(minor_units or 0) / _CENTS
    return str(amount.quantize(_TWO_PLACES))


def parse_retail_price(price: str) -> int:
    """
    Convert a Printful price string back into minor units.

    Args:
        price: Decimal string (e.g., "25.00").

    Returns:
        Amount in cents (e.g., 2500).
    """
    return int((Decimal(price) * _CENTS).to_integral_value())


def map_line_item(item: OrderLineItem) -> CreateOrderItem:
    """Map a local line item to a Printful order item."""
    return CreateOrderItem(
        external_variant_id=item.variant_sku or item.id or "",
        quantity=item.quantity,
        retail_price=format_retail_price(item.unit_price),
        name=item.title or "",
    )


def map_order_to_printful(order: LocalOrder) -> CreateOrderRequest:
    """
    Map a local order to a Printful order-creation request.

    Total for any order with a shipping address: missing optional fields
    are omitted or defaulted, never invented.

    Args:
        order: The local order.

    Returns:
        CreateOrderRequest ready to POST to /orders.

    Raises:
        OrderValidationError: If the order has no shipping address.
    """
    address = order.shipping_address
    if address is None:
        raise OrderValidationError(
            f"Order {order.id} must have a shipping address",
            detail="Order must have a shipping address",
        )

    # Printful accepts the code in both fields
    country_code = (address.country_code or DEFAULT_COUNTRY_CODE).upper()

    recipient = Recipient(
        name=f"{address.first_name or ''} {address.last_name or ''}",
        company=address.company or None,
        address1=address.address_1 or "",
        address2=address.address_2 or None,
        city=address.city or "",
        state_code=address.province or None,
        state_name=address.province or None,
        country_code=country_code,
        country_name=country_code,
        zip=address.postal_code or "",
        phone=address.phone or None,
        email=order.email or None,
    )

    return CreateOrderRequest(
        external_id=order.id,
        shipping=DEFAULT_SHIPPING_METHOD,
        recipient=recipient,
        items=[map_line_item(item) for item in order.items],
    )


def map_webhook_status(webhook_type: str) -> str | None:
    """
    Map a webhook type to the printful_status stored on the local order.

    Returns:
        Status string, or None for types that carry no order status.
    """
    try:
        return WEBHOOK_STATUS_MAP.get(WebhookType(webhook_type))
    except ValueError:
        return None


def get_carrier_name(carrier_code: str | None) -> str | None:
    """Get human-readable carrier name, falling back to the raw code."""
    if not carrier_code:
        return carrier_code
    return CARRIER_MAP.get(carrier_code.lower().strip(), carrier_code)
