"""Printful integration: API client, order mapping and fulfillment service."""

from printful_fulfillment.printful.client import Page, PrintfulClient, PrintfulConfig
from printful_fulfillment.printful.mapping import (
    format_retail_price,
    get_carrier_name,
    map_order_to_printful,
    map_webhook_status,
    parse_retail_price,
)
from printful_fulfillment.printful.models import (
    CreateOrderRequest,
    Recipient,
    RemoteOrder,
    RemoteOrderStatus,
    Shipment,
    WebhookEvent,
    WebhookType,
)
from printful_fulfillment.printful.results import ErrorKind, PrintfulError, ServiceResult
from printful_fulfillment.printful.service import PrintfulService

__all__ = [
    # Client
    "Page",
    "PrintfulClient",
    "PrintfulConfig",
    # Results
    "ErrorKind",
    "PrintfulError",
    "ServiceResult",
    # Models
    "CreateOrderRequest",
    "Recipient",
    "RemoteOrder",
    "RemoteOrderStatus",
    "Shipment",
    "WebhookEvent",
    "WebhookType",
    # Mapping
    "format_retail_price",
    "get_carrier_name",
    "map_order_to_printful",
    "map_webhook_status",
    "parse_retail_price",
    # Service
    "PrintfulService",
]
