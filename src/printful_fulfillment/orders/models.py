"""Local order model owned by the e-commerce backend."""

from dataclasses import dataclass, field
from typing import Any

# Metadata keys written by the fulfillment workflows
PRINTFUL_ORDER_ID = "printful_order_id"
PRINTFUL_EXTERNAL_ID = "printful_external_id"
PRINTFUL_CREATED_AT = "printful_created_at"

LINKAGE_KEYS = (PRINTFUL_ORDER_ID, PRINTFUL_EXTERNAL_ID, PRINTFUL_CREATED_AT)

PRINTFUL_STATUS = "printful_status"
PRINTFUL_LAST_WEBHOOK = "printful_last_webhook"
PRINTFUL_LAST_UPDATE = "printful_last_update"


@dataclass
class Address:
    """Postal address on a local order."""

    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    address_1: str | None = None
    address_2: str | None = None
    city: str | None = None
    province: str | None = None
    postal_code: str | None = None
    country_code: str | None = None
    phone: str | None = None


@dataclass
class OrderLineItem:
    """Order line item. unit_price is in minor currency units (cents)."""

    id: str
    title: str | None = None
    quantity: int = 1
    unit_price: int = 0
    variant_sku: str | None = None


@dataclass
class LocalOrder:
    """
    An order record owned by the order store.

    The metadata mapping is the only place cross-system linkage is kept.
    An order whose metadata carries printful_order_id is considered linked.
    """

    id: str
    email: str | None = None
    shipping_address: Address | None = None
    billing_address: Address | None = None
    items: list[OrderLineItem] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def printful_order_id(self) -> str | None:
        value = self.metadata.get(PRINTFUL_ORDER_ID)
        return str(value) if value else None

    @property
    def is_linked(self) -> bool:
        return self.printful_order_id is not None
