"""Printful order fulfillment synchronization."""

from printful_fulfillment.orders import (
    Address,
    InMemoryOrderLock,
    InMemoryOrderStore,
    LocalOrder,
    OrderLineItem,
    OrderLock,
    OrderStore,
    RedisOrderLock,
)
from printful_fulfillment.printful import (
    PrintfulClient,
    PrintfulConfig,
    PrintfulError,
    PrintfulService,
    ServiceResult,
)
from printful_fulfillment.workflows import (
    CreateFulfillmentWorkflow,
    FulfillmentOutcome,
    ReconcileOrderWorkflow,
    ReconciliationOutcome,
)

__version__ = "0.1.0"

__all__ = [
    # Orders
    "Address",
    "LocalOrder",
    "OrderLineItem",
    "OrderStore",
    "InMemoryOrderStore",
    "OrderLock",
    "InMemoryOrderLock",
    "RedisOrderLock",
    # Printful
    "PrintfulClient",
    "PrintfulConfig",
    "PrintfulError",
    "PrintfulService",
    "ServiceResult",
    # Workflows
    "CreateFulfillmentWorkflow",
    "FulfillmentOutcome",
    "ReconcileOrderWorkflow",
    "ReconciliationOutcome",
]
