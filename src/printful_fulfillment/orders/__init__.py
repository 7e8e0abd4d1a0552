"""Local order model, store interface and per-order locks."""

from printful_fulfillment.orders.locks import InMemoryOrderLock, OrderLock, RedisOrderLock
from printful_fulfillment.orders.models import Address, LocalOrder, OrderLineItem
from printful_fulfillment.orders.store import InMemoryOrderStore, OrderStore

__all__ = [
    # Models
    "Address",
    "LocalOrder",
    "OrderLineItem",
    # Store
    "OrderStore",
    "InMemoryOrderStore",
    # Locks
    "OrderLock",
    "InMemoryOrderLock",
    "RedisOrderLock",
]
