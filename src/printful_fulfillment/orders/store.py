"""Order store interface and an in-memory implementation."""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

from printful_fulfillment.exceptions import OrderNotFoundError
from printful_fulfillment.orders.models import LocalOrder

logger = logging.getLogger(__name__)


class OrderStore(ABC):
    """
    Abstract base class for the local order store.

    The fulfillment workflows only read orders and patch their metadata.
    Implementations must apply a patch as a merge against the current
    stored metadata so unrelated keys written by other processes survive.
    """

    @abstractmethod
    async def get_order(self, order_id: str) -> LocalOrder | None:
        """
        Fetch an order by ID.

        Args:
            order_id: The local order ID.

        Returns:
            LocalOrder if found, None otherwise.
        """
        ...

    @abstractmethod
    async def update_metadata(
        self,
        order_id: str,
        values: Mapping[str, Any] | None = None,
        remove: Iterable[str] = (),
    ) -> LocalOrder:
        """
        Merge a patch into an order's metadata.

        Args:
            order_id: The local order ID.
            values: Keys to set (overwriting only those keys).
            remove: Keys to delete if present.

        Returns:
            The updated LocalOrder.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        ...


class InMemoryOrderStore(OrderStore):
    """
    Simple in-memory order store for development/testing.

    In production, the e-commerce backend's own order service implements
    OrderStore. Orders are copied on the way in and out so callers never
    hold a reference to stored state.
    """

    def __init__(self, orders: Iterable[LocalOrder] = ()) -> None:
        self._orders: dict[str, LocalOrder] = {}
        self._lock = asyncio.Lock()
        for order in orders:
            self.add_order(order)

    def add_order(self, order: LocalOrder) -> None:
        """Add or replace an order in the store."""
        self._orders[order.id] = copy.deepcopy(order)

    def remove_order(self, order_id: str) -> bool:
        """Remove an order from the store."""
        return self._orders.pop(order_id, None) is not None

    def list_orders(self) -> list[LocalOrder]:
        """List all orders."""
        return [copy.deepcopy(order) for order in self._orders.values()]

    async def get_order(self, order_id: str) -> LocalOrder | None:
        order = self._orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def update_metadata(
        self,
        order_id: str,
        values: Mapping[str, Any] | None = None,
        remove: Iterable[str] = (),
    ) -> LocalOrder:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)

            for key in remove:
                order.metadata.pop(key, None)
            if values:
                order.metadata.update(values)

            logger.debug(f"Patched metadata for order {order_id}: keys={sorted(order.metadata)}")
            return copy.deepcopy(order)
