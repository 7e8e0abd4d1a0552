"""Reconciliation of Printful webhook events into local order metadata."""

import logging
from dataclasses import dataclass, field
from typing import Any

from printful_fulfillment.exceptions import OrderNotFoundError
from printful_fulfillment.observability.logging import LogContext
from printful_fulfillment.orders.locks import InMemoryOrderLock, OrderLock
from printful_fulfillment.orders.models import (
    PRINTFUL_LAST_UPDATE,
    PRINTFUL_LAST_WEBHOOK,
    PRINTFUL_STATUS,
)
from printful_fulfillment.orders.store import OrderStore
from printful_fulfillment.printful.mapping import get_carrier_name, map_webhook_status
from printful_fulfillment.printful.models import WebhookData, WebhookEvent, WebhookType

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationOutcome:
    """Result of applying one webhook event to a local order."""

    local_order_id: str
    printful_order_id: str | None
    webhook_type: str
    applied: bool = False
    updated_status: str | None = None
    reason: str | None = None
    patch: dict[str, Any] = field(default_factory=dict)
    # Skips are successful no-ops; the webhook is still acknowledged
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "local_order_id": self.local_order_id,
            "printful_order_id": self.printful_order_id,
            "webhook_type": self.webhook_type,
            "applied": self.applied,
            "updated_status": self.updated_status,
            "reason": self.reason,
            "success": self.success,
        }


def build_status_patch(webhook_type: str, data: WebhookData, event_created: int) -> dict[str, Any]:
    """
    Build the metadata patch for a webhook event.

    The patch depends only on the event, so applying the same delivery
    twice leaves the same metadata behind.

    Args:
        webhook_type: Raw webhook type string.
        data: Webhook data (order and/or shipment).
        event_created: Provider timestamp of the event.

    Returns:
        Metadata keys to set.
    """
    patch: dict[str, Any] = {
        PRINTFUL_LAST_WEBHOOK: webhook_type,
        PRINTFUL_LAST_UPDATE: event_created,
    }

    status = map_webhook_status(webhook_type)
    if status:
        patch[PRINTFUL_STATUS] = status

    if webhook_type == WebhookType.PACKAGE_SHIPPED.value and data.shipment:
        shipment = data.shipment
        patch.update({
            "printful_tracking_number": shipment.tracking_number,
            "printful_tracking_url": shipment.tracking_url,
            "printful_carrier": get_carrier_name(shipment.carrier),
            "printful_service": shipment.service,
            "printful_shipped_at": shipment.shipped_at,
            "printful_ship_date": shipment.ship_date,
        })
    elif webhook_type == WebhookType.PACKAGE_RETURNED.value:
        patch["printful_returned_at"] = event_created
    elif webhook_type == WebhookType.ORDER_FAILED.value:
        order_status = str(getattr(data.order.status, "value", data.order.status)) if data.order else None
        patch["printful_failure_reason"] = order_status or "unknown"
        patch["printful_failed_at"] = event_created
    elif webhook_type == WebhookType.ORDER_CANCELED.value:
        patch["printful_canceled_at"] = event_created

    return patch


class ReconcileOrderWorkflow:
    """
    Single-step workflow applying a webhook event to a local order.

    - Missing local orders are a logged no-op: the webhook must not be
      reported as failed because this environment has no matching record.
    - Events older than the last applied one are skipped, since Printful
      may deliver out of order.
    - The stale check and the write run under a per-order lock, so two
      concurrent deliveries cannot both pass the check.
    - No compensation: a status mirror update has nothing to undo.
    """

    name = "handle-printful-order-update"

    def __init__(self, store: OrderStore, lock: OrderLock | None = None) -> None:
        self.store = store
        self.lock = lock or InMemoryOrderLock()

    @staticmethod
    def lock_key(local_order_id: str) -> str:
        """Lock name, separate from the create workflow's so a long create run never blocks a webhook."""
        return f"reconcile:{local_order_id}"

    async def run(
        self,
        local_order_id: str,
        printful_order_id: str | None,
        webhook_type: str,
        webhook_data: WebhookData,
        event_created: int,
    ) -> ReconciliationOutcome:
        """
        Apply one webhook event.

        Args:
            local_order_id: Local order ID (the remote order's external_id).
            printful_order_id: Printful order ID, for logging/outcome only.
            webhook_type: Raw webhook type.
            webhook_data: Webhook data block.
            event_created: Provider timestamp of the event.

        Returns:
            ReconciliationOutcome.
        """
        outcome = ReconciliationOutcome(
            local_order_id=local_order_id,
            printful_order_id=printful_order_id,
            webhook_type=webhook_type,
        )

        with LogContext(order_id=local_order_id, workflow=self.name, webhook_type=webhook_type):
            async with self.lock.hold(self.lock_key(local_order_id)):
                order = await self.store.get_order(local_order_id)
                if order is None:
                    logger.warning(f"Local order {local_order_id} not found for Printful webhook {webhook_type}")
                    outcome.reason = "order_not_found"
                    return outcome

                last_update = order.metadata.get(PRINTFUL_LAST_UPDATE)
                if isinstance(last_update, int | float) and event_created < last_update:
                    logger.info(
                        f"Skipping stale {webhook_type} for order {local_order_id}: "
                        f"event {event_created} older than last update {last_update}"
                    )
                    outcome.reason = "stale_event"
                    return outcome

                patch = build_status_patch(webhook_type, webhook_data, event_created)
                try:
                    await self.store.update_metadata(local_order_id, values=patch)
                except OrderNotFoundError:
                    logger.warning(
                        f"Local order {local_order_id} disappeared before webhook {webhook_type} was applied"
                    )
                    outcome.reason = "order_not_found"
                    return outcome

            outcome.applied = True
            outcome.patch = patch
            outcome.updated_status = patch.get(PRINTFUL_STATUS)
            logger.info(f"Updated order {local_order_id} status based on webhook {webhook_type}")
            return outcome

    async def run_event(self, event: WebhookEvent) -> ReconciliationOutcome | None:
        """
        Apply an event carrying an embedded order.

        Returns:
            None if the event has no order or is not a status-bearing type.
        """
        order = event.data.order
        if order is None or not order.external_id or map_webhook_status(event.type) is None:
            return None

        return await self.run(
            local_order_id=order.external_id,
            printful_order_id=str(order.id),
            webhook_type=event.type,
            webhook_data=event.data,
            event_created=event.created,
        )
