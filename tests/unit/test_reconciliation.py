"""Unit tests for webhook reconciliation."""

import asyncio

import pytest

from printful_fulfillment.orders.locks import InMemoryOrderLock
from printful_fulfillment.orders.models import (
    PRINTFUL_LAST_UPDATE,
    PRINTFUL_LAST_WEBHOOK,
    PRINTFUL_ORDER_ID,
    PRINTFUL_STATUS,
)
from printful_fulfillment.orders.store import InMemoryOrderStore
from printful_fulfillment.printful.models import WebhookData, WebhookEvent
from printful_fulfillment.workflows.reconciliation import (
    ReconcileOrderWorkflow,
    build_status_patch,
)


class SlowReadStore(InMemoryOrderStore):
    """Store whose reads yield to other tasks, widening the read-to-write window."""

    async def get_order(self, order_id):
        order = await super().get_order(order_id)
        await asyncio.sleep(0.01)
        return order


def shipped_data(external_id: str = "order_1") -> WebhookData:
    return WebhookData.model_validate({
        "order": {"id": 9001, "external_id": external_id, "status": "fulfilled"},
        "shipment": {
            "id": 1,
            "carrier": "usps",
            "service": "USPS First Class Package",
            "tracking_number": "9400111899223",
            "tracking_url": "https://tools.usps.com/go/TrackConfirmAction?tLabels=9400111899223",
            "ship_date": "2024-01-15",
            "shipped_at": 1705312800,
        },
    })


@pytest.fixture
def store(sample_order):
    sample_order.metadata[PRINTFUL_ORDER_ID] = "9001"
    return InMemoryOrderStore([sample_order])


@pytest.fixture
def workflow(store):
    return ReconcileOrderWorkflow(store)


class TestBuildStatusPatch:
    """Tests for build_status_patch."""

    def test_shipped(self):
        patch = build_status_patch("package_shipped", shipped_data(), 1705312900)

        assert patch[PRINTFUL_STATUS] == "shipped"
        assert patch[PRINTFUL_LAST_WEBHOOK] == "package_shipped"
        assert patch[PRINTFUL_LAST_UPDATE] == 1705312900
        assert patch["printful_tracking_number"] == "9400111899223"
        assert patch["printful_carrier"] == "USPS"
        assert patch["printful_service"] == "USPS First Class Package"
        assert patch["printful_ship_date"] == "2024-01-15"
        assert patch["printful_shipped_at"] == 1705312800

    def test_failed_records_reason(self):
        data = WebhookData.model_validate({"order": {"id": 9001, "external_id": "order_1", "status": "failed"}})

        patch = build_status_patch("order_failed", data, 1)

        assert patch[PRINTFUL_STATUS] == "failed"
        assert patch["printful_failure_reason"] == "failed"

    def test_failed_without_order(self):
        patch = build_status_patch("order_failed", WebhookData(), 1)

        assert patch["printful_failure_reason"] == "unknown"

    def test_canceled_and_returned(self):
        assert build_status_patch("order_canceled", WebhookData(), 1)[PRINTFUL_STATUS] == "canceled"
        assert build_status_patch("package_returned", WebhookData(), 1)[PRINTFUL_STATUS] == "returned"

    def test_event_timestamps(self):
        """Returned, failed and canceled events are stamped with the event time."""
        assert build_status_patch("package_returned", WebhookData(), 7)["printful_returned_at"] == 7
        assert build_status_patch("order_failed", WebhookData(), 8)["printful_failed_at"] == 8
        assert build_status_patch("order_canceled", WebhookData(), 9)["printful_canceled_at"] == 9

        shipped = build_status_patch("package_shipped", shipped_data(), 10)
        assert "printful_canceled_at" not in shipped
        assert "printful_returned_at" not in shipped

    def test_no_tracking_for_other_types(self):
        patch = build_status_patch("package_returned", shipped_data(), 1)

        assert "printful_tracking_number" not in patch

    def test_deterministic(self):
        """The patch depends only on the event."""
        assert build_status_patch("package_shipped", shipped_data(), 5) == build_status_patch(
            "package_shipped", shipped_data(), 5
        )


class TestReconcileOrderWorkflow:
    """Tests for ReconcileOrderWorkflow.run."""

    @pytest.mark.asyncio
    async def test_applies_shipped_event(self, workflow, store):
        outcome = await workflow.run("order_1", "9001", "package_shipped", shipped_data(), 1705312900)

        assert outcome.applied
        assert outcome.success
        assert outcome.updated_status == "shipped"
        order = await store.get_order("order_1")
        assert order.metadata[PRINTFUL_STATUS] == "shipped"
        assert order.metadata["printful_tracking_number"] == "9400111899223"

    @pytest.mark.asyncio
    async def test_unrelated_metadata_preserved(self, workflow, store):
        await workflow.run("order_1", "9001", "package_shipped", shipped_data(), 1705312900)

        order = await store.get_order("order_1")
        assert order.metadata["source"] == "storefront"
        assert order.metadata[PRINTFUL_ORDER_ID] == "9001"

    @pytest.mark.asyncio
    async def test_redelivery_is_idempotent(self, workflow, store):
        """The same delivery applied twice leaves identical metadata."""
        await workflow.run("order_1", "9001", "package_shipped", shipped_data(), 1705312900)
        first = (await store.get_order("order_1")).metadata

        outcome = await workflow.run("order_1", "9001", "package_shipped", shipped_data(), 1705312900)

        assert outcome.applied
        assert (await store.get_order("order_1")).metadata == first

    @pytest.mark.asyncio
    async def test_stale_event_skipped(self, workflow, store):
        """An event older than the last applied one does not overwrite it."""
        await workflow.run("order_1", "9001", "package_shipped", shipped_data(), 200)
        before = (await store.get_order("order_1")).metadata

        outcome = await workflow.run("order_1", "9001", "order_canceled", WebhookData(), 100)

        assert not outcome.applied
        assert outcome.success
        assert outcome.reason == "stale_event"
        assert (await store.get_order("order_1")).metadata == before

    @pytest.mark.asyncio
    async def test_missing_order_is_noop(self, workflow, store):
        outcome = await workflow.run("unknown", "9001", "package_shipped", shipped_data("unknown"), 1)

        assert not outcome.applied
        assert outcome.success
        assert outcome.reason == "order_not_found"
        assert [o.id for o in store.list_orders()] == ["order_1"]

    @pytest.mark.asyncio
    async def test_outcome_to_dict(self, workflow):
        outcome = await workflow.run("order_1", "9001", "order_canceled", WebhookData(), 1)

        data = outcome.to_dict()
        assert data["applied"] is True
        assert data["updated_status"] == "canceled"
        assert data["webhook_type"] == "order_canceled"


class TestRunEvent:
    """Tests for ReconcileOrderWorkflow.run_event."""

    @pytest.mark.asyncio
    async def test_event_with_order(self, workflow, store):
        event = WebhookEvent(type="package_shipped", created=1705312900, data=shipped_data())

        outcome = await workflow.run_event(event)

        assert outcome.applied
        assert outcome.local_order_id == "order_1"
        assert outcome.printful_order_id == "9001"

    @pytest.mark.asyncio
    async def test_non_status_type_ignored(self, workflow, store):
        before = (await store.get_order("order_1")).metadata
        event = WebhookEvent(type="stock_updated", data=shipped_data())

        assert await workflow.run_event(event) is None
        assert (await store.get_order("order_1")).metadata == before

    @pytest.mark.asyncio
    async def test_unknown_type_ignored(self, workflow):
        event = WebhookEvent(type="product_synced")

        assert await workflow.run_event(event) is None

    @pytest.mark.asyncio
    async def test_event_without_external_id(self, workflow):
        data = WebhookData.model_validate({"order": {"id": 9001, "status": "canceled"}})
        event = WebhookEvent(type="order_canceled", data=data)

        assert await workflow.run_event(event) is None


class TestConcurrentDeliveries:
    """Tests for overlapping deliveries for the same order."""

    @pytest.mark.asyncio
    async def test_older_event_cannot_overwrite_newer(self, sample_order):
        """The older delivery waits for the newer write and is then skipped as stale."""
        store = SlowReadStore([sample_order])
        workflow = ReconcileOrderWorkflow(store, lock=InMemoryOrderLock(wait_seconds=1.0))

        newer, older = await asyncio.gather(
            workflow.run("order_1", "9001", "package_shipped", shipped_data(), 200),
            workflow.run("order_1", "9001", "order_canceled", WebhookData(), 100),
        )

        metadata = (await store.get_order("order_1")).metadata
        assert newer.applied
        assert not older.applied
        assert older.reason == "stale_event"
        assert metadata[PRINTFUL_STATUS] == "shipped"
        assert metadata[PRINTFUL_LAST_UPDATE] == 200

    @pytest.mark.asyncio
    async def test_not_blocked_by_create_workflow_lock(self, store):
        """A create run holding the order's lock does not delay webhooks."""
        lock = InMemoryOrderLock(wait_seconds=0.05)
        workflow = ReconcileOrderWorkflow(store, lock=lock)

        async with lock.hold("order_1"):
            outcome = await workflow.run("order_1", "9001", "order_canceled", WebhookData(), 1)

        assert outcome.applied
