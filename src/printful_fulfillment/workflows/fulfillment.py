"""Create-fulfillment workflow: local order -> confirmed Printful order."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from printful_fulfillment.exceptions import OrderNotFoundError
from printful_fulfillment.observability.logging import LogContext
from printful_fulfillment.orders.locks import InMemoryOrderLock, OrderLock
from printful_fulfillment.orders.models import (
    LINKAGE_KEYS,
    PRINTFUL_CREATED_AT,
    PRINTFUL_EXTERNAL_ID,
    PRINTFUL_ORDER_ID,
)
from printful_fulfillment.orders.store import OrderStore
from printful_fulfillment.printful.results import ServiceResult
from printful_fulfillment.printful.service import PrintfulService
from printful_fulfillment.workflows.saga import Saga, SagaResult, SagaStep, StepFailed

logger = logging.getLogger(__name__)

STEP_CREATE = "create-remote-order"
STEP_METADATA = "update-local-metadata"
STEP_CONFIRM = "confirm-if-requested"


@dataclass
class FulfillmentOutcome:
    """Result of a create-fulfillment run."""

    local_order_id: str
    printful_order_id: str | None = None
    printful_external_id: str | None = None
    confirmed: bool = False
    success: bool = False
    already_exists: bool = False
    confirm_error: str | None = None
    error: str | None = None
    error_reason: str | None = None
    failed_step: str | None = None
    compensated: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "local_order_id": self.local_order_id,
            "printful_order_id": self.printful_order_id,
            "printful_external_id": self.printful_external_id,
            "confirmed": self.confirmed,
            "success": self.success,
            "already_exists": self.already_exists,
            "confirm_error": self.confirm_error,
            "error": self.error,
            "error_reason": self.error_reason,
            "failed_step": self.failed_step,
            "compensated": self.compensated,
        }


class CreateFulfillmentWorkflow:
    """
    Three-step saga creating a Printful order for a local order.

    1. create-remote-order: skip if the order is already linked, otherwise
       create the Printful order. Compensation cancels it.
    2. update-local-metadata: merge the linkage keys into the order's
       metadata. Compensation removes exactly those keys.
    3. confirm-if-requested: submit the order for production. A failure
       here is reported in confirm_error and rolls nothing back; a draft
       order can be confirmed later by running the workflow again.

    The whole run holds the order's lock, so two invocations for the same
    order cannot both see "not linked yet" and both create remote orders.
    """

    name = "create-printful-order"

    def __init__(
        self,
        service: PrintfulService,
        store: OrderStore,
        lock: OrderLock | None = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        clock: Callable[[], int] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the workflow.

        Args:
            service: Printful service.
            store: Local order store.
            lock: Per-order lock (defaults to an in-process lock).
            max_attempts: Attempts for retryable Printful failures.
            backoff_seconds: Base delay, doubled after each failed attempt.
            clock: Returns epoch milliseconds for printful_created_at.
            sleep: Awaitable sleep used between attempts.
        """
        self.service = service
        self.store = store
        self.lock = lock or InMemoryOrderLock()
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self.clock = clock or (lambda: int(time.time() * 1000))
        self._sleep = sleep

        self.saga = Saga(
            self.name,
            [
                SagaStep(STEP_CREATE, self._create_remote_order, self._cancel_remote_order),
                SagaStep(STEP_METADATA, self._update_metadata, self._remove_metadata),
                SagaStep(STEP_CONFIRM, self._confirm_if_requested),
            ],
        )

    async def run(self, local_order_id: str, confirm_immediately: bool = False) -> FulfillmentOutcome:
        """
        Run the workflow for one local order.

        Args:
            local_order_id: ID of the local order.
            confirm_immediately: Submit the order for production after creating it.

        Returns:
            FulfillmentOutcome. success is False when a step failed and
            earlier steps were compensated.

        Raises:
            OrderNotFoundError: If the local order does not exist.
            OrderValidationError: If the order cannot be mapped (no shipping address).
            OrderLockTimeoutError: If another run holds the order lock too long.
        """
        with LogContext(order_id=local_order_id, workflow=self.name):
            async with self.lock.hold(local_order_id):
                context: dict[str, Any] = {
                    "local_order_id": local_order_id,
                    "confirm": confirm_immediately,
                }
                result = await self.saga.run(context)

            outcome = self._build_outcome(local_order_id, result)
            if outcome.success:
                logger.info(
                    f"Fulfillment workflow finished for order {local_order_id}: "
                    f"printful_order_id={outcome.printful_order_id}, "
                    f"already_exists={outcome.already_exists}, confirmed={outcome.confirmed}"
                )
            else:
                logger.error(
                    f"Fulfillment workflow failed for order {local_order_id} at {outcome.failed_step}: "
                    f"{outcome.error}"
                )
            return outcome

    # =========================================================================
    # Step 1: create remote order
    # =========================================================================

    async def _create_remote_order(self, context: dict[str, Any]) -> dict[str, Any]:
        local_order_id = context["local_order_id"]
        order = await self.store.get_order(local_order_id)
        if order is None:
            raise OrderNotFoundError(local_order_id)

        if order.is_linked:
            logger.info(f"Order {local_order_id} already has Printful order {order.printful_order_id}")
            return {
                "printful_order_id": order.printful_order_id,
                "printful_external_id": order.metadata.get(PRINTFUL_EXTERNAL_ID),
                "already_exists": True,
                "created": False,
            }

        result = await self.service.create_order(order)
        attempt = 1
        while not result.success and result.error.retryable and attempt < self.max_attempts:
            await self._backoff(attempt, "create order", result)
            attempt += 1

            # The failed attempt may have reached Printful before the connection broke
            existing = await self.service.get_order(f"@{local_order_id}")
            if existing.success:
                logger.warning(
                    f"Found Printful order {existing.data.id} for {local_order_id} "
                    f"created by a failed attempt; adopting it"
                )
                result = existing
                break

            result = await self.service.create_order(order)

        if not result.success:
            raise StepFailed(
                STEP_CREATE,
                f"Failed to create Printful order: {result.error.message}",
                reason=result.error.reason,
                code=result.error.code,
            )

        remote = result.data
        return {
            "printful_order_id": str(remote.id),
            "printful_external_id": remote.external_id or local_order_id,
            "already_exists": False,
            "created": True,
        }

    async def _cancel_remote_order(self, context: dict[str, Any], output: dict[str, Any] | None) -> None:
        if not output or not output.get("created"):
            return

        printful_order_id = output["printful_order_id"]
        result = await self.service.cancel_order(printful_order_id)
        if not result.success:
            raise StepFailed(
                STEP_CREATE,
                f"Failed to cancel Printful order {printful_order_id}: {result.error.message}",
                reason=result.error.reason,
                code=result.error.code,
            )
        logger.info(f"Compensated: canceled Printful order {printful_order_id}")

    # =========================================================================
    # Step 2: update local metadata
    # =========================================================================

    async def _update_metadata(self, context: dict[str, Any]) -> dict[str, Any]:
        created = context[STEP_CREATE]
        if created["already_exists"]:
            return {"updated": False}

        local_order_id = context["local_order_id"]
        try:
            await self.store.update_metadata(
                local_order_id,
                values={
                    PRINTFUL_ORDER_ID: created["printful_order_id"],
                    PRINTFUL_EXTERNAL_ID: created["printful_external_id"],
                    PRINTFUL_CREATED_AT: self.clock(),
                },
            )
        except Exception as e:
            raise StepFailed(
                STEP_METADATA,
                f"Failed to update metadata for order {local_order_id}: {e}",
                reason="metadata_update_failed",
            ) from e

        logger.info(
            f"Updated order {local_order_id} with Printful order ID {created['printful_order_id']}"
        )
        return {"updated": True}

    async def _remove_metadata(self, context: dict[str, Any], output: dict[str, Any] | None) -> None:
        if not output or not output.get("updated"):
            return

        local_order_id = context["local_order_id"]
        await self.store.update_metadata(local_order_id, remove=LINKAGE_KEYS)
        logger.info(f"Compensated: removed Printful metadata from order {local_order_id}")

    # =========================================================================
    # Step 3: confirm if requested
    # =========================================================================

    async def _confirm_if_requested(self, context: dict[str, Any]) -> dict[str, Any]:
        if not context["confirm"]:
            return {"confirmed": False}

        printful_order_id = context[STEP_CREATE]["printful_order_id"]
        try:
            result = await self.service.confirm_order(printful_order_id)
            attempt = 1
            while not result.success and result.error.retryable and attempt < self.max_attempts:
                await self._backoff(attempt, "confirm order", result)
                attempt += 1
                result = await self.service.confirm_order(printful_order_id)
        except Exception as e:
            # The order and its link stay in place whatever confirm raised
            logger.exception(f"Created Printful order {printful_order_id} but confirm raised: {e}")
            return {"confirmed": False, "confirm_error": f"{type(e).__name__}: {e}"}

        if not result.success:
            logger.warning(
                f"Created Printful order {printful_order_id} but failed to confirm: {result.error}"
            )
            return {"confirmed": False, "confirm_error": result.error.message}

        return {"confirmed": True}

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _backoff(self, attempt: int, operation: str, result: ServiceResult) -> None:
        delay = self.backoff_seconds * (2 ** (attempt - 1))
        logger.warning(
            f"Attempt {attempt}/{self.max_attempts} to {operation} failed "
            f"({result.error.reason}); retrying in {delay:.2f}s"
        )
        await self._sleep(delay)

    def _build_outcome(self, local_order_id: str, result: SagaResult) -> FulfillmentOutcome:
        created = result.context.get(STEP_CREATE) or {}
        outcome = FulfillmentOutcome(
            local_order_id=local_order_id,
            printful_order_id=created.get("printful_order_id"),
            printful_external_id=created.get("printful_external_id"),
            already_exists=created.get("already_exists", False),
            success=result.success,
            failed_step=result.failed_step,
            compensated=list(result.compensated),
        )

        if not result.success:
            error = result.error
            outcome.error = getattr(error, "message", None) or str(error)
            outcome.error_reason = getattr(error, "reason", None)
            # Compensated links are gone; don't report them as current
            if STEP_CREATE in result.compensated:
                outcome.printful_order_id = None
                outcome.printful_external_id = None
            return outcome

        confirmation = result.context.get(STEP_CONFIRM) or {}
        outcome.confirmed = confirmation.get("confirmed", False)
        outcome.confirm_error = confirmation.get("confirm_error")
        return outcome
