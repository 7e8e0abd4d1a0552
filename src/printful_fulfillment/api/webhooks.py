"""Webhook receiver endpoint for Printful."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from printful_fulfillment.api.dependencies import (
    get_app_settings,
    get_printful_service,
    get_reconciliation_workflow,
)
from printful_fulfillment.config import Settings
from printful_fulfillment.exceptions import WebhookSignatureError
from printful_fulfillment.printful.results import ErrorKind
from printful_fulfillment.printful.service import PrintfulService
from printful_fulfillment.workflows.reconciliation import ReconcileOrderWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/printful",
    summary="Receive Printful webhooks",
    description="Endpoint for Printful webhook events (shipments, returns, failures, cancellations).",
    response_model=dict[str, Any],
)
async def receive_printful_webhook(
    request: Request,
    x_printful_signature: str | None = Header(
        default=None,
        alias="X-Printful-Signature",
        description="Hex HMAC-SHA256 of the raw body",
    ),
    service: PrintfulService = Depends(get_printful_service),
    reconciliation: ReconcileOrderWorkflow = Depends(get_reconciliation_workflow),
) -> dict[str, Any]:
    """
    Receive and process Printful webhook events.

    Printful redelivers anything not answered with 200, so:
    - 401 only for a bad signature, 400 for an unreadable payload
    - 200 for ignored event types and for orders unknown to this system
    - local reconciliation errors are logged, not returned

    Returns:
        Processing result with event type and reconciliation details.
    """
    body = await request.body()

    result = await service.handle_webhook(body, x_printful_signature)
    if not result.success:
        if result.error.kind == ErrorKind.SIGNATURE:
            raise WebhookSignatureError()
        if result.error.kind == ErrorKind.VALIDATION:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid webhook payload",
            )
        logger.error(f"Failed to process webhook: {result.error}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process webhook",
        )

    event = result.data
    response: dict[str, Any] = {
        "message": "Webhook processed successfully",
        "type": event.type,
    }

    try:
        outcome = await reconciliation.run_event(event)
    except Exception as e:
        # Printful would retry forever on a local store problem
        logger.exception(f"Error reconciling Printful webhook {event.type}: {e}")
        response["reconciliation"] = {"applied": False, "reason": "reconciliation_error"}
        return response

    if outcome is not None:
        response["reconciliation"] = outcome.to_dict()
        if outcome.reason == "order_not_found":
            response["message"] = "Webhook processed (order not found locally)"

    return response


@router.get(
    "/health",
    summary="Webhook health check",
    description="Check webhook endpoint health and configuration status.",
)
async def webhook_health(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    """Report whether signature verification is active."""
    return {
        "status": "healthy",
        "platforms": {
            "printful": {
                "signature_verification": bool(settings.printful_webhook_secret),
            },
        },
    }
