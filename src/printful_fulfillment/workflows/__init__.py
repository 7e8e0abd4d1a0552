"""Fulfillment workflows: create saga and webhook reconciliation."""

from printful_fulfillment.workflows.fulfillment import CreateFulfillmentWorkflow, FulfillmentOutcome
from printful_fulfillment.workflows.reconciliation import (
    ReconcileOrderWorkflow,
    ReconciliationOutcome,
    build_status_patch,
)
from printful_fulfillment.workflows.saga import Saga, SagaResult, SagaStep, StepFailed

__all__ = [
    # Saga
    "Saga",
    "SagaResult",
    "SagaStep",
    "StepFailed",
    # Create
    "CreateFulfillmentWorkflow",
    "FulfillmentOutcome",
    # Reconcile
    "ReconcileOrderWorkflow",
    "ReconciliationOutcome",
    "build_status_patch",
]
