"""Domain exceptions for the fulfillment service.

These map to consistent HTTP responses when handled by the global exception handler.
"""


class FulfillmentError(Exception):
    """Base exception for fulfillment domain errors."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail or message


class OrderValidationError(FulfillmentError):
    """Raised when a local order cannot be fulfilled as given (e.g. no shipping address)."""

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message, status_code=400, detail=detail or message)


class OrderNotFoundError(FulfillmentError):
    """Raised when a local order does not exist in the order store."""

    def __init__(self, order_id: str) -> None:
        message = f"Order {order_id} not found"
        super().__init__(message, status_code=404)
        self.order_id = order_id


class WebhookSignatureError(FulfillmentError):
    """Raised when a webhook payload fails signature verification."""

    def __init__(self, message: str = "Invalid webhook signature") -> None:
        super().__init__(message, status_code=401)


class OrderLockTimeoutError(FulfillmentError):
    """Raised when another workflow holds the order lock for too long."""

    def __init__(self, order_id: str, waited: float) -> None:
        message = f"Timed out after {waited:.1f}s waiting for lock on order {order_id}"
        super().__init__(message, status_code=409)
        self.order_id = order_id


class ProviderError(FulfillmentError):
    """Raised at the HTTP edge when Printful returned a failure."""

    def __init__(self, message: str, detail: str | None = None, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, detail=detail or message)
