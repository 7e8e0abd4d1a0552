"""Authenticated HTTP client for the Printful REST API."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from printful_fulfillment.config import Settings
from printful_fulfillment.printful.results import ErrorKind, PrintfulError, ServiceResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.printful.com"


@dataclass(frozen=True)
class PrintfulConfig:
    """Explicit client configuration, built once and passed in."""

    api_key: str = ""
    store_id: str = ""
    webhook_secret: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    user_agent: str = "printful-fulfillment/0.1"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PrintfulConfig":
        return cls(
            api_key=settings.printful_api_key,
            store_id=settings.printful_store_id,
            webhook_secret=settings.printful_webhook_secret,
            base_url=settings.printful_base_url or DEFAULT_BASE_URL,
            timeout=settings.printful_timeout_seconds,
            user_agent=f"printful-fulfillment/{settings.api_version}",
        )


@dataclass(frozen=True)
class Page:
    """A page of list results with Printful's paging block."""

    items: list[Any]
    total: int
    offset: int
    limit: int


class PrintfulClient:
    """
    Low-level Printful API client.

    Every call returns a ServiceResult: API error codes, timeouts and
    transport failures come back as typed errors instead of exceptions.
    No retries happen here; retry policy belongs to the workflows.

    Responses use the envelope {code, result, error?: {message, reason}, paging?}.
    """

    def __init__(
        self,
        config: PrintfulConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the Printful client.

        Args:
            config: API credentials and connection settings.
            http_client: Pre-built client (e.g. with httpx.MockTransport in tests).
        """
        self.config = config
        self._client = http_client

        if not config.api_key:
            logger.warning("PRINTFUL_API_KEY not configured; API calls will be rejected by Printful")

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
        }
        if self.config.store_id:
            headers["X-PF-Store-Id"] = self.config.store_id
        return headers

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._headers(),
                timeout=self.config.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> ServiceResult[Any]:
        """
        Make an authenticated API request to Printful.

        Args:
            endpoint: Path relative to the base URL (e.g., "/orders").
            method: HTTP method.
            body: JSON-serializable request body.
            params: Query string parameters; None values are dropped.

        Returns:
            ServiceResult with the envelope's result on success.
        """
        result = await self._send(endpoint, method, body, params)
        if not result.success:
            return result
        return ServiceResult.ok(result.data.get("result"))

    async def request_page(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> ServiceResult[Page]:
        """GET a list endpoint, keeping the paging block."""
        result = await self._send(endpoint, "GET", None, params)
        if not result.success:
            return result

        envelope = result.data
        items = envelope.get("result") or []
        paging = envelope.get("paging") or {}
        return ServiceResult.ok(
            Page(
                items=items,
                total=paging.get("total", len(items)),
                offset=paging.get("offset", (params or {}).get("offset", 0)),
                limit=paging.get("limit", (params or {}).get("limit", len(items))),
            )
        )

    async def _send(
        self,
        endpoint: str,
        method: str,
        body: Any,
        params: dict[str, Any] | None,
    ) -> ServiceResult[dict]:
        method = method.upper()
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self.client.request(
                method,
                f"{self.base_url}{endpoint}",
                json=body,
                params=params or None,
                headers=self._headers(),
            )
        except httpx.TimeoutException as e:
            return self._failure(
                method,
                endpoint,
                PrintfulError(
                    message=f"Request to Printful timed out: {e}",
                    reason="timeout",
                    code=0,
                    kind=ErrorKind.TIMEOUT,
                ),
            )
        except httpx.TransportError as e:
            return self._failure(
                method,
                endpoint,
                PrintfulError(
                    message=f"Could not reach Printful: {e}",
                    reason="transport_error",
                    code=0,
                    kind=ErrorKind.TRANSPORT,
                ),
            )

        try:
            envelope = response.json()
        except ValueError:
            return self._failure(
                method,
                endpoint,
                PrintfulError(
                    message=f"Printful returned a non-JSON response (HTTP {response.status_code})",
                    reason="invalid_response",
                    code=response.status_code,
                ),
            )

        if not isinstance(envelope, dict):
            envelope = {"code": response.status_code, "result": envelope}

        code = envelope.get("code", response.status_code)
        if not isinstance(code, int):
            code = response.status_code

        if not response.is_success or code >= 400:
            error = envelope.get("error") or {}
            if not isinstance(error, dict):
                error = {"message": str(error)}
            return self._failure(
                method,
                endpoint,
                PrintfulError(
                    message=error.get("message") or "Unknown API error",
                    reason=error.get("reason") or "api_error",
                    code=code if code >= 400 else response.status_code,
                ),
            )

        return ServiceResult.ok(envelope)

    def _failure(self, method: str, endpoint: str, error: PrintfulError) -> ServiceResult:
        logger.error(f"Printful API request failed: {method} {endpoint}: {error}")
        return ServiceResult.fail(error)
