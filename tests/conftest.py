"""Pytest configuration and fixtures."""

import json
import os
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Set test environment variables
os.environ.setdefault("PRINTFUL_API_KEY", "test-api-key")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("LOG_JSON", "false")

from printful_fulfillment.orders.models import Address, LocalOrder, OrderLineItem  # noqa: E402
from printful_fulfillment.printful.client import PrintfulClient, PrintfulConfig  # noqa: E402

TEST_BASE_URL = "https://printful.test"


class FakePrintfulAPI:
    """
    In-memory stand-in for the Printful REST API, served through httpx.MockTransport.

    Records every request; individual routes can be overridden with
    canned (status, body) responses or exceptions.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.overrides: dict[tuple[str, str], Any] = {}
        self.next_order_id = 9001

    def override(self, method: str, path: str, response: Any) -> None:
        """Answer method+path with (status, body), a list of those, or an exception."""
        self.overrides[(method.upper(), path)] = response

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)

        if key in self.overrides:
            response = self.overrides[key]
            if isinstance(response, list):
                response = response.pop(0) if len(response) > 1 else response[0]
            if isinstance(response, Exception):
                raise response
            status_code, body = response
            if isinstance(body, str):
                return httpx.Response(status_code, text=body)
            return httpx.Response(status_code, json=body)

        return self._default(request)

    def _default(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path

        if method == "POST" and path == "/orders":
            payload = json.loads(request.content)
            order = {
                "id": self.next_order_id,
                "external_id": payload["external_id"],
                "status": "draft",
                "recipient": payload["recipient"],
                "items": payload["items"],
            }
            self.next_order_id += 1
            return ok(order)
        if method == "POST" and path.endswith("/confirm"):
            order_id = int(path.split("/")[2])
            return ok({"id": order_id, "status": "pending"})
        if method == "GET" and path == "/orders":
            orders = [{"id": 9001, "external_id": "order_1", "status": "pending"}]
            return ok(orders, paging={"total": 1, "offset": 0, "limit": 100})
        if method == "DELETE" and path.startswith("/orders/"):
            return ok({"id": int(path.split("/")[2]), "status": "canceled"})
        if method == "GET" and path == "/store":
            return ok({"id": 1, "name": "Test Store", "type": "native"})
        if method == "GET" and path == "/products":
            return ok([{"id": 71, "title": "Unisex Staple T-Shirt", "variant_count": 2}])
        if method == "GET" and path == "/sync/products":
            return ok([{"id": 5, "external_id": "tee", "name": "Logo Tee", "variants": 2, "synced": 2}])
        return not_found()


def ok(result: Any, paging: dict | None = None) -> httpx.Response:
    body: dict[str, Any] = {"code": 200, "result": result}
    if paging is not None:
        body["paging"] = paging
    return httpx.Response(200, json=body)


def not_found() -> httpx.Response:
    return httpx.Response(
        404,
        json={"code": 404, "result": "Not found", "error": {"reason": "NotFound", "message": "Not found"}},
    )


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def printful_api() -> FakePrintfulAPI:
    """Fake Printful API."""
    return FakePrintfulAPI()


@pytest.fixture
def printful_config() -> PrintfulConfig:
    """Client configuration pointing at the fake API."""
    return PrintfulConfig(
        api_key="test-api-key",
        store_id="12345",
        webhook_secret="whsec_test",
        base_url=TEST_BASE_URL,
        timeout=5.0,
    )


@pytest.fixture
def printful_client(printful_api: FakePrintfulAPI, printful_config: PrintfulConfig) -> PrintfulClient:
    """PrintfulClient whose HTTP traffic goes to the fake API."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(printful_api.handler))
    return PrintfulClient(printful_config, http_client=http_client)


@pytest.fixture
def shipping_address() -> Address:
    """Complete US shipping address."""
    return Address(
        first_name="Jane",
        last_name="Doe",
        company="Acme",
        address_1="19749 Dearborn St",
        address_2="Suite 2",
        city="Chatsworth",
        province="CA",
        postal_code="91311",
        country_code="us",
        phone="+1 555 0100",
    )


@pytest.fixture
def sample_order(shipping_address: Address) -> LocalOrder:
    """Unlinked local order with two line items."""
    return LocalOrder(
        id="order_1",
        email="jane@example.com",
        shipping_address=shipping_address,
        items=[
            OrderLineItem(id="item_1", title="Logo Tee", quantity=2, unit_price=2500, variant_sku="TEE-BLK-M"),
            OrderLineItem(id="item_2", title="Mug", quantity=1, unit_price=1299),
        ],
        metadata={"source": "storefront"},
    )
