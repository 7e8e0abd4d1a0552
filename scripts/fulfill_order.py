#!/usr/bin/env python
"""Create a Printful order for a local order described in a JSON file.

Useful for checking credentials and mapping against a real Printful store
without the e-commerce backend. The order file holds the LocalOrder
fields, e.g.:

    {"id": "order_123", "email": "jane@example.com",
     "shipping_address": {"first_name": "Jane", "last_name": "Doe", ...},
     "items": [{"id": "item_1", "title": "Tee", "quantity": 1,
                "unit_price": 2500, "variant_sku": "TEE-BLK-M"}]}
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from printful_fulfillment.config import get_settings
from printful_fulfillment.observability.logging import configure_logging
from printful_fulfillment.orders.models import Address, LocalOrder, OrderLineItem
from printful_fulfillment.orders.store import InMemoryOrderStore
from printful_fulfillment.printful.client import PrintfulClient, PrintfulConfig
from printful_fulfillment.printful.service import PrintfulService
from printful_fulfillment.workflows.fulfillment import CreateFulfillmentWorkflow


def load_order(path: Path) -> LocalOrder:
    data = json.loads(path.read_text())
    shipping = data.get("shipping_address")
    billing = data.get("billing_address")
    return LocalOrder(
        id=data["id"],
        email=data.get("email"),
        shipping_address=Address(**shipping) if shipping else None,
        billing_address=Address(**billing) if billing else None,
        items=[OrderLineItem(**item) for item in data.get("items", [])],
        metadata=data.get("metadata", {}),
    )


async def main() -> None:
    parser = argparse.ArgumentParser(description="Create a Printful order from a local order JSON file")
    parser.add_argument("order_file", type=Path, nargs="?", help="Path to the order JSON file")
    parser.add_argument("--confirm", action="store_true", help="Confirm the order for production")
    parser.add_argument("--status-only", action="store_true", help="Only test the API connection")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=False)

    client = PrintfulClient(PrintfulConfig.from_settings(settings))
    service = PrintfulService(client)
    try:
        if args.status_only:
            result = await service.test_connection()
            print("connected" if result.success else f"failed: {result.error}")
            return

        if args.order_file is None:
            parser.error("order_file is required unless --status-only is given")

        order = load_order(args.order_file)
        store = InMemoryOrderStore([order])
        workflow = CreateFulfillmentWorkflow(
            service,
            store,
            max_attempts=settings.printful_max_attempts,
            backoff_seconds=settings.printful_retry_backoff_seconds,
        )
        outcome = await workflow.run(
            order.id,
            confirm_immediately=args.confirm,
        )
        print(json.dumps(outcome.to_dict(), indent=2))
        if not outcome.success:
            sys.exit(1)
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
