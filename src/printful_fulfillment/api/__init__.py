"""HTTP API: webhook receiver and admin routes."""

from printful_fulfillment.api.server import build_components, create_app

__all__ = ["build_components", "create_app"]
