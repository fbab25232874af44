"""Server module - FastAPI application and routes."""

from jojo_orders.server.app import create_app

__all__ = ["create_app"]
