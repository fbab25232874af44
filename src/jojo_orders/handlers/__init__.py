"""Handlers module - Webhook event handlers."""

from jojo_orders.handlers.webhook import handle_webhook_event

__all__ = ["handle_webhook_event"]
