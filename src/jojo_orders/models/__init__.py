"""Models module - Order documents, webhook events and API requests."""

from jojo_orders.models.order import ArchivedOrder, Order, OrderItem, OrderStatus
from jojo_orders.models.webhook import PaymentEvent

__all__ = ["ArchivedOrder", "Order", "OrderItem", "OrderStatus", "PaymentEvent"]
