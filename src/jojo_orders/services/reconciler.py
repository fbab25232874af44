"""Payment webhook reconciliation.

Translates verified gateway events into order status changes. Reconciling the
same event twice leaves the order as the first delivery left it.
"""

from enum import Enum
from typing import Optional

from jojo_orders.core.errors import InvalidTransition, NotFound
from jojo_orders.core.logger import setup_logger
from jojo_orders.models.order import Order, OrderStatus
from jojo_orders.models.webhook import (
    CHECKOUT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    PaymentEvent,
)
from jojo_orders.services.lifecycle import OrderLifecycle

logger = setup_logger(__name__)


class ReconcileOutcome(str, Enum):
    """What reconciling an event did."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"  # order already reflects the event
    SKIPPED = "skipped"  # order missing or not in a state the event applies to
    IGNORED = "ignored"  # event type not handled


class WebhookReconciler:
    """Applies payment succeeded/failed events to orders."""

    def __init__(self, lifecycle: OrderLifecycle):
        self.lifecycle = lifecycle
        self.store = lifecycle.store

    async def reconcile(self, event: PaymentEvent) -> ReconcileOutcome:
        """
        Apply a verified event.

        Args:
            event: Verified gateway event

        Returns:
            The ReconcileOutcome; unexpected errors propagate to the caller
        """
        if event.type in (PAYMENT_SUCCEEDED, CHECKOUT_COMPLETED):
            return await self._apply_success(event)
        if event.type == PAYMENT_FAILED:
            return await self._apply_failure(event)

        logger.info(f"Unhandled event type: {event.type}", extra={"event_id": event.id})
        return ReconcileOutcome.IGNORED

    async def _resolve_order(self, event: PaymentEvent) -> Optional[Order]:
        order_id = event.order_id
        if not order_id:
            logger.info(
                f"Event {event.id} ({event.type}) has no orderId metadata, skipping",
                extra={"event_id": event.id},
            )
            return None

        try:
            return await self.store.get(order_id)
        except NotFound:
            logger.warning(
                f"Event {event.id} references unknown order {order_id}, skipping",
                extra={"event_id": event.id, "order_id": order_id},
            )
            return None

    async def _apply_success(self, event: PaymentEvent) -> ReconcileOutcome:
        order = await self._resolve_order(event)
        if order is None:
            return ReconcileOutcome.SKIPPED

        # Checkout sessions point at the underlying payment intent, which is what refunds need
        payment_id = event.payload.get("payment_intent") or event.object_id

        if order.status == OrderStatus.PAID and order.payment_id == payment_id:
            logger.info(f"Order {order.id} already paid with {payment_id}", extra={"order_id": order.id})
            return ReconcileOutcome.DUPLICATE

        if order.status != OrderStatus.PENDING:
            logger.warning(
                f"Payment {payment_id} succeeded for order {order.id} in status "
                f"{order.status.value} (paymentId={order.payment_id}), not applied",
                extra={"order_id": order.id, "event_id": event.id},
            )
            return ReconcileOutcome.SKIPPED

        try:
            await self.lifecycle.mark_paid(order.id, payment_id)
        except InvalidTransition as e:
            logger.warning(f"Order {order.id} changed concurrently: {e}", extra={"order_id": order.id})
            return ReconcileOutcome.SKIPPED

        logger.info(f"Order {order.id} updated to paid", extra={"order_id": order.id})
        return ReconcileOutcome.APPLIED

    async def _apply_failure(self, event: PaymentEvent) -> ReconcileOutcome:
        order = await self._resolve_order(event)
        if order is None:
            return ReconcileOutcome.SKIPPED

        message = event.failure_message

        if order.status == OrderStatus.FAILED:
            if order.payment_error == message:
                return ReconcileOutcome.DUPLICATE
            await self.store.update(order.id, {"payment_error": message})
            return ReconcileOutcome.APPLIED

        if order.status == OrderStatus.PAID and order.payment_id == event.object_id:
            # A retry on the same intent already succeeded; this failure is stale
            logger.warning(
                f"Stale failure for payment {event.object_id} on paid order {order.id}, skipping",
                extra={"order_id": order.id, "event_id": event.id},
            )
            return ReconcileOutcome.SKIPPED

        if order.status not in (OrderStatus.PENDING, OrderStatus.PAID):
            logger.warning(
                f"Payment failure for order {order.id} in status {order.status.value}, not applied",
                extra={"order_id": order.id, "event_id": event.id},
            )
            return ReconcileOutcome.SKIPPED

        try:
            await self.lifecycle.mark_failed(order.id, message)
        except InvalidTransition as e:
            logger.warning(f"Order {order.id} changed concurrently: {e}", extra={"order_id": order.id})
            return ReconcileOutcome.SKIPPED

        logger.info(f"Order {order.id} updated to failed: {message}", extra={"order_id": order.id})
        return ReconcileOutcome.APPLIED
