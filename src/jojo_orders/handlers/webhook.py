"""Webhook event handling."""

from typing import Optional

from jojo_orders.core.event_logger import DeadLetterLog
from jojo_orders.core.logger import setup_logger
from jojo_orders.core.monitoring import capture_exception, set_order_context
from jojo_orders.models.webhook import PaymentEvent
from jojo_orders.services.reconciler import ReconcileOutcome, WebhookReconciler

logger = setup_logger(__name__)


async def handle_webhook_event(
    event: PaymentEvent,
    reconciler: WebhookReconciler,
    dead_letters: DeadLetterLog,
) -> Optional[ReconcileOutcome]:
    """
    Handle a verified webhook event.

    Never raises: the gateway redelivers anything that is not acknowledged,
    so failures are logged, reported and dead-lettered instead.

    Args:
        event: Verified gateway event
        reconciler: Applies the event to the order store
        dead_letters: Durable log of events that failed to apply

    Returns:
        The reconcile outcome, or None if processing failed
    """
    order_id = event.order_id
    set_order_context(order_id=order_id, event_type=event.type, event_id=event.id)

    logger.info(
        f"Processing webhook: type={event.type}, id={event.id}, order={order_id}",
        extra={"event_id": event.id, "event_type": event.type},
    )

    try:
        outcome = await reconciler.reconcile(event)
    except Exception as e:
        logger.error(
            f"Error reconciling event {event.id} for order {order_id}: {e}",
            exc_info=True,
            extra={"event_id": event.id, "order_id": order_id},
        )
        capture_exception(e, context={"event_id": event.id, "order_id": order_id})
        dead_letters.record(event.model_dump(by_alias=True), e, order_id=order_id)
        return None

    logger.info(
        f"Webhook {event.id} reconciled: {outcome.value}",
        extra={"event_id": event.id, "event_type": event.type},
    )
    return outcome
