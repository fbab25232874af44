"""Order lifecycle engine.

Every status change of an order goes through ``OrderLifecycle``. Each
operation re-reads the order, checks the edge against ``TRANSITIONS`` and
writes with a conditional update on the status it read, so a concurrent
change between the read and the write is rejected instead of overwritten.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from jojo_orders.core.errors import (
    GatewayError,
    InvalidTransition,
    NotFound,
    OrderServiceError,
    SchemaError,
    StoreError,
)
from jojo_orders.core.logger import setup_logger
from jojo_orders.db.repository import OrderStore, utcnow
from jojo_orders.integrations.gateway import PaymentGateway
from jojo_orders.models.api import ArchiveFailure, ArchiveSummary
from jojo_orders.models.order import RETURN_WORKFLOW_STATUSES, Order, OrderStatus

logger = setup_logger(__name__)

S = OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.PAID, S.FAILED}),
    S.PAID: frozenset({S.SHIPPED, S.FAILED, S.REFUND_REQUESTED}),
    S.SHIPPED: frozenset({S.REFUND_REQUESTED}),
    S.REFUND_REQUESTED: frozenset({S.RETURN_APPROVED, S.PAID}),
    S.RETURN_APPROVED: frozenset({S.REFUNDED}),
    S.REFUNDED: frozenset(),
    S.FAILED: frozenset(),
}

# Edges reachable from the admin status dropdown
OPERATOR_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.PAID, S.FAILED}),
    S.PAID: frozenset({S.SHIPPED, S.FAILED}),
}

# A refund claim older than this is treated as abandoned (crashed worker)
REFUND_LEASE = timedelta(minutes=5)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether ``current -> target`` is an edge of the order state machine."""
    return OrderStatus(target) in TRANSITIONS[OrderStatus(current)]


class OrderLifecycle:
    """State machine for orders, including the return/refund workflow."""

    def __init__(self, store: OrderStore, gateway: PaymentGateway):
        self.store = store
        self.gateway = gateway

    async def _transition(
        self,
        order: Order,
        target: OrderStatus,
        patch: Optional[Dict[str, Any]] = None,
    ) -> Order:
        if not can_transition(order.status, target):
            raise InvalidTransition(order.id, order.status.value, target.value)

        values = dict(patch or {})
        values["status"] = target
        if target == S.SHIPPED:
            values["shipped_at"] = utcnow()

        updated = await self.store.transition(order.id, order.status, values)
        logger.info(
            f"Order {order.id}: {order.status.value} -> {target.value}",
            extra={"order_id": order.id},
        )
        return updated

    async def _require_status(self, order_id: str, status: OrderStatus, action: str) -> Order:
        order = await self.store.get(order_id)
        if order.status != status:
            raise InvalidTransition(
                order_id,
                order.status.value,
                message=f"Cannot {action} order {order_id}: status is {order.status.value}, must be {status.value}",
            )
        return order

    # -------------------------------------------------------------------
    # Payment outcomes
    # -------------------------------------------------------------------
    async def mark_paid(self, order_id: str, payment_id: str) -> Order:
        order = await self.store.get(order_id)
        return await self._transition(order, S.PAID, {"payment_id": payment_id})

    async def mark_failed(self, order_id: str, message: str) -> Order:
        order = await self.store.get(order_id)
        return await self._transition(order, S.FAILED, {"payment_error": message})

    # -------------------------------------------------------------------
    # Operator status changes
    # -------------------------------------------------------------------
    async def change_status(self, order_id: str, new_status: OrderStatus) -> Order:
        """
        Generic status change from the admin order screen.

        Orders in the return workflow can only move through approve/deny/refund,
        and only the pending/paid/shipped/failed edges are allowed here.
        """
        new_status = OrderStatus(new_status)
        order = await self.store.get(order_id)

        if order.status in RETURN_WORKFLOW_STATUSES:
            raise InvalidTransition(
                order_id,
                order.status.value,
                new_status.value,
                message=(
                    f"Order {order_id} is {order.status.value}; "
                    "use approveRefund, denyRefund or processRefund instead"
                ),
            )

        if new_status == order.status:
            return order

        if new_status not in OPERATOR_TRANSITIONS.get(order.status, frozenset()):
            raise InvalidTransition(order_id, order.status.value, new_status.value)

        return await self._transition(order, new_status)

    async def mark_shipped(self, order_id: str) -> Order:
        return await self.change_status(order_id, S.SHIPPED)

    # -------------------------------------------------------------------
    # Returns & refunds
    # -------------------------------------------------------------------
    async def request_refund(
        self,
        order_id: str,
        reason: str,
        return_items: Optional[Iterable[int]] = None,
    ) -> Order:
        """
        Customer return request.

        When ``return_items`` selects only some of the order's items, the
        refund amount is the sum of their line totals; otherwise the whole
        order total is refunded.
        """
        reason = (reason or "").strip()
        if not reason:
            raise SchemaError("A reason is required to request a return")

        order = await self.store.get(order_id)
        if not can_transition(order.status, S.REFUND_REQUESTED):
            raise InvalidTransition(order_id, order.status.value, S.REFUND_REQUESTED.value)

        selected: Optional[List[int]] = None
        refund_amount: Optional[Decimal] = None
        if return_items is not None:
            selected = sorted(set(return_items))
            if not selected:
                raise SchemaError("At least one item must be selected for return")
            out_of_range = [i for i in selected if i < 0 or i >= len(order.items)]
            if out_of_range:
                raise SchemaError(f"Return item indices out of range: {out_of_range}")
            if len(selected) < len(order.items):
                refund_amount = sum(
                    (order.items[i].line_total for i in selected), Decimal("0")
                )

        return await self._transition(
            order,
            S.REFUND_REQUESTED,
            {
                "refund_reason": reason,
                "return_items": selected,
                "refund_amount": refund_amount,
                "deny_reason": None,
            },
        )

    async def approve_refund(self, order_id: str) -> Order:
        """Approve a return; the customer ships the items back before the refund."""
        order = await self._require_status(order_id, S.REFUND_REQUESTED, "approve refund for")
        return await self._transition(order, S.RETURN_APPROVED)

    async def deny_refund(self, order_id: str, reason: Optional[str] = None) -> Order:
        """Deny a return; the order goes back to paid."""
        order = await self._require_status(order_id, S.REFUND_REQUESTED, "deny refund for")
        return await self._transition(
            order,
            S.PAID,
            {"deny_reason": reason, "return_items": None, "refund_amount": None},
        )

    async def process_refund(self, order_id: str) -> Order:
        """
        Execute the refund with the payment gateway.

        This is the only operation that moves money. The order is claimed
        with a conditional write before the gateway is called, so concurrent
        calls refund at most once. If the gateway call fails the claim is
        released, the order stays return_approved and the call can be retried.
        """
        order = await self._require_status(order_id, S.RETURN_APPROVED, "process refund for")
        if not order.payment_id:
            raise InvalidTransition(
                order_id,
                order.status.value,
                S.REFUNDED.value,
                message=f"Order {order_id} has no paymentId to refund",
            )

        order = await self.store.claim(
            order_id,
            S.RETURN_APPROVED,
            "refund_started_at",
            stale_before=utcnow() - REFUND_LEASE,
        )

        amount = order.amount_to_refund
        logger.info(
            f"Refunding {amount} on payment {order.payment_id} for order {order_id}",
            extra={"order_id": order_id},
        )
        try:
            result = await self.gateway.refund(
                order.payment_id, amount, idempotency_key=f"refund-{order_id}"
            )
        except GatewayError:
            await self._release_refund_claim(order_id)
            raise

        try:
            return await self._transition(
                order,
                S.REFUNDED,
                {"refund_id": result.id, "refunded_at": utcnow()},
            )
        except (InvalidTransition, NotFound, StoreError) as e:
            logger.error(
                f"Refund {result.id} executed for order {order_id} but the order "
                f"could not be marked refunded: {e}",
                extra={"order_id": order_id},
            )
            raise

    async def _release_refund_claim(self, order_id: str) -> None:
        try:
            await self.store.update(order_id, {"refund_started_at": None})
        except OrderServiceError as e:
            # The lease expires on its own after REFUND_LEASE
            logger.warning(
                f"Could not release refund claim on order {order_id}: {e}",
                extra={"order_id": order_id},
            )

    # -------------------------------------------------------------------
    # Archival
    # -------------------------------------------------------------------
    async def archive_orders(self, order_ids: Iterable[str]) -> ArchiveSummary:
        """Archive each order independently; failures are reported per id."""
        summary = ArchiveSummary()

        for order_id in dict.fromkeys(order_ids):
            try:
                await self.store.archive(order_id)
                summary.archived.append(order_id)
            except OrderServiceError as e:
                logger.warning(f"Failed to archive order {order_id}: {e}", extra={"order_id": order_id})
                summary.failed.append(ArchiveFailure(order_id=order_id, code=e.code, message=e.message))

        logger.info(f"Archived {len(summary.archived)} orders, {len(summary.failed)} failed")
        return summary
