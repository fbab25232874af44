"""Services module - Order lifecycle engine and webhook reconciliation."""

from jojo_orders.services.lifecycle import OrderLifecycle, can_transition
from jojo_orders.services.reconciler import ReconcileOutcome, WebhookReconciler

__all__ = ["OrderLifecycle", "ReconcileOutcome", "WebhookReconciler", "can_transition"]
