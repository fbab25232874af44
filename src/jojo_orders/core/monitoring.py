"""
GlitchTip Error Monitoring Utilities

Helper functions for error tracking and context management. All calls are
no-ops until ``init_monitoring`` has been called with a DSN.
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from jojo_orders.core.logger import setup_logger

logger = setup_logger(__name__)


def init_monitoring(dsn: Optional[str], environment: str) -> bool:
    """
    Initialize GlitchTip (Sentry-compatible) error monitoring.

    Returns:
        True if monitoring was initialized
    """
    if not dsn:
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(
                    level=None,  # Capture all log levels as breadcrumbs
                    event_level=logging.ERROR,  # Send ERROR logs as events
                ),
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,  # Shipping info is PII
        )
        logger.info("GlitchTip error monitoring initialized")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize GlitchTip: {e}")
        return False


def set_order_context(
    order_id: Optional[str] = None,
    event_type: Optional[str] = None,
    event_id: Optional[str] = None,
    **extra_tags,
) -> None:
    """
    Set order-specific context for error tracking.

    Args:
        order_id: Order being processed
        event_type: Gateway event type, for webhook deliveries
        event_id: Gateway event id, for webhook deliveries
        **extra_tags: Additional tags to add
    """
    try:
        if order_id:
            sentry_sdk.set_tag("order.id", order_id)
        if event_type:
            sentry_sdk.set_tag("webhook.event_type", event_type)
        for key, value in extra_tags.items():
            sentry_sdk.set_tag(key, value)

        context_data = {
            "order_id": order_id,
            "event_type": event_type,
            "event_id": event_id,
        }
        context_data.update(extra_tags)
        sentry_sdk.set_context("order", context_data)
    except Exception as e:
        logger.warning(f"Failed to set order context: {e}")


def capture_exception(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Capture an exception and send to GlitchTip.

    Args:
        error: The exception to capture
        context: Additional context data
    """
    try:
        if context:
            with sentry_sdk.new_scope() as scope:
                scope.set_context("custom", context)
                sentry_sdk.capture_exception(error)
        else:
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.warning(f"Failed to capture exception in GlitchTip: {e}")
