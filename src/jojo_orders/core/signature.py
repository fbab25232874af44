"""Stripe Webhook Signature Verification.

The ``Stripe-Signature`` header looks like ``t=1492774577,v1=5257a8...`` and
may carry several ``v1`` entries while the endpoint secret is being rolled.
``stripe.Webhook.construct_event`` checks them against ``"{t}.{raw_body}"``,
so verification must run on the raw body before anything parses it.
"""

from typing import Optional

import stripe

from jojo_orders.core.errors import SignatureInvalid
from jojo_orders.core.logger import setup_logger
from jojo_orders.models.webhook import PaymentEvent

logger = setup_logger(__name__)

DEFAULT_TOLERANCE = 300


def verify_webhook_signature(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: Optional[int] = DEFAULT_TOLERANCE,
) -> PaymentEvent:
    """
    Verify a Stripe webhook and construct the event it carries.

    Args:
        raw_body: Raw request body as bytes (NOT parsed JSON)
        signature_header: Value from the stripe-signature header
        secret: Endpoint signing secret (whsec_...)
        tolerance: Maximum age of the signature in seconds, None to disable

    Returns:
        The verified PaymentEvent

    Raises:
        SignatureInvalid: If the request cannot be authenticated or parsed
    """
    if not signature_header:
        logger.warning("Webhook received without stripe-signature header")
        raise SignatureInvalid("Missing stripe-signature header")

    if not secret:
        logger.error("Webhook secret not configured")
        raise SignatureInvalid("Webhook secret not configured")

    try:
        stripe.Webhook.construct_event(raw_body, signature_header, secret, tolerance=tolerance)
        event = PaymentEvent.model_validate_json(raw_body)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Invalid webhook signature: {e.user_message}")
        raise SignatureInvalid(e.user_message or "Invalid signature")
    except ValueError as e:
        # JSON, encoding and schema errors in an otherwise signed body
        logger.warning(f"Signed webhook payload could not be parsed: {e}")
        raise SignatureInvalid(f"Invalid payload: {e}")

    logger.info(f"✓ Valid webhook signature for event {event.id} ({event.type})")
    return event
