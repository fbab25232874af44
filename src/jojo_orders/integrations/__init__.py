"""Integrations module - Payment gateway (Stripe)."""

from jojo_orders.integrations.gateway import (
    GatewayConfig,
    PaymentGateway,
    PaymentIntent,
    RefundResult,
    StripeGateway,
)

__all__ = ["GatewayConfig", "PaymentGateway", "PaymentIntent", "RefundResult", "StripeGateway"]
