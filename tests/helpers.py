"""Shared test doubles and builders."""

import asyncio
import hashlib
import hmac
import json
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from jojo_orders.core.errors import GatewayError
from jojo_orders.core.signature import verify_webhook_signature
from jojo_orders.integrations.gateway import (
    PaymentGateway,
    PaymentIntent,
    RefundResult,
    to_cents,
    validate_amount_cents,
)
from jojo_orders.models.order import Order, OrderStatus

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_KEY = "admin-test-key"


class FakeGateway(PaymentGateway):
    """Configurable in-memory payment gateway that records every call."""

    def __init__(self, webhook_secret: str = WEBHOOK_SECRET) -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed = True
        self.failure_reason = "Charge has already been refunded"
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        # Seconds each gateway call takes; lets other tasks run meanwhile
        self.latency = 0.0

    def configure(self, should_succeed: bool, failure_reason: str = "Charge has already been refunded") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    @property
    def refund_calls(self) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["method"] == "refund"]

    async def create_payment_intent(self, amount_cents, currency=None, metadata=None) -> PaymentIntent:
        amount_cents = validate_amount_cents(amount_cents)
        self.calls.append(
            {"method": "create_payment_intent", "amount": amount_cents, "metadata": metadata}
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)
        return PaymentIntent(
            id=f"pi_fake_{len(self.calls)}",
            client_secret=f"pi_fake_{len(self.calls)}_secret",
            amount=amount_cents,
            currency=currency or "usd",
        )

    def verify_webhook_signature(self, raw_body, signature_header, secret=None):
        return verify_webhook_signature(raw_body, signature_header, secret or self.webhook_secret)

    async def refund(
        self,
        payment_id: str,
        amount: Optional[Decimal] = None,
        idempotency_key: Optional[str] = None,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "payment_id": payment_id,
                "amount": amount,
                "idempotency_key": idempotency_key,
            }
        )
        await asyncio.sleep(self.latency)
        if not self.should_succeed:
            raise GatewayError(self.failure_reason, gateway_code="charge_already_refunded")
        return RefundResult(
            id=f"re_fake_{len(self.calls)}",
            status="succeeded",
            amount=to_cents(amount) if amount is not None else 0,
        )

    async def aclose(self) -> None:
        self.closed = True


def build_order(order_id: str = "o1", **fields) -> Order:
    """An order with two items (25.00 x1 and 12.50 x2, total 50.00)."""
    data = {
        "id": order_id,
        "status": OrderStatus.PENDING,
        "items": [
            {"name": "Jojo T-Shirt", "price": "25.00", "quantity": 1, "selectedSize": "M"},
            {"name": "Sticker Pack", "price": "12.50", "quantity": 2},
        ],
        "total": Decimal("50.00"),
        "shippingInfo": {"firstName": "Ada", "lastName": "Lovelace", "city": "Austin"},
    }
    data.update(fields)
    return Order.model_validate(data)


def payment_event(
    event_type: str,
    order_id: Optional[str] = "o1",
    object_id: str = "payIntentX",
    event_id: str = "evt_1",
    **object_fields,
) -> Dict[str, Any]:
    """A Stripe-shaped event dict."""
    obj: Dict[str, Any] = {"id": object_id, "metadata": {}}
    if order_id is not None:
        obj["metadata"]["orderId"] = order_id
    obj.update(object_fields)
    return {"id": event_id, "type": event_type, "created": int(time.time()), "data": {"object": obj}}


def encode(event: Dict[str, Any]) -> bytes:
    return json.dumps(event, separators=(",", ":")).encode("utf-8")


def sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a stripe-signature header for ``body``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.".encode("utf-8") + body
    signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"
