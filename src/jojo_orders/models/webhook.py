"""Pydantic models for payment gateway webhook events."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHECKOUT_COMPLETED = "checkout.session.completed"


class EventData(BaseModel):
    """The ``data`` envelope of a gateway event."""

    object_: Dict[str, Any] = Field(default_factory=dict, alias="object")

    class Config:
        extra = "allow"
        populate_by_name = True


class PaymentEvent(BaseModel):
    """Verified gateway event (Stripe event object)."""

    id: str = Field(..., description="Gateway event id (evt_...)")
    type: str = Field(..., description="Event type, e.g. payment_intent.succeeded")
    created: Optional[int] = Field(None, description="Unix timestamp of the event")
    data: EventData = Field(default_factory=EventData)

    class Config:
        extra = "allow"

    @property
    def payload(self) -> Dict[str, Any]:
        """The event's subject (payment intent or checkout session)."""
        return self.data.object_

    @property
    def object_id(self) -> Optional[str]:
        return self.payload.get("id")

    @property
    def order_id(self) -> Optional[str]:
        """Order id from the subject's metadata, if any."""
        metadata = self.payload.get("metadata") or {}
        return metadata.get("orderId")

    @property
    def failure_message(self) -> str:
        """Message of the last payment error, with a generic fallback."""
        error = self.payload.get("last_payment_error") or {}
        return error.get("message") or "Payment failed"
