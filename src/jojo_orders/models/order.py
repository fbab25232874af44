"""Pydantic models for order documents."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    REFUND_REQUESTED = "refund_requested"
    RETURN_APPROVED = "return_approved"
    REFUNDED = "refunded"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({OrderStatus.REFUNDED, OrderStatus.FAILED})

# Statuses owned by the approve/deny/refund operations
RETURN_WORKFLOW_STATUSES = frozenset(
    {OrderStatus.REFUND_REQUESTED, OrderStatus.RETURN_APPROVED, OrderStatus.REFUNDED}
)


class OrderItem(BaseModel):
    """Single line of an order."""

    name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    selected_size: Optional[str] = Field(None, alias="selectedSize")

    class Config:
        extra = "ignore"
        populate_by_name = True

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class Order(BaseModel):
    """An order document as stored in the ``orders`` collection."""

    id: str = Field(..., min_length=1)
    status: OrderStatus = OrderStatus.PENDING
    items: List[OrderItem] = Field(default_factory=list)
    total: Decimal = Field(..., ge=0)
    shipping_info: Dict[str, Optional[str]] = Field(default_factory=dict, alias="shippingInfo")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    user_id: Optional[str] = Field(None, alias="userId")

    # Payment
    payment_id: Optional[str] = Field(None, alias="paymentId")
    payment_error: Optional[str] = Field(None, alias="paymentError")

    # Return / refund
    refund_reason: Optional[str] = Field(None, alias="refundReason")
    return_items: Optional[List[int]] = Field(None, alias="returnItems")
    refund_amount: Optional[Decimal] = Field(None, ge=0, alias="refundAmount")
    deny_reason: Optional[str] = Field(None, alias="denyReason")
    refund_id: Optional[str] = Field(None, alias="refundId")
    refund_started_at: Optional[datetime] = Field(None, alias="refundStartedAt")

    # Timestamps
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    shipped_at: Optional[datetime] = Field(None, alias="shippedAt")
    refunded_at: Optional[datetime] = Field(None, alias="refundedAt")

    class Config:
        extra = "forbid"
        populate_by_name = True

    @model_validator(mode="after")
    def _check_return_fields(self) -> "Order":
        if self.return_items is not None:
            if len(set(self.return_items)) != len(self.return_items):
                raise ValueError("returnItems contains duplicate indices")
            for index in self.return_items:
                if index < 0 or index >= len(self.items):
                    raise ValueError(f"returnItems index {index} out of range")
        if self.refund_amount is not None and self.refund_amount > self.total:
            raise ValueError("refundAmount exceeds order total")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def amount_to_refund(self) -> Decimal:
        """Refund amount if a partial refund was requested, else the full total."""
        return self.refund_amount if self.refund_amount is not None else self.total

    def to_document(self) -> Dict[str, Any]:
        """Dump with camelCase keys and JSON-safe values."""
        return self.model_dump(by_alias=True, mode="json")


class ArchivedOrder(Order):
    """An order moved to the ``archivedOrders`` collection."""

    archived_at: datetime = Field(..., alias="archivedAt")
