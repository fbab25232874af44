"""Pydantic models for the callable ``api`` endpoint and checkout requests."""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from jojo_orders.models.order import OrderStatus


class ApproveRefundRequest(BaseModel):
    endpoint: Literal["approveRefund"]
    order_id: str = Field(..., min_length=1, alias="orderId")


class DenyRefundRequest(BaseModel):
    endpoint: Literal["denyRefund"]
    order_id: str = Field(..., min_length=1, alias="orderId")
    deny_reason: Optional[str] = Field(None, alias="denyReason")


class ProcessRefundRequest(BaseModel):
    endpoint: Literal["processRefund"]
    order_id: str = Field(..., min_length=1, alias="orderId")


class ArchiveOrdersRequest(BaseModel):
    endpoint: Literal["archiveOrders"]
    order_ids: List[str] = Field(..., min_length=1, alias="orderIds")


class UpdateStatusRequest(BaseModel):
    """Generic operator status change (admin status dropdown)."""

    endpoint: Literal["updateStatus"]
    order_id: str = Field(..., min_length=1, alias="orderId")
    status: OrderStatus


class RequestRefundRequest(BaseModel):
    """Customer return request from the order history screen."""

    endpoint: Literal["requestRefund"]
    order_id: str = Field(..., min_length=1, alias="orderId")
    reason: str = Field(..., min_length=1)
    return_items: Optional[List[int]] = Field(None, alias="returnItems")


ApiRequest = Annotated[
    Union[
        ApproveRefundRequest,
        DenyRefundRequest,
        ProcessRefundRequest,
        ArchiveOrdersRequest,
        UpdateStatusRequest,
        RequestRefundRequest,
    ],
    Field(discriminator="endpoint"),
]

# Endpoints that require operator authorization
OPERATOR_ENDPOINTS = frozenset(
    {"approveRefund", "denyRefund", "processRefund", "archiveOrders", "updateStatus"}
)


class ArchiveFailure(BaseModel):
    order_id: str = Field(..., alias="orderId")
    code: str
    message: str

    class Config:
        populate_by_name = True


class ArchiveSummary(BaseModel):
    """Per-id outcome of an archiveOrders call."""

    archived: List[str] = Field(default_factory=list)
    failed: List[ArchiveFailure] = Field(default_factory=list)


class PaymentIntentRequest(BaseModel):
    """Body of ``POST /create-payment-intent``; ``amount`` is in cents.

    The amount is validated by the gateway adapter so that a bad amount is
    reported the same way as a remote rejection.
    """

    amount: Any
    currency: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
