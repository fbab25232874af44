"""Error types raised by the order service.

Every error carries a stable ``code`` string that the HTTP layer returns to
callers as ``{"code": ..., "message": ...}``.
"""

from typing import Any, Dict, Optional


class OrderServiceError(Exception):
    """Base class for all order service errors."""

    code = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for an API error response."""
        return {"code": self.code, "message": self.message}


class SignatureInvalid(OrderServiceError):
    """Webhook signature missing, malformed, stale or not matching."""

    code = "unauthenticated"


class NotFound(OrderServiceError):
    """No order with the given id."""

    code = "not-found"

    def __init__(self, order_id: str, collection: str = "orders"):
        super().__init__(f"Order {order_id} not found in {collection}")
        self.order_id = order_id


class InvalidTransition(OrderServiceError):
    """The order is not in a state that allows the requested change."""

    code = "failed-precondition"

    def __init__(
        self,
        order_id: str,
        current_status: Optional[str],
        target_status: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = f"Cannot transition order {order_id} from {current_status} to {target_status}"
        super().__init__(message)
        self.order_id = order_id
        self.current_status = current_status
        self.target_status = target_status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["currentStatus"] = self.current_status
        return data


class GatewayError(OrderServiceError):
    """The payment processor rejected a call or could not be reached."""

    code = "unavailable"

    def __init__(self, message: str, gateway_code: Optional[str] = None):
        super().__init__(message)
        self.gateway_code = gateway_code


class StoreError(OrderServiceError):
    """Persistence layer unavailable or refused the write."""

    code = "internal"


class SchemaError(OrderServiceError):
    """Order document does not match the order schema."""

    code = "invalid-argument"
