"""Core module - Logging, errors, signature verification, and failure logging."""

from jojo_orders.core.errors import (
    GatewayError,
    InvalidTransition,
    NotFound,
    OrderServiceError,
    SchemaError,
    SignatureInvalid,
    StoreError,
)
from jojo_orders.core.logger import setup_logger
from jojo_orders.core.signature import verify_webhook_signature

__all__ = [
    "GatewayError",
    "InvalidTransition",
    "NotFound",
    "OrderServiceError",
    "SchemaError",
    "SignatureInvalid",
    "StoreError",
    "setup_logger",
    "verify_webhook_signature",
]
