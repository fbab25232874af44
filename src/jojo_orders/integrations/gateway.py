"""Payment gateway port and Stripe adapter.

``PaymentGateway`` is the contract the lifecycle engine and the HTTP layer
depend on; ``StripeGateway`` implements it with the stripe SDK.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import stripe

from jojo_orders.core.errors import GatewayError
from jojo_orders.core.logger import setup_logger
from jojo_orders.core.signature import DEFAULT_TOLERANCE, verify_webhook_signature
from jojo_orders.models.webhook import PaymentEvent

logger = setup_logger(__name__)


@dataclass(frozen=True)
class GatewayConfig:
    """Everything the Stripe adapter needs; passed in explicitly."""

    secret_key: Optional[str]
    webhook_secret: Optional[str] = None
    api_base: str = "https://api.stripe.com"
    currency: str = "usd"
    timeout: float = 10.0
    webhook_tolerance: int = DEFAULT_TOLERANCE


@dataclass(frozen=True)
class PaymentIntent:
    """A created payment intent."""

    id: str
    client_secret: str
    amount: int
    currency: str


@dataclass(frozen=True)
class RefundResult:
    """A refund accepted by the gateway."""

    id: str
    status: str
    amount: int


def to_cents(amount: Decimal) -> int:
    """Convert a decimal currency amount to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_amount_cents(amount_cents: Any) -> int:
    """Return ``amount_cents`` if it is a positive integer, else raise GatewayError."""
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise GatewayError(f"Invalid amount: {amount_cents!r} (expected positive integer cents)")
    return amount_cents


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentIntent:
        """Create a payment intent for ``amount_cents``."""
        ...

    @abstractmethod
    def verify_webhook_signature(
        self,
        raw_body: bytes,
        signature_header: Optional[str],
        secret: Optional[str] = None,
    ) -> PaymentEvent:
        """Verify a webhook delivery and return the event it carries."""
        ...

    @abstractmethod
    async def refund(
        self,
        payment_id: str,
        amount: Optional[Decimal] = None,
        idempotency_key: Optional[str] = None,
    ) -> RefundResult:
        """
        Refund a payment; full refund when ``amount`` is None.

        Repeating a call with the same ``idempotency_key`` returns the first
        refund instead of creating another.
        """
        ...

    async def aclose(self) -> None:
        """Release any held resources."""


class StripeGateway(PaymentGateway):
    """Async Stripe adapter built on ``stripe.StripeClient``."""

    def __init__(self, config: GatewayConfig, client: Optional[stripe.StripeClient] = None):
        """
        Initialize the adapter.

        Args:
            config: Stripe credentials and defaults
            client: Optional preconfigured Stripe client (used by tests)
        """
        self.config = config
        self.http_client: Optional[stripe.HTTPXClient] = None

        if client is None and config.secret_key:
            self.http_client = stripe.HTTPXClient(timeout=config.timeout)
            client = stripe.StripeClient(
                config.secret_key,
                base_addresses={"api": config.api_base},
                http_client=self.http_client,
            )
        self.client = client

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _require_client(self):
        if not self.configured:
            raise GatewayError("Payment service unavailable: Stripe secret key not configured")
        return self.client

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentIntent:
        """
        Create a Stripe PaymentIntent with automatic payment methods.

        Raises:
            GatewayError: If the amount is not a positive integer or Stripe rejects the call
        """
        amount_cents = validate_amount_cents(amount_cents)
        client = self._require_client()
        params = {
            "amount": amount_cents,
            "currency": currency or self.config.currency,
            "automatic_payment_methods": {"enabled": True},
            "metadata": {key: str(value) for key, value in (metadata or {}).items()},
        }

        try:
            intent = await client.v1.payment_intents.create_async(params=params)
        except stripe.StripeError as e:
            logger.warning(f"Stripe rejected payment intent for {amount_cents} cents: {e}")
            raise GatewayError(e.user_message or str(e), gateway_code=e.code)

        logger.info(f"Created payment intent {intent.id} for {amount_cents} cents")
        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
        )

    def verify_webhook_signature(
        self,
        raw_body: bytes,
        signature_header: Optional[str],
        secret: Optional[str] = None,
    ) -> PaymentEvent:
        """Verify against ``secret``, defaulting to the configured endpoint secret."""
        return verify_webhook_signature(
            raw_body,
            signature_header,
            secret or self.config.webhook_secret,
            tolerance=self.config.webhook_tolerance,
        )

    async def refund(
        self,
        payment_id: str,
        amount: Optional[Decimal] = None,
        idempotency_key: Optional[str] = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent.

        Raises:
            GatewayError: If Stripe rejects the refund (e.g. already refunded)
        """
        client = self._require_client()
        params: Dict[str, Any] = {"payment_intent": payment_id}
        if amount is not None:
            params["amount"] = validate_amount_cents(to_cents(amount))
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}

        try:
            refund = await client.v1.refunds.create_async(params=params, options=options)
        except stripe.StripeError as e:
            logger.warning(f"Stripe rejected refund for {payment_id}: {e}")
            raise GatewayError(e.user_message or str(e), gateway_code=e.code)

        logger.info(f"Refund {refund.id} created for {payment_id} ({refund.status})")
        return RefundResult(id=refund.id, status=refund.status, amount=refund.amount)

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.close_async()
