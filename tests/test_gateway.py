from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from helpers import WEBHOOK_SECRET, encode, payment_event, sign

from jojo_orders.core.errors import GatewayError, SignatureInvalid
from jojo_orders.integrations.gateway import GatewayConfig, StripeGateway, to_cents


class FakeService:
    """Stands in for a StripeClient service; records calls and answers with a canned object."""

    def __init__(self, response=None, error=None):
        self.response = response or {}
        self.error = error
        self.calls = []

    async def create_async(self, params=None, options=None):
        self.calls.append({"params": params, "options": options})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(**self.response)


class FakeStripeClient:
    def __init__(self, payment_intents=None, refunds=None):
        self.v1 = SimpleNamespace(
            payment_intents=payment_intents or FakeService(),
            refunds=refunds or FakeService(),
        )


def make_gateway(client=None, secret_key="sk_test_123") -> StripeGateway:
    config = GatewayConfig(secret_key=secret_key, webhook_secret=WEBHOOK_SECRET)
    return StripeGateway(config, client=client)


class TestCreatePaymentIntent:
    async def test_sends_params_and_returns_client_secret(self):
        service = FakeService(
            response={"id": "pi_1", "client_secret": "pi_1_secret_abc", "amount": 5000, "currency": "usd"}
        )
        gateway = make_gateway(FakeStripeClient(payment_intents=service))

        intent = await gateway.create_payment_intent(5000, metadata={"orderId": "o1", "items": 2})

        assert intent.id == "pi_1"
        assert intent.client_secret == "pi_1_secret_abc"
        assert service.calls[0]["params"] == {
            "amount": 5000,
            "currency": "usd",
            "automatic_payment_methods": {"enabled": True},
            "metadata": {"orderId": "o1", "items": "2"},
        }

    @pytest.mark.parametrize("amount", [0, -1, 1.5, True, "5000", None])
    async def test_rejects_invalid_amounts_without_calling_stripe(self, amount):
        service = FakeService()
        gateway = make_gateway(FakeStripeClient(payment_intents=service))

        with pytest.raises(GatewayError, match="Invalid amount"):
            await gateway.create_payment_intent(amount)

        assert service.calls == []

    async def test_card_error_is_surfaced(self):
        service = FakeService(error=stripe.CardError("Your card was declined.", None, "card_declined"))
        gateway = make_gateway(FakeStripeClient(payment_intents=service))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.create_payment_intent(1000)

        assert exc_info.value.message == "Your card was declined."
        assert exc_info.value.gateway_code == "card_declined"

    async def test_connection_error_is_surfaced(self):
        service = FakeService(error=stripe.APIConnectionError("Network error"))
        gateway = make_gateway(FakeStripeClient(payment_intents=service))

        with pytest.raises(GatewayError, match="Network error"):
            await gateway.create_payment_intent(1000)

    async def test_unconfigured_key(self):
        gateway = make_gateway(secret_key=None)

        assert not gateway.configured
        with pytest.raises(GatewayError, match="not configured"):
            await gateway.create_payment_intent(1000)
        await gateway.aclose()


class TestRefund:
    async def test_partial_refund_in_cents(self):
        service = FakeService(response={"id": "re_1", "status": "succeeded", "amount": 2500})
        gateway = make_gateway(FakeStripeClient(refunds=service))

        result = await gateway.refund("pi_1", Decimal("25.00"), idempotency_key="refund-o1")

        assert result.id == "re_1"
        assert result.status == "succeeded"
        assert result.amount == 2500
        assert service.calls == [
            {
                "params": {"payment_intent": "pi_1", "amount": 2500},
                "options": {"idempotency_key": "refund-o1"},
            }
        ]

    async def test_full_refund_omits_amount(self):
        service = FakeService(response={"id": "re_2", "status": "pending", "amount": 5000})
        gateway = make_gateway(FakeStripeClient(refunds=service))

        await gateway.refund("pi_1")

        assert service.calls[0]["params"] == {"payment_intent": "pi_1"}
        assert service.calls[0]["options"] == {}

    async def test_already_refunded(self):
        service = FakeService(
            error=stripe.InvalidRequestError(
                "Charge ch_1 has already been refunded.",
                "payment_intent",
                code="charge_already_refunded",
            )
        )
        gateway = make_gateway(FakeStripeClient(refunds=service))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.refund("pi_1", Decimal("50.00"))

        assert exc_info.value.message == "Charge ch_1 has already been refunded."
        assert exc_info.value.gateway_code == "charge_already_refunded"

    async def test_unconfigured_key(self):
        gateway = make_gateway(secret_key=None)

        with pytest.raises(GatewayError, match="not configured"):
            await gateway.refund("pi_1")


class TestVerifyWebhookSignature:
    def test_uses_configured_secret(self):
        gateway = make_gateway(FakeStripeClient())
        body = encode(payment_event("payment_intent.succeeded"))

        assert gateway.verify_webhook_signature(body, sign(body)).id == "evt_1"
        with pytest.raises(SignatureInvalid):
            gateway.verify_webhook_signature(body, sign(body, secret="whsec_other"))


@pytest.mark.parametrize(
    "amount,cents",
    [(Decimal("50.00"), 5000), (Decimal("12.345"), 1235), (Decimal("0.01"), 1)],
)
def test_to_cents(amount, cents):
    assert to_cents(amount) == cents
