from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import update

from helpers import build_order

from jojo_orders.core.errors import InvalidTransition, NotFound, SchemaError, StoreError
from jojo_orders.db.models import OrderRecord
from jojo_orders.models.order import OrderStatus


class TestCreateAndGet:
    async def test_create_stamps_timestamps(self, store):
        created = await store.create(build_order())

        assert created.created_at is not None
        assert created.updated_at is not None

        fetched = await store.get("o1")
        assert fetched.status == OrderStatus.PENDING
        assert fetched.total == Decimal("50.00")
        assert fetched.items[0].selected_size == "M"
        assert fetched.items[1].line_total == Decimal("25.00")

    async def test_duplicate_id_is_rejected(self, store):
        await store.create(build_order())

        with pytest.raises(StoreError):
            await store.create(build_order())

    async def test_get_unknown_order(self, store):
        with pytest.raises(NotFound):
            await store.get("missing")

    async def test_malformed_row_raises_schema_error(self, store):
        await store.create(build_order())
        async with store.session_factory() as session:
            await session.execute(
                update(OrderRecord).where(OrderRecord.id == "o1").values(status="lost")
            )
            await session.commit()

        with pytest.raises(SchemaError):
            await store.get("o1")


class TestQuery:
    async def test_filters_by_status(self, store):
        await store.create(build_order("a"))
        await store.create(build_order("b", status=OrderStatus.PAID))
        await store.create(build_order("c", status=OrderStatus.PAID))

        paid = await store.query(OrderStatus.PAID)
        everything = await store.query()

        assert sorted(o.id for o in paid) == ["b", "c"]
        assert len(everything) == 3


class TestUpdate:
    async def test_partial_update(self, store):
        await store.create(build_order(status=OrderStatus.FAILED, paymentError="declined"))

        updated = await store.update("o1", {"payment_error": "expired card"})

        assert updated.payment_error == "expired card"
        assert (await store.get("o1")).payment_error == "expired card"

    async def test_update_cannot_change_status(self, store):
        await store.create(build_order())

        with pytest.raises(StoreError):
            await store.update("o1", {"status": OrderStatus.PAID})
        assert (await store.get("o1")).status == OrderStatus.PENDING

    async def test_update_unknown_order(self, store):
        with pytest.raises(NotFound):
            await store.update("missing", {"payment_error": "x"})

    async def test_update_unknown_field(self, store):
        await store.create(build_order())

        with pytest.raises(SchemaError):
            await store.update("o1", {"coupon": "SAVE10"})

    async def test_update_rejects_invalid_document(self, store):
        await store.create(build_order())

        with pytest.raises(SchemaError):
            await store.update("o1", {"return_items": [7]})


class TestTransition:
    async def test_conditional_update_applies(self, store):
        await store.create(build_order())

        updated = await store.transition(
            "o1", OrderStatus.PENDING, {"status": OrderStatus.PAID, "payment_id": "pi_1"}
        )

        assert updated.status == OrderStatus.PAID
        stored = await store.get("o1")
        assert stored.status == OrderStatus.PAID
        assert stored.payment_id == "pi_1"

    async def test_stale_expected_status_is_rejected(self, store):
        await store.create(build_order(status=OrderStatus.PAID))
        await store.transition("o1", OrderStatus.PAID, {"status": OrderStatus.SHIPPED})

        # A second writer that read "paid" before the first write landed
        with pytest.raises(InvalidTransition) as exc_info:
            await store.transition(
                "o1",
                OrderStatus.PAID,
                {"status": OrderStatus.REFUND_REQUESTED, "refund_reason": "late"},
            )

        assert exc_info.value.current_status == "shipped"
        stored = await store.get("o1")
        assert stored.status == OrderStatus.SHIPPED
        assert stored.refund_reason is None

    async def test_transition_unknown_order(self, store):
        with pytest.raises(NotFound):
            await store.transition("missing", OrderStatus.PENDING, {"status": OrderStatus.PAID})


class TestClaim:
    async def test_only_one_claim_is_granted(self, store):
        await store.create(build_order(status=OrderStatus.RETURN_APPROVED, refundReason="x"))

        claimed = await store.claim("o1", OrderStatus.RETURN_APPROVED, "refund_started_at")
        assert claimed.refund_started_at is not None
        assert (await store.get("o1")).refund_started_at is not None

        with pytest.raises(InvalidTransition, match="already being processed"):
            await store.claim("o1", OrderStatus.RETURN_APPROVED, "refund_started_at")

    async def test_stale_claim_can_be_taken_over(self, store):
        await store.create(
            build_order(
                status=OrderStatus.RETURN_APPROVED,
                refundReason="x",
                refundStartedAt=datetime.now(timezone.utc) - timedelta(hours=1),
            )
        )

        with pytest.raises(InvalidTransition):
            await store.claim("o1", OrderStatus.RETURN_APPROVED, "refund_started_at")

        claimed = await store.claim(
            "o1",
            OrderStatus.RETURN_APPROVED,
            "refund_started_at",
            stale_before=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        assert claimed.status == OrderStatus.RETURN_APPROVED

    async def test_claim_requires_expected_status(self, store):
        await store.create(build_order(status=OrderStatus.REFUNDED))

        with pytest.raises(InvalidTransition) as exc_info:
            await store.claim("o1", OrderStatus.RETURN_APPROVED, "refund_started_at")

        assert exc_info.value.current_status == "refunded"
        assert (await store.get("o1")).refund_started_at is None

    async def test_claim_unknown_order(self, store):
        with pytest.raises(NotFound):
            await store.claim("missing", OrderStatus.RETURN_APPROVED, "refund_started_at")


class TestArchive:
    async def test_archive_moves_document(self, store):
        await store.create(build_order(status=OrderStatus.REFUNDED, paymentId="pi_1"))

        archived = await store.archive("o1")

        assert archived.archived_at is not None
        with pytest.raises(NotFound):
            await store.get("o1")

        copy = await store.get_archived("o1")
        assert copy.status == OrderStatus.REFUNDED
        assert copy.payment_id == "pi_1"
        assert copy.total == Decimal("50.00")
        assert len(copy.items) == 2

    async def test_archive_unknown_order(self, store):
        with pytest.raises(NotFound):
            await store.archive("missing")

        with pytest.raises(NotFound):
            await store.get_archived("missing")

    async def test_health_check(self, store):
        assert await store.health_check() is True
