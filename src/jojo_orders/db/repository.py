"""Order store: data access for active and archived orders."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jojo_orders.core.errors import InvalidTransition, NotFound, SchemaError, StoreError
from jojo_orders.core.logger import setup_logger
from jojo_orders.models.order import ArchivedOrder, Order, OrderStatus

from .models import ORDER_COLUMNS, ArchivedOrderRecord, OrderRecord

logger = setup_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate(data: Dict[str, Any], model=Order):
    """Validate a document against the order schema, raising SchemaError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise SchemaError(f"Malformed order document {data.get('id')!r}: {e}")


def _record_to_order(record: OrderRecord) -> Order:
    return _validate({column: getattr(record, column) for column in ORDER_COLUMNS})


def _column_values(order: Order, columns) -> Dict[str, Any]:
    """Column values for ``columns`` taken from a validated order."""
    values = {}
    for column in columns:
        if column == "items":
            values[column] = [
                item.model_dump(by_alias=True, mode="json", exclude_none=True)
                for item in order.items
            ]
        elif column == "status":
            values[column] = order.status.value
        else:
            values[column] = getattr(order, column)
    return values


class OrderStore:
    """
    Data access layer for orders.

    ``status`` can only be changed through ``transition``, which performs a
    conditional update on the expected current status.
    """

    def __init__(self, session_factory: async_sessionmaker):
        """Initialize store with an async session factory."""
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Database error: {e}", exc_info=True)
            raise StoreError(f"Database error: {e}")

    async def create(self, order: Order) -> Order:
        """Insert a new order, stamping createdAt/updatedAt."""
        now = utcnow()
        order = order.model_copy(
            update={"created_at": order.created_at or now, "updated_at": now}
        )
        # Re-validate the whole document, not just the copy
        order = _validate(order.model_dump())

        async with self._session() as session:
            session.add(OrderRecord(**_column_values(order, ORDER_COLUMNS)))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise StoreError(f"Order {order.id} already exists")

        logger.info(f"Created order {order.id} ({order.status.value})", extra={"order_id": order.id})
        return order

    async def get(self, order_id: str) -> Order:
        """Get an order by id."""
        async with self._session() as session:
            record = await session.get(OrderRecord, order_id)
            if record is None:
                raise NotFound(order_id)
            return _record_to_order(record)

    async def query(self, status: Optional[OrderStatus] = None) -> List[Order]:
        """List orders, newest first, optionally filtered by status."""
        stmt = select(OrderRecord).order_by(OrderRecord.created_at.desc())
        if status is not None:
            stmt = stmt.where(OrderRecord.status == OrderStatus(status).value)

        async with self._session() as session:
            result = await session.execute(stmt)
            return [_record_to_order(record) for record in result.scalars().all()]

    async def update(self, order_id: str, patch: Dict[str, Any]) -> Order:
        """
        Apply a partial field set to an order.

        Args:
            order_id: The order identifier
            patch: Field values keyed by Order field name; must not contain status

        Returns:
            The updated order

        Raises:
            StoreError: If the patch tries to change status
            NotFound: If no such order exists
            SchemaError: If the patched document is malformed
        """
        if "status" in patch:
            raise StoreError("Order status can only be changed through a transition")
        return await self._write(order_id, None, patch)

    async def transition(
        self,
        order_id: str,
        expected_status: OrderStatus,
        patch: Dict[str, Any],
    ) -> Order:
        """
        Change an order's status if, and only if, it is still ``expected_status``.

        The write is a single ``UPDATE ... WHERE id = ? AND status = ?`` so two
        concurrent transitions from the same status cannot both succeed.

        Raises:
            NotFound: If no such order exists
            InvalidTransition: If the order's status is no longer expected_status
        """
        if "status" not in patch:
            raise StoreError("A transition patch must set status")
        return await self._write(order_id, OrderStatus(expected_status), patch)

    async def claim(
        self,
        order_id: str,
        expected_status: OrderStatus,
        field: str,
        stale_before: Optional[datetime] = None,
    ) -> Order:
        """
        Stamp ``field`` with the current time as a lease on the order.

        Succeeds only if the order is still ``expected_status`` and ``field``
        is unset, or was set before ``stale_before``. Of several concurrent
        callers exactly one gets the lease.

        Raises:
            NotFound: If no such order exists
            InvalidTransition: If the status changed or the lease is held
        """
        column = getattr(OrderRecord, field)
        free = column.is_(None)
        if stale_before is not None:
            free = or_(free, column < stale_before)
        return await self._write(
            order_id, OrderStatus(expected_status), {field: utcnow()}, conditions=[free]
        )

    async def _write(
        self,
        order_id: str,
        expected_status: Optional[OrderStatus],
        patch: Dict[str, Any],
        conditions: Sequence[Any] = (),
    ) -> Order:
        unknown = set(patch) - set(ORDER_COLUMNS)
        if unknown or "id" in patch:
            raise SchemaError(f"Cannot patch fields: {sorted(unknown | ({'id'} & set(patch)))}")

        async with self._session() as session:
            record = await session.get(OrderRecord, order_id)
            if record is None:
                raise NotFound(order_id)

            current = _record_to_order(record)
            data = current.model_dump()
            data.update(patch)
            data["updated_at"] = utcnow()
            updated = _validate(data)

            values = _column_values(updated, list(patch) + ["updated_at"])
            stmt = update(OrderRecord).where(OrderRecord.id == order_id)
            if expected_status is not None:
                stmt = stmt.where(OrderRecord.status == expected_status.value)
            for condition in conditions:
                stmt = stmt.where(condition)
            stmt = stmt.values(**values).execution_options(synchronize_session=False)

            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                actual = await session.scalar(
                    select(OrderRecord.status).where(OrderRecord.id == order_id)
                )
                if actual is None or expected_status is None:
                    raise NotFound(order_id)
                if actual == expected_status.value:
                    raise InvalidTransition(
                        order_id,
                        actual,
                        updated.status.value,
                        message=f"Order {order_id} is already being processed",
                    )
                raise InvalidTransition(
                    order_id,
                    actual,
                    updated.status.value,
                    message=(
                        f"Order {order_id} is {actual}, expected {expected_status.value}; "
                        f"not changed to {updated.status.value}"
                    ),
                )
            await session.commit()

        return updated

    async def archive(self, order_id: str) -> ArchivedOrder:
        """
        Move an order to archivedOrders.

        The copy and the delete are committed in one transaction.
        """
        async with self._session() as session:
            async with session.begin():
                record = await session.get(OrderRecord, order_id)
                if record is None:
                    raise NotFound(order_id)

                now = utcnow()
                archived = _validate(
                    {**_record_to_order(record).model_dump(), "archived_at": now},
                    model=ArchivedOrder,
                )
                session.add(
                    ArchivedOrderRecord(
                        id=order_id,
                        document=archived.to_document(),
                        archived_at=now,
                    )
                )
                await session.delete(record)

        logger.info(f"Archived order {order_id}", extra={"order_id": order_id})
        return archived

    async def get_archived(self, order_id: str) -> ArchivedOrder:
        """Get an archived order by id."""
        async with self._session() as session:
            record = await session.get(ArchivedOrderRecord, order_id)
            if record is None:
                raise NotFound(order_id, "archivedOrders")
            return _validate(record.document, model=ArchivedOrder)

    async def health_check(self) -> bool:
        """Check if the database is reachable."""
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False
