"""SQLAlchemy models for order data."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class OrderRecord(Base):
    """
    Active order, one row per order.

    Items and shipping info are stored as JSON documents; they are written
    once at creation and never updated.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(32), index=True, nullable=False)

    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_info: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(128), index=True, nullable=True)

    # Payment fields
    payment_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Return / refund fields
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    return_items: Mapped[Optional[List[int]]] = mapped_column(JSON, nullable=True)
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    deny_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refund_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Set while a refund call is in flight; only one caller can hold it
    refund_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ArchivedOrderRecord(Base):
    """Archived order: the full order document as it was when archived."""

    __tablename__ = "archivedOrders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


# Columns that map one-to-one onto Order fields
ORDER_COLUMNS = tuple(column.name for column in OrderRecord.__table__.columns)
