"""Database module."""

from .base import Base, get_engine, get_session_factory, init_db
from .models import ArchivedOrderRecord, OrderRecord
from .repository import OrderStore

__all__ = [
    "ArchivedOrderRecord",
    "Base",
    "OrderRecord",
    "OrderStore",
    "get_engine",
    "get_session_factory",
    "init_db",
]
