"""Database engine, metadata and ORM models."""

from .base import Base, create_db_engine, create_session_factory, init_db, metadata
from .models import Invoice, InvoiceStatus, Payment, PaymentEventQueueEntry, PaymentType

__all__ = [
    "Base",
    "metadata",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "PaymentType",
    "PaymentEventQueueEntry",
]
