"""SQLAlchemy models for PayLedger.

Column names, types and CHECK constraints mirror the production schema
exactly: status and type are stored as plain TEXT guarded by CHECK
constraints, not as database enum types.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ...utils.datetime import utc_now
from .base import Base


class InvoiceStatus(str, PyEnum):
    """Invoice payment status, ordered by progress."""

    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PaymentType(str, PyEnum):
    """Kinds of payment events accepted from the webhook sender."""

    PAYMENT_RECEIVED = "payment_received"


def _in_clause(column: str, enum: type[PyEnum]) -> str:
    values = ",".join(f"'{member.value}'" for member in enum)
    return f"{column} IN ({values})"


class Invoice(Base):
    """An amount owed, whose status follows cumulative payments."""

    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("total_cents > 0", name="total_cents_positive"),
        CheckConstraint(_in_clause("status", InvoiceStatus), name="status_valid"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=InvoiceStatus.SENT.value,
        server_default=InvoiceStatus.SENT.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    payments: Mapped[list[Payment]] = relationship(
        back_populates="invoice", order_by="Payment.created_at"
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, total_cents={self.total_cents}, status={self.status})>"


class Payment(Base):
    """One applied payment event. ``event_id`` is the idempotency key."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="amount_cents_positive"),
        CheckConstraint(_in_clause("type", PaymentType), name="type_valid"),
    )

    event_id: Mapped[str] = mapped_column(Text, primary_key=True)
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )

    invoice: Mapped[Invoice] = relationship(back_populates="payments")

    def __repr__(self) -> str:
        return (
            f"<Payment(event_id={self.event_id!r}, invoice_id={self.invoice_id}, "
            f"amount_cents={self.amount_cents})>"
        )


class PaymentEventQueueEntry(Base):
    """Durable queue row, reserved for a durable-queue worker.

    The in-process queue never reads or writes this table.
    """

    __tablename__ = "payment_events_queue"
    __table_args__ = (
        Index("idx_payment_events_queue_unprocessed", "processed_at", "enqueued_at"),
    )

    event_id: Mapped[str] = mapped_column(Text, primary_key=True)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    enqueued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    error: Mapped[str | None] = mapped_column(Text)
