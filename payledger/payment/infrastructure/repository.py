"""Data access for invoices and payments.

The repository holds no state besides the session it is given; it must be
used inside ``payledger.storage.session.transaction`` so that its writes are
committed or rolled back as one unit.
"""

import uuid

from sqlalchemy import exists, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ...exceptions import StorageError
from ...storage.database.models import Invoice, InvoiceStatus, Payment, PaymentType
from ...utils.datetime import utc_now

# Dialect-specific INSERT constructs supporting ON CONFLICT DO NOTHING
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class PaymentRepository:
    """Repository for Invoice and Payment rows."""

    def __init__(self, session: Session):
        self.session = session

    def get_invoice(self, invoice_id: uuid.UUID) -> Invoice | None:
        """Find invoice by id without locking."""
        return self.session.get(Invoice, invoice_id)

    def get_invoice_for_update(self, invoice_id: uuid.UUID) -> Invoice | None:
        """Load an invoice and hold a row lock on it until the transaction ends.

        Concurrent payments against the same invoice queue up here, so each
        one sums payments that include every previously committed row.
        """
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def invoice_exists(self, invoice_id: uuid.UUID) -> bool:
        stmt = select(exists().where(Invoice.id == invoice_id))
        return bool(self.session.execute(stmt).scalar())

    def payment_exists(self, event_id: str) -> bool:
        stmt = select(exists().where(Payment.event_id == event_id))
        return bool(self.session.execute(stmt).scalar())

    def insert_payment_ignore_conflict(
        self,
        *,
        event_id: str,
        invoice_id: uuid.UUID,
        amount_cents: int,
        payment_type: PaymentType = PaymentType.PAYMENT_RECEIVED,
    ) -> bool:
        """Insert a payment unless its event id already exists.

        The primary key on ``payments.event_id`` arbitrates concurrent
        deliveries of the same event atomically.

        Returns:
            True if a new row was written, False if the event id was already
            present and the insert was ignored.

        Raises:
            StorageError: If the bound dialect has no ON CONFLICT support.
        """
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise StorageError(
                "Insert-or-ignore is not supported on this database",
                context={"dialect": dialect},
            )

        stmt = (
            insert(Payment.__table__)
            .values(
                event_id=event_id,
                invoice_id=invoice_id,
                amount_cents=amount_cents,
                type=payment_type.value,
                created_at=utc_now(),
            )
            .on_conflict_do_nothing(index_elements=["event_id"])
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def total_paid(self, invoice_id: uuid.UUID) -> int:
        """Sum of all payment amounts recorded against an invoice."""
        stmt = select(func.coalesce(func.sum(Payment.amount_cents), 0)).where(
            Payment.invoice_id == invoice_id
        )
        return int(self.session.execute(stmt).scalar_one())

    def update_invoice_status(self, invoice_id: uuid.UUID, status: InvoiceStatus) -> None:
        """Write status and refresh ``updated_at``, even if status is unchanged."""
        stmt = (
            update(Invoice)
            .where(Invoice.id == invoice_id)
            .values(status=status.value, updated_at=utc_now())
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(stmt)

    def list_payments(self, invoice_id: uuid.UUID) -> list[Payment]:
        """All payments for an invoice, oldest first."""
        stmt = (
            select(Payment)
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.created_at, Payment.event_id)
        )
        return list(self.session.execute(stmt).scalars())

    def create_invoice(self, total_cents: int, invoice_id: uuid.UUID | None = None) -> Invoice:
        """Create an invoice in ``sent`` status.

        Invoices are issued outside the payment pipeline; this exists for the
        CLI and fixtures.
        """
        invoice = Invoice(id=invoice_id or uuid.uuid4(), total_cents=total_cents)
        self.session.add(invoice)
        self.session.flush()
        return invoice
