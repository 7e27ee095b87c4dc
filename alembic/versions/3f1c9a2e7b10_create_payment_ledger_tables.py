"""create_payment_ledger_tables

Revision ID: 3f1c9a2e7b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2e7b10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

NOTIFY_FUNCTION = """
CREATE OR REPLACE FUNCTION notify_payment_events() RETURNS TRIGGER AS $$
BEGIN
  PERFORM pg_notify('payment_events', NEW.event_id);
  RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

NOTIFY_TRIGGER = """
CREATE TRIGGER trg_notify_payment_events
    AFTER INSERT ON payment_events_queue
    FOR EACH ROW EXECUTE FUNCTION notify_payment_events();
"""


def upgrade() -> None:
    """Upgrade schema - Create invoices, payments and payment_events_queue.

    - invoices: amount owed plus status derived from cumulative payments
    - payments: one row per sender event id (the idempotency key)
    - payment_events_queue: durable queue reserved for an out-of-process worker;
      on PostgreSQL inserts wake listeners through pg_notify
    """
    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), server_default="sent", nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("total_cents > 0", name=op.f("ck_invoices_total_cents_positive")),
        sa.CheckConstraint(
            "status IN ('sent','partially_paid','paid')", name=op.f("ck_invoices_status_valid")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_invoices")),
    )

    op.create_table(
        "payments",
        sa.Column("event_id", sa.Text(), nullable=False),
        sa.Column("invoice_id", sa.Uuid(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("amount_cents > 0", name=op.f("ck_payments_amount_cents_positive")),
        sa.CheckConstraint("type IN ('payment_received')", name=op.f("ck_payments_type_valid")),
        sa.ForeignKeyConstraint(
            ["invoice_id"],
            ["invoices.id"],
            name=op.f("fk_payments_invoice_id_invoices"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("event_id", name=op.f("pk_payments")),
    )

    op.create_table(
        "payment_events_queue",
        sa.Column("event_id", sa.Text(), nullable=False),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column(
            "enqueued_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("event_id", name=op.f("pk_payment_events_queue")),
    )
    op.create_index(
        "idx_payment_events_queue_unprocessed",
        "payment_events_queue",
        ["processed_at", "enqueued_at"],
        unique=False,
    )

    if op.get_bind().dialect.name == "postgresql":
        op.execute(NOTIFY_FUNCTION)
        op.execute("DROP TRIGGER IF EXISTS trg_notify_payment_events ON payment_events_queue")
        op.execute(NOTIFY_TRIGGER)


def downgrade() -> None:
    """Downgrade schema - Drop the payment ledger tables."""
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP TRIGGER IF EXISTS trg_notify_payment_events ON payment_events_queue")
        op.execute("DROP FUNCTION IF EXISTS notify_payment_events()")

    op.drop_index("idx_payment_events_queue_unprocessed", table_name="payment_events_queue")
    op.drop_table("payment_events_queue")
    op.drop_table("payments")
    op.drop_table("invoices")
