"""Invoice status rule."""

from .enums import InvoiceStatus


def derive_invoice_status(total_paid: int, total_cents: int) -> InvoiceStatus:
    """Status implied by cumulative payments against the amount owed.

    Pure and order-independent: only the sum matters. Since every accepted
    payment is strictly positive the sum only grows, so the derived status
    never moves backwards.

    Args:
        total_paid: Sum of all payment amounts recorded for the invoice
        total_cents: Amount owed

    Returns:
        ``PAID`` if fully covered, ``PARTIALLY_PAID`` if anything was paid,
        ``SENT`` otherwise.
    """
    if total_paid >= total_cents:
        return InvoiceStatus.PAID
    if total_paid > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return InvoiceStatus.SENT
