"""Domain value objects for payment application.

Value Objects in DDD:
- Immutable (frozen dataclasses)
- No identity (equality based on attributes)
"""

from dataclasses import dataclass
from typing import Any

from .enums import InvoiceStatus, PaymentOutcome


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of ``PaymentService.apply_payment``.

    ``status_code`` is the HTTP status the boundary should report for this
    outcome: 201 for a new payment, the configured duplicate code (200 or 409)
    for a replay.
    """

    outcome: PaymentOutcome
    status_code: int
    message: str
    event_id: str
    invoice_status: InvoiceStatus | None = None
    total_paid: int | None = None

    @property
    def is_duplicate(self) -> bool:
        return self.outcome is PaymentOutcome.ALREADY_PROCESSED

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "status_code": self.status_code,
            "message": self.message,
            "event_id": self.event_id,
            "invoice_status": self.invoice_status.value if self.invoice_status else None,
            "total_paid": self.total_paid,
        }
