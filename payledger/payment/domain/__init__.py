"""Payment domain: payload schema, outcomes and the status rule."""

from .enums import InvoiceStatus, PaymentOutcome, PaymentType
from .events import PaymentEvent, parse_payment_event
from .status import derive_invoice_status
from .value_objects import PaymentResult

__all__ = [
    "InvoiceStatus",
    "PaymentOutcome",
    "PaymentType",
    "PaymentEvent",
    "PaymentResult",
    "derive_invoice_status",
    "parse_payment_event",
]
