"""Payment application service.

Applies one payment event to the ledger with exactly-once financial effect.
Everything happens in a single transaction while a row lock is held on the
target invoice:

1. lock and load the invoice (``NotFoundError`` if absent)
2. insert the payment with insert-or-ignore on ``event_id``
3. on a fresh insert, sum all payments and derive the new status
4. write status and ``updated_at``, commit

A replayed event id makes step 2 a no-op; the transaction then commits
without touching the invoice.
"""

import uuid
from typing import Any

from ....exceptions import NotFoundError, ValidationError
from ....storage.session import SessionFactory, transaction
from ....utils.logging import get_logger
from ...domain.enums import PaymentOutcome, PaymentType
from ...domain.events import PaymentEvent
from ...domain.status import derive_invoice_status
from ...domain.value_objects import PaymentResult
from ...infrastructure.repository import PaymentRepository
from ...metrics import track_apply_duration

logger = get_logger(__name__)

APPLIED_STATUS_CODE = 201


class PaymentService:
    """Authoritative write path for payment events.

    Args:
        session_factory: Callable returning a new SQLAlchemy session
        duplicate_status_code: Status reported for replayed events (200 or 409)
    """

    def __init__(self, session_factory: SessionFactory, duplicate_status_code: int = 200):
        self._session_factory = session_factory
        self.duplicate_status_code = duplicate_status_code

    def payment_exists(self, event_id: str) -> bool:
        """Whether a payment with this event id has already been recorded."""
        with transaction(self._session_factory) as session:
            return PaymentRepository(session).payment_exists(event_id)

    def invoice_exists(self, invoice_id: uuid.UUID | str) -> bool:
        """Whether the invoice exists. Malformed ids simply do not exist."""
        try:
            key = _as_uuid(invoice_id)
        except ValidationError:
            return False
        with transaction(self._session_factory) as session:
            return PaymentRepository(session).invoice_exists(key)

    def apply_payment(self, payload: PaymentEvent) -> PaymentResult:
        """Record a payment and recompute the invoice status atomically.

        Args:
            payload: Payment event; validated again here so the service is
                safe to call without going through the HTTP boundary.

        Returns:
            PaymentResult with ``APPLIED`` (201) or ``ALREADY_PROCESSED``
            (configured duplicate code).

        Raises:
            ValidationError: Missing fields, bad invoice id, unsupported type
                or non-positive amount.
            NotFoundError: The invoice does not exist. Nothing is written.
            StorageError: The transaction failed. Nothing is written.
        """
        event_id, invoice_id, amount_cents, payment_type = _validate(payload)
        log = logger.bind(event_id=event_id, invoice_id=str(invoice_id))

        with track_apply_duration(), transaction(self._session_factory) as session:
            repo = PaymentRepository(session)

            invoice = repo.get_invoice_for_update(invoice_id)
            if invoice is None:
                raise NotFoundError(
                    "Invoice not found", entity_type="Invoice", entity_id=invoice_id
                )

            inserted = repo.insert_payment_ignore_conflict(
                event_id=event_id,
                invoice_id=invoice_id,
                amount_cents=amount_cents,
                payment_type=payment_type,
            )
            if not inserted:
                log.info("payment_already_processed")
                return PaymentResult(
                    outcome=PaymentOutcome.ALREADY_PROCESSED,
                    status_code=self.duplicate_status_code,
                    message="Payment already processed",
                    event_id=event_id,
                )

            previous_status = invoice.status
            total_paid = repo.total_paid(invoice_id)
            new_status = derive_invoice_status(total_paid, invoice.total_cents)
            repo.update_invoice_status(invoice_id, new_status)

            log.info(
                "payment_applied",
                amount_cents=amount_cents,
                total_paid=total_paid,
                total_cents=invoice.total_cents,
                previous_status=previous_status,
                status=new_status.value,
            )
            return PaymentResult(
                outcome=PaymentOutcome.APPLIED,
                status_code=APPLIED_STATUS_CODE,
                message="Payment processed",
                event_id=event_id,
                invoice_status=new_status,
                total_paid=total_paid,
            )


def _as_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(
            "invoice_id must be a UUID", field="invoice_id", value=value, original_error=e
        ) from e


def _validate(payload: PaymentEvent) -> tuple[str, uuid.UUID, int, PaymentType]:
    event_id = getattr(payload, "event_id", None)
    invoice_id = getattr(payload, "invoice_id", None)
    amount_cents = getattr(payload, "amount_cents", None)
    raw_type = getattr(payload, "type", PaymentType.PAYMENT_RECEIVED)

    if not event_id or not invoice_id:
        raise ValidationError("Missing required fields", constraint="event_id and invoice_id")
    if not isinstance(event_id, str):
        raise ValidationError("event_id must be a string", field="event_id", value=event_id)
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError(
            "amount_cents must be an integer", field="amount_cents", value=amount_cents
        )
    if amount_cents <= 0:
        raise ValidationError(
            "Amount must be positive", field="amount_cents", value=amount_cents, constraint="> 0"
        )
    try:
        payment_type = PaymentType(raw_type)
    except ValueError as e:
        raise ValidationError(
            "Unsupported payment type", field="type", value=raw_type, original_error=e
        ) from e

    return event_id, _as_uuid(invoice_id), amount_cents, payment_type
