"""Inbound payment webhook payload."""

from collections.abc import Mapping
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictInt
from pydantic import ValidationError as PydanticValidationError

from ...exceptions import ValidationError
from .enums import PaymentType


class PaymentEvent(BaseModel):
    """A payment event as delivered by the webhook sender.

    ``event_id`` is sender-supplied and globally unique; it is the
    idempotency key for the whole pipeline.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    event_id: Annotated[str, Field(min_length=1)]
    type: PaymentType
    invoice_id: UUID
    amount_cents: Annotated[StrictInt, Field(gt=0)]


def parse_payment_event(data: Mapping[str, Any]) -> PaymentEvent:
    """Validate a raw payload into a ``PaymentEvent``.

    Raises:
        ValidationError: With the first failing field in ``context``.
    """
    try:
        return PaymentEvent.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ValidationError(
            "Invalid payment payload",
            field=field,
            constraint=first["msg"],
            context={"error_count": e.error_count()},
            original_error=e,
        ) from e
