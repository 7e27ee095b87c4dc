"""Domain enums for payment application."""

from enum import Enum

from ...storage.database.models import InvoiceStatus, PaymentType


class PaymentOutcome(str, Enum):
    """Result class of applying one payment event."""

    APPLIED = "applied"  # New payment recorded, status recomputed
    ALREADY_PROCESSED = "already_processed"  # Idempotent replay, no effect


__all__ = ["InvoiceStatus", "PaymentOutcome", "PaymentType"]
