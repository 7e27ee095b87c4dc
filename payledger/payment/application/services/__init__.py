"""Application services for payment processing."""

from .payment_service import APPLIED_STATUS_CODE, PaymentService

__all__ = ["APPLIED_STATUS_CODE", "PaymentService"]
