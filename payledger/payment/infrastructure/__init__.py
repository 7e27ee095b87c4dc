"""Payment persistence adapters."""

from .repository import PaymentRepository

__all__ = ["PaymentRepository"]
