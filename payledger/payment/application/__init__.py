"""Payment application layer: domain service, sequential queue and handler."""

from .handlers import make_payment_handler
from .queue import ProcessedEventCache, QueueStats, SequentialEventQueue
from .services import PaymentService

__all__ = [
    "PaymentService",
    "ProcessedEventCache",
    "QueueStats",
    "SequentialEventQueue",
    "make_payment_handler",
]
