"""Queue handler that drains payment events into the payment service."""

import asyncio

from ...utils.logging import get_logger, set_correlation_id
from ..domain.events import PaymentEvent
from ..domain.value_objects import PaymentResult
from .queue import EventHandler
from .services.payment_service import PaymentService

logger = get_logger(__name__)


def make_payment_handler(service: PaymentService) -> EventHandler[PaymentEvent]:
    """Build the async handler the payment queue invokes for each event.

    The blocking database work runs in a worker thread so the event loop
    keeps serving webhook requests while a payment is being applied.
    """

    async def handle_payment_event(event: PaymentEvent) -> PaymentResult:
        set_correlation_id(event.event_id)
        result = await asyncio.to_thread(service.apply_payment, event)
        logger.info(
            "payment_event_processed",
            event_id=event.event_id,
            outcome=result.outcome.value,
            status_code=result.status_code,
        )
        return result

    return handle_payment_event
