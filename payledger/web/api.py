"""HTTP boundary for payment webhooks.

``POST /webhooks/payments`` validates the payload, rejects known duplicates
and unknown invoices early, enqueues the event and answers 202 right away.
The authoritative write happens later, when the payment queue drains the
event into ``PaymentService.apply_payment``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from .. import __version__
from ..container import AppContainer, build_container
from ..exceptions import DuplicateError, NotFoundError, PayLedgerError, ValidationError
from ..payment.domain import PaymentEvent
from ..payment.metrics import record_webhook_request
from ..utils.config import Settings, get_settings
from ..utils.logging import clear_correlation_id, get_logger, set_correlation_id

logger = get_logger(__name__)

router = APIRouter()


def get_container(request: Request) -> AppContainer:
    """FastAPI dependency returning the container built at startup."""
    return request.app.state.container


@router.post("/webhooks/payments", status_code=202)
async def receive_payment_webhook(
    event: PaymentEvent,
    container: AppContainer = Depends(get_container),
) -> JSONResponse:
    """Accept a payment event for asynchronous, idempotent application."""
    set_correlation_id()
    service = container.payment_service
    try:
        if await run_in_threadpool(service.payment_exists, event.event_id):
            raise DuplicateError("Payment already processed", event_id=event.event_id)

        if not await run_in_threadpool(service.invoice_exists, event.invoice_id):
            raise NotFoundError(
                "Invoice not found", entity_type="Invoice", entity_id=event.invoice_id
            )

        container.payment_queue.enqueue(event)
        logger.info(
            "payment_webhook_accepted", event_id=event.event_id, invoice_id=str(event.invoice_id)
        )
        record_webhook_request("accepted")
        return JSONResponse(status_code=202, content={"message": "Payment queued for processing"})
    except PayLedgerError:
        raise
    except Exception as e:
        logger.error(
            "payment_webhook_failed",
            event_id=event.event_id,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        record_webhook_request("error")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    finally:
        clear_correlation_id()


@router.get("/health")
async def health(container: AppContainer = Depends(get_container)) -> dict[str, Any]:
    """Liveness plus a diagnostic snapshot of the payment queue."""
    return {
        "status": "ok",
        "version": __version__,
        "queue": container.payment_queue.stats().to_dict(),
    }


# ============================================================================
# Error mapping
# ============================================================================


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    record_webhook_request("invalid")
    return JSONResponse(status_code=400, content={"error": jsonable_encoder(exc.errors())})


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    record_webhook_request("invalid")
    return JSONResponse(status_code=400, content={"error": exc.message, "context": exc.context})


async def _duplicate_handler(request: Request, exc: DuplicateError) -> JSONResponse:
    record_webhook_request("duplicate")
    logger.info("payment_webhook_duplicate", **exc.context)
    status_code = request.app.state.container.settings.duplicate_status_code
    return JSONResponse(status_code=status_code, content={"message": exc.message})


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    record_webhook_request("not_found")
    logger.info("payment_webhook_invoice_not_found", **exc.context)
    return JSONResponse(status_code=404, content={"error": exc.message})


async def _payledger_error_handler(request: Request, exc: PayLedgerError) -> JSONResponse:
    record_webhook_request("error")
    logger.error("payment_webhook_failed", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ============================================================================
# App factory
# ============================================================================


def create_app(
    settings: Settings | None = None,
    container: AppContainer | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Configuration; defaults to the container's or the
            environment's settings
        container: Pre-built container (tests). When omitted, one is built
            on startup and closed on shutdown.
    """
    if settings is None:
        settings = container.settings if container is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = container is None
        app.state.container = container or build_container(
            settings, create_schema=settings.db_create_schema
        )
        logger.info("payledger_api_started", version=__version__)
        try:
            yield
        finally:
            if owned:
                await app.state.container.aclose()
            else:
                await app.state.container.payment_queue.join()
            logger.info("payledger_api_stopped")

    app = FastAPI(title="PayLedger", version=__version__, lifespan=lifespan)
    app.include_router(router)

    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(DuplicateError, _duplicate_handler)
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(PayLedgerError, _payledger_error_handler)

    if settings.metrics_enabled:
        app.mount("/metrics", make_asgi_app())

    return app
