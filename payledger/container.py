"""Application container.

Built once at process start and passed explicitly to the HTTP layer and the
queue handler. Holds the single shared instances of the engine, session
factory, payment service and payment queue.
"""

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from .payment.application import PaymentService, SequentialEventQueue, make_payment_handler
from .payment.domain import PaymentEvent
from .storage.database import create_db_engine, create_session_factory, init_db
from .utils.config import Settings
from .utils.logging import get_logger

logger = get_logger(__name__)

PAYMENT_QUEUE_NAME = "payments"


@dataclass
class AppContainer:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker[Session]
    payment_service: PaymentService
    payment_queue: SequentialEventQueue[PaymentEvent]

    async def aclose(self) -> None:
        """Drain the payment queue, then release the connection pool."""
        await self.payment_queue.close()
        self.engine.dispose()
        logger.info("container_closed")


def build_container(
    settings: Settings,
    *,
    engine: Engine | None = None,
    create_schema: bool = False,
) -> AppContainer:
    """Wire the application's collaborators.

    Args:
        settings: Runtime configuration
        engine: Pre-built engine (tests); created from settings when omitted
        create_schema: Create missing tables on startup (local/SQLite runs)
    """
    if engine is None:
        engine = create_db_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            connect_timeout=settings.db_connect_timeout,
            echo=settings.db_echo,
        )
    if create_schema:
        init_db(engine)

    session_factory = create_session_factory(engine)
    service = PaymentService(session_factory, duplicate_status_code=settings.duplicate_status_code)
    queue: SequentialEventQueue[PaymentEvent] = SequentialEventQueue(
        make_payment_handler(service),
        name=PAYMENT_QUEUE_NAME,
        processed_cache_size=settings.processed_cache_size,
    )

    logger.info(
        "container_built",
        backend=engine.dialect.name,
        duplicate_status_code=settings.duplicate_status_code,
    )
    return AppContainer(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        payment_service=service,
        payment_queue=queue,
    )
