"""
Pytest configuration and global fixtures.

This module provides shared fixtures used across all tests. Every test gets a
fresh SQLite file database so that sessions opened from worker threads (the
queue handler, FastAPI's thread pool) see the same data.
"""

import itertools
import time
import uuid
from collections.abc import Callable, Generator

import pytest
from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from payledger.container import AppContainer, build_container
from payledger.payment.application.queue import SequentialEventQueue
from payledger.payment.application.services import PaymentService
from payledger.payment.domain import PaymentEvent, PaymentType
from payledger.storage.database import (
    Invoice,
    InvoiceStatus,
    Payment,
    create_db_engine,
    create_session_factory,
    init_db,
)
from payledger.storage.session import transaction
from payledger.utils.config import Settings


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'payledger.db'}"


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url=database_url,
        dev_mode=True,
        metrics_enabled=True,
    )


@pytest.fixture
def db_engine(database_url: str) -> Generator[Engine, None, None]:
    """Engine on a temporary SQLite file with the full schema created."""
    engine = create_db_engine(database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(db_engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """A plain session for assertions; rolled back and closed after the test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def payment_service(session_factory: sessionmaker[Session]) -> PaymentService:
    return PaymentService(session_factory)


@pytest.fixture
def container(test_settings: Settings, db_engine: Engine) -> AppContainer:
    return build_container(test_settings, engine=db_engine)


@pytest.fixture
def make_invoice(session_factory: sessionmaker[Session]) -> Callable[..., uuid.UUID]:
    """Factory creating an invoice and returning its id."""

    def _make(total_cents: int = 5000, status: InvoiceStatus = InvoiceStatus.SENT) -> uuid.UUID:
        invoice_id = uuid.uuid4()
        with transaction(session_factory) as session:
            session.add(Invoice(id=invoice_id, total_cents=total_cents, status=status.value))
        return invoice_id

    return _make


@pytest.fixture
def make_event() -> Callable[..., PaymentEvent]:
    """Factory creating payment events with unique event ids by default."""
    counter = itertools.count(1)

    def _make(
        invoice_id: uuid.UUID,
        amount_cents: int = 5000,
        event_id: str | None = None,
    ) -> PaymentEvent:
        return PaymentEvent(
            event_id=event_id or f"evt_{next(counter)}",
            type=PaymentType.PAYMENT_RECEIVED,
            invoice_id=invoice_id,
            amount_cents=amount_cents,
        )

    return _make


@pytest.fixture
def ledger(session_factory: sessionmaker[Session]):
    """Read helpers for asserting on persisted state."""

    class Ledger:
        def invoice(self, invoice_id: uuid.UUID) -> Invoice | None:
            with session_factory() as session:
                return session.get(Invoice, invoice_id)

        def status(self, invoice_id: uuid.UUID) -> str:
            invoice = self.invoice(invoice_id)
            assert invoice is not None
            return invoice.status

        def payment_count(self, invoice_id: uuid.UUID | None = None) -> int:
            stmt = select(func.count()).select_from(Payment)
            if invoice_id is not None:
                stmt = stmt.where(Payment.invoice_id == invoice_id)
            with session_factory() as session:
                return session.execute(stmt).scalar_one()

    return Ledger()


@pytest.fixture
def wait_for_queue() -> Callable[..., None]:
    """Block the calling thread until a queue running on another loop is idle."""

    def _wait(queue: SequentialEventQueue, timeout: float = 5.0) -> None:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            stats = queue.stats()
            if not stats.processing and stats.backlog == 0:
                return
            time.sleep(0.01)
        raise AssertionError(f"queue {queue.name!r} did not drain within {timeout}s")

    return _wait
