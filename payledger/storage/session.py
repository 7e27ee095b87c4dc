"""Scoped transaction management.

Every write path runs inside ``transaction()``: a session is checked out of
the pool, the unit of work runs, and the transaction is committed on normal
exit or rolled back on any exception. The session (and with it the pooled
connection) is released on every exit path.

Usage:
    with transaction(session_factory) as session:
        repo = PaymentRepository(session)
        inserted = repo.insert_payment_ignore_conflict(...)
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payledger.exceptions import StorageError
from payledger.utils.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], Session]


@contextmanager
def transaction(session_factory: SessionFactory) -> Generator[Session, None, None]:
    """Run the enclosed block as a single database transaction.

    Yields:
        Session: SQLAlchemy session bound to one pooled connection

    Raises:
        StorageError: If the driver or pool fails (connect timeout, lost
            connection, unexpected constraint violation, failed commit).
            The original SQLAlchemy exception is chained.
        Exception: Any other exception from within the block, unchanged,
            after rollback.
    """
    session = session_factory()
    try:
        logger.debug("transaction_started", session_id=id(session))
        yield session
        session.commit()
        logger.debug("transaction_committed", session_id=id(session))
    except SQLAlchemyError as e:
        logger.error(
            "transaction_storage_error_rollback",
            error=str(e),
            error_type=type(e).__name__,
            session_id=id(session),
        )
        session.rollback()
        raise StorageError(
            "Database transaction failed",
            context={"error_type": type(e).__name__},
            original_error=e,
        ) from e
    except Exception as e:
        logger.debug(
            "transaction_rolled_back",
            error_type=type(e).__name__,
            session_id=id(session),
        )
        session.rollback()
        raise
    finally:
        session.close()
