"""Sequential in-process event queue.

Accepts payloads for asynchronous handling and runs the handler on them one
at a time, in FIFO order, per queue instance. Payloads whose ``event_id`` is
already in the processed cache are dropped on enqueue.

Example:
    >>> queue = SequentialEventQueue(handle_payment, name="payments")
    >>> queue.enqueue(event)          # returns immediately
    >>> await queue.join()            # wait for the backlog to drain
    >>> queue.stats().to_dict()
    {'backlog': 0, 'processed': 1, 'processing': False}

The processed cache is bounded and lives only as long as the process. It
saves redundant work; it does not guarantee idempotency. That guarantee
comes from the unique key on ``payments.event_id``.
"""

import asyncio
from collections import OrderedDict, deque
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, Generic, Protocol, TypeVar

from ...utils.logging import get_logger
from ..metrics import record_queue_event, update_queue_backlog

logger = get_logger(__name__)


class HasEventId(Protocol):
    """Any payload carrying a sender-supplied event identifier."""

    @property
    def event_id(self) -> str: ...


E = TypeVar("E", bound=HasEventId)

EventHandler = Callable[[E], Awaitable[Any]]


class ProcessedEventCache:
    """Bounded set of event ids, evicting the least recently added."""

    def __init__(self, max_size: int = 10_000):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._ids: OrderedDict[str, None] = OrderedDict()

    def add(self, event_id: str) -> None:
        self._ids[event_id] = None
        self._ids.move_to_end(event_id)
        while len(self._ids) > self.max_size:
            self._ids.popitem(last=False)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


@dataclass(frozen=True)
class QueueStats:
    """Diagnostic snapshot of a queue."""

    backlog: int
    processed: int
    processing: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SequentialEventQueue(Generic[E]):
    """Single-consumer, at-most-one-in-flight processing pipeline.

    A drain task is started by ``enqueue`` when the queue is idle and runs
    until the backlog is empty. The ``_processing`` flag is set synchronously
    in ``enqueue`` before the task is created, so concurrent request handlers
    interleaving on the event loop can never start a second drain.

    Per item: pending -> in-flight -> processed | dropped-on-error.
    Failed items are logged and dropped; there is no retry.

    Args:
        handler: Async callable invoked with each payload
        name: Queue name used in logs and metrics
        processed_cache_size: Bound of the processed-event cache
    """

    def __init__(
        self,
        handler: EventHandler[E],
        *,
        name: str = "events",
        processed_cache_size: int = 10_000,
    ):
        self.name = name
        self._handler = handler
        self._backlog: deque[E] = deque()
        self._processed = ProcessedEventCache(processed_cache_size)
        self._processing = False
        self._closed = False
        self._drain_task: asyncio.Task[None] | None = None

        logger.info(
            "event_queue_initialized", queue=name, processed_cache_size=processed_cache_size
        )

    def enqueue(self, event: E) -> bool:
        """Schedule an event for processing. Never blocks.

        Must be called from the thread running the event loop.

        Returns:
            False if the event id is already known as processed and the event
            was dropped, True if it was appended to the backlog.

        Raises:
            RuntimeError: If the queue has been closed or no event loop is running.
        """
        if self._closed:
            raise RuntimeError(f"Queue {self.name!r} is closed")
        loop = asyncio.get_running_loop()

        if event.event_id in self._processed:
            logger.debug(
                "event_already_processed_skipped", queue=self.name, event_id=event.event_id
            )
            record_queue_event(self.name, "skipped")
            return False

        self._backlog.append(event)
        update_queue_backlog(self.name, len(self._backlog))
        logger.debug(
            "event_enqueued", queue=self.name, event_id=event.event_id, backlog=len(self._backlog)
        )

        if not self._processing:
            self._start_drain(loop)
        return True

    def is_processed(self, event_id: str) -> bool:
        """Whether this instance has successfully handled the event id."""
        return event_id in self._processed

    def stats(self) -> QueueStats:
        return QueueStats(
            backlog=len(self._backlog),
            processed=len(self._processed),
            processing=self._processing,
        )

    async def join(self) -> None:
        """Wait until the backlog is empty and no handler is running."""
        while self._drain_task is not None:
            await asyncio.wait({self._drain_task})

    async def close(self) -> None:
        """Stop accepting events and drain what is already queued."""
        self._closed = True
        await self.join()
        logger.info("event_queue_closed", queue=self.name, **self.stats().to_dict())

    def _start_drain(self, loop: asyncio.AbstractEventLoop) -> None:
        self._processing = True
        self._drain_task = loop.create_task(self._drain(), name=f"{self.name}-drain")

    async def _drain(self) -> None:
        try:
            while self._backlog:
                event = self._backlog.popleft()
                update_queue_backlog(self.name, len(self._backlog))
                await self._process(event)
        finally:
            self._processing = False
            self._drain_task = None

    async def _process(self, event: E) -> None:
        try:
            await self._handler(event)
        except Exception as e:
            logger.error(
                "queue_handler_failed",
                queue=self.name,
                event_id=event.event_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            record_queue_event(self.name, "failed")
            return

        self._processed.add(event.event_id)
        record_queue_event(self.name, "processed")
