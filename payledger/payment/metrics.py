"""Prometheus metrics instrumentation for the payment pipeline.

Covers the webhook boundary, the sequential event queue and the transactional
write path.
"""

from typing import Any

from prometheus_client import Counter, Gauge, Histogram

# ============================================================================
# Metric Definitions
# ============================================================================

webhook_requests_total = Counter(
    "payledger_webhook_requests_total",
    "Payment webhook requests by boundary outcome",
    ["outcome"],  # labels: accepted/duplicate/not_found/invalid/error
)

queue_events_total = Counter(
    "payledger_queue_events_total",
    "Events handled by the sequential event queue",
    ["queue", "outcome"],  # labels: processed/failed/skipped
)

queue_backlog = Gauge(
    "payledger_queue_backlog",
    "Events waiting in the sequential event queue",
    ["queue"],
)

payment_apply_duration_seconds = Histogram(
    "payledger_payment_apply_duration_seconds",
    "Time spent applying one payment transactionally",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)


# ============================================================================
# Convenience Functions
# ============================================================================


def record_webhook_request(outcome: str) -> None:
    """Record a webhook request outcome.

    Args:
        outcome: accepted, duplicate, not_found, invalid or error
    """
    webhook_requests_total.labels(outcome=outcome).inc()


def record_queue_event(queue: str, outcome: str) -> None:
    """Record an event leaving the queue (or skipped on enqueue).

    Args:
        queue: Queue name
        outcome: processed, failed or skipped
    """
    queue_events_total.labels(queue=queue, outcome=outcome).inc()


def update_queue_backlog(queue: str, size: int) -> None:
    queue_backlog.labels(queue=queue).set(size)


class track_apply_duration:
    """Context manager to time one ``apply_payment`` transaction."""

    def __init__(self) -> None:
        self.timer: Any = None

    def __enter__(self) -> "track_apply_duration":
        self.timer = payment_apply_duration_seconds.time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.timer:
            self.timer.__exit__(exc_type, exc_val, exc_tb)
