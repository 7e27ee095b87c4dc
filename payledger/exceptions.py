"""Exception hierarchy for PayLedger.

Every error has a human-readable ``message`` and a flat ``context`` dict that
can be passed straight to structlog. Keyword fields given to a constructor
(``field=``, ``entity_id=``, ``event_id=`` ...) land in ``context`` unless
they are None.

HTTP mapping at the webhook boundary:

    ValidationError       400
    NotFoundError         404
    DuplicateError        configured duplicate status (200 or 409)
    any other error       500

Usage:
    try:
        service.apply_payment(event)
    except NotFoundError as e:
        logger.info("invoice_missing", **e.context)
"""

from __future__ import annotations

from typing import Any


class PayLedgerError(Exception):
    """Base exception for all PayLedger errors.

    Attributes:
        message: Human-readable error message
        context: Structured details for logs and error responses
        original_error: Wrapped lower-level exception, if any
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
        **fields: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})
        self.context.update((k, v) for k, v in fields.items() if v is not None)
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [self.message]
        if self.context:
            parts.append("(" + ", ".join(f"{k}={v}" for k, v in self.context.items()) + ")")
        if self.original_error is not None:
            parts.append(f"[caused by: {type(self.original_error).__name__}]")
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


class ValidationError(PayLedgerError):
    """A payment payload is malformed, incomplete or has a non-positive amount."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ) -> None:
        if value is not None:
            value = str(value)[:100]
        super().__init__(message, field=field, value=value, constraint=constraint, **kwargs)


class ConfigurationError(PayLedgerError):
    """A setting is missing or has an unusable value."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, setting=setting, expected=expected, **kwargs)


class DatabaseError(PayLedgerError):
    """Base class for persistence errors."""


class RecordNotFoundError(DatabaseError):
    """A referenced row (an invoice) does not exist."""

    def __init__(
        self,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: Any = None,
        **kwargs: Any,
    ) -> None:
        if entity_id is not None:
            entity_id = str(entity_id)
        super().__init__(message, entity_type=entity_type, entity_id=entity_id, **kwargs)


NotFoundError = RecordNotFoundError


class StorageError(DatabaseError):
    """Connection, pool, transaction or unexpected constraint failure.

    A conflict on ``payments.event_id`` is not a StorageError: insert-or-ignore
    absorbs it and the service reports an idempotent replay.
    """


class DuplicateError(PayLedgerError):
    """The event id has already been applied; raised at the HTTP boundary."""

    def __init__(self, message: str, *, event_id: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, event_id=event_id, **kwargs)


__all__ = [
    "PayLedgerError",
    "ValidationError",
    "ConfigurationError",
    "DatabaseError",
    "RecordNotFoundError",
    "NotFoundError",
    "StorageError",
    "DuplicateError",
]
