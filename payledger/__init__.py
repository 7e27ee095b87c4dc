"""PayLedger - idempotent payment webhooks applied to an invoice ledger."""

__version__ = "0.1.0"
