"""Payment and invoice CLI commands."""

from .payment_cli import app, invoice_app

__all__ = ["app", "invoice_app"]
