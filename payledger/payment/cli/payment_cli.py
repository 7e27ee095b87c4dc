"""Invoice and payment CLI commands.

Provides commands to issue invoices, inspect their payment status and apply
payment events synchronously (bypassing the HTTP queue).
"""

import json
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ...container import AppContainer, build_container
from ...exceptions import NotFoundError, PayLedgerError, ValidationError
from ...storage.session import transaction
from ...utils.config import get_settings
from ...utils.logging import get_logger
from ..domain import PaymentOutcome, parse_payment_event
from ..infrastructure.repository import PaymentRepository

app = typer.Typer(name="payment", help="💰 Apply and inspect payment events")
invoice_app = typer.Typer(name="invoice", help="🧾 Issue and inspect invoices")
console = Console()
logger = get_logger(__name__)

STATUS_STYLES = {
    "sent": "yellow",
    "partially_paid": "cyan",
    "paid": "green",
}


@contextmanager
def open_container() -> Generator[AppContainer, None, None]:
    """Container for one CLI invocation; the pool is disposed on exit."""
    container = build_container(get_settings())
    try:
        yield container
    finally:
        container.engine.dispose()


def _format_cents(amount: int) -> str:
    return f"{amount / 100:,.2f}"


# ============================================================================
# invoice commands
# ============================================================================


@invoice_app.command("create")
def create_invoice(
    total_cents: int = typer.Option(..., "--total", "-t", min=1, help="Amount owed, in cents"),
    invoice_id: Optional[str] = typer.Option(None, "--id", help="Explicit invoice UUID"),
):
    """➕ Issue a new invoice in 'sent' status.

    Examples:
        payledger invoice create --total 5000
    """
    try:
        key = uuid.UUID(invoice_id) if invoice_id else None
    except ValueError:
        console.print(f"[red]✗ Invalid invoice id: {invoice_id}[/]")
        raise typer.Exit(1)

    with open_container() as container:
        try:
            with transaction(container.session_factory) as session:
                invoice = PaymentRepository(session).create_invoice(total_cents, invoice_id=key)
        except PayLedgerError as e:
            console.print(f"[red]✗ {e}[/]")
            raise typer.Exit(1)

    logger.info("invoice_created", invoice_id=str(invoice.id), total_cents=total_cents)
    console.print(f"[green]✓ Invoice created:[/] {invoice.id}")


@invoice_app.command("show")
def show_invoice(
    invoice_id: str = typer.Argument(..., help="Invoice UUID"),
):
    """🔍 Show an invoice, its status and the payments applied to it."""
    try:
        key = uuid.UUID(invoice_id)
    except ValueError:
        console.print(f"[red]✗ Invalid invoice id: {invoice_id}[/]")
        raise typer.Exit(1)

    with open_container() as container, transaction(container.session_factory) as session:
        repo = PaymentRepository(session)
        invoice = repo.get_invoice(key)
        if invoice is None:
            console.print(f"[red]✗ Invoice {invoice_id} not found[/]")
            raise typer.Exit(1)
        payments = repo.list_payments(key)
        total_paid = repo.total_paid(key)

    style = STATUS_STYLES.get(invoice.status, "white")
    summary = Table(title=f"🧾 Invoice {invoice.id}", show_header=False)
    summary.add_column("Field", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row("Status", f"[{style}]{invoice.status}[/]")
    summary.add_row("Total", _format_cents(invoice.total_cents))
    summary.add_row("Paid", _format_cents(total_paid))
    summary.add_row("Outstanding", _format_cents(max(invoice.total_cents - total_paid, 0)))
    console.print(summary)

    if payments:
        table = Table(title="💳 Payments", show_header=True)
        table.add_column("Event ID", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_column("Type")
        table.add_column("Received at")
        for payment in payments:
            table.add_row(
                payment.event_id,
                _format_cents(payment.amount_cents),
                payment.type,
                payment.created_at.isoformat(timespec="seconds"),
            )
        console.print(table)
    else:
        console.print("[dim]No payments recorded[/]")


# ============================================================================
# payment commands
# ============================================================================


@app.command("apply")
def apply_payment(
    file_path: Path = typer.Argument(..., help="JSON payload file", exists=True, dir_okay=False),
):
    """📥 Apply a payment event payload directly, without the queue.

    Examples:
        payledger payment apply event.json
    """
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
        event = parse_payment_event(data)
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON: {e}[/]")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]✗ {e}[/]")
        raise typer.Exit(1)

    with open_container() as container:
        try:
            result = container.payment_service.apply_payment(event)
        except NotFoundError:
            console.print(f"[red]✗ Invoice {event.invoice_id} not found[/]")
            raise typer.Exit(1)
        except PayLedgerError as e:
            console.print(f"[red]✗ {e}[/]")
            raise typer.Exit(1)

    if result.outcome is PaymentOutcome.ALREADY_PROCESSED:
        console.print(f"[yellow]🔁 {result.message}[/] ({event.event_id})")
    else:
        status = result.invoice_status.value if result.invoice_status else "?"
        style = STATUS_STYLES.get(status, "white")
        console.print(
            f"[green]✓ {result.message}[/] ({event.event_id}) "
            f"invoice status: [{style}]{status}[/]"
        )


@app.command("check")
def check_payment(
    event_id: str = typer.Argument(..., help="Event identifier"),
):
    """❓ Report whether an event id has already been applied."""
    with open_container() as container:
        try:
            applied = container.payment_service.payment_exists(event_id)
        except PayLedgerError as e:
            console.print(f"[red]✗ {e}[/]")
            raise typer.Exit(1)

    if applied:
        console.print(f"[green]✓ {event_id} has been applied[/]")
    else:
        console.print(f"[yellow]✗ {event_id} has not been applied[/]")
        raise typer.Exit(2)
