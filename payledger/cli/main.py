"""Main CLI entry point for PayLedger."""

import typer
from rich.console import Console

from payledger import __version__
from payledger.utils.config import get_settings
from payledger.utils.logging import configure_logging

from ..payment.cli import app as payment_app
from ..payment.cli import invoice_app

app = typer.Typer(
    name="payledger",
    help="🧾 Idempotent payment webhooks for an invoice ledger",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
db_app = typer.Typer(name="db", help="🗄️  Database management")
console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]PayLedger[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """
    PayLedger - apply payment webhooks to invoices exactly once.
    """
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs,
        dev_mode=settings.dev_mode,
    )


@db_app.command("init")
def init_database() -> None:
    """Create the invoices, payments and payment_events_queue tables."""
    from payledger.storage.database import create_db_engine, init_db

    settings = get_settings()
    engine = create_db_engine(settings.database_url, echo=settings.db_echo)
    try:
        init_db(engine)
    finally:
        engine.dispose()
    console.print("[green]✓ Database schema ready[/]")


@app.command("serve")
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default from settings)"),
) -> None:
    """🚀 Run the webhook API server."""
    import uvicorn

    from payledger.web import create_app

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


app.add_typer(db_app, name="db")
app.add_typer(invoice_app, name="invoice")
app.add_typer(payment_app, name="payment")


if __name__ == "__main__":
    app()
