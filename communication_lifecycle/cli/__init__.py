"""
Command Line Interface for the Communication Lifecycle service.
"""

from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..catalog.repository import CatalogRepository
from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..logging_setup import configure_logging
from ..messaging.consumer import RabbitMQEventConsumer
from ..messaging.outbox import OutboxDispatcher
from ..messaging.publisher import create_publisher

app = typer.Typer(help="Communication Lifecycle - status tracking and events for member communications")
console = Console()


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
    workers: Optional[int] = typer.Option(None, help="Worker processes (ignored with --reload)"),
):
    """Run the HTTP API."""
    settings = get_settings()
    rprint(Panel.fit("Starting Communication Lifecycle API", style="bold blue"))
    uvicorn.run(
        "communication_lifecycle.api:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        workers=None if reload else (workers or settings.api_workers),
    )


@app.command("init-db")
def init_db(
    seed: bool = typer.Option(True, help="Insert the default communication types"),
):
    """Create tables and optionally seed the default catalog."""
    configure_logging()
    init_database()
    console.print("✅ Tables created")

    if seed:
        db = get_session_local()()
        try:
            inserted = CatalogRepository(db).seed()
        finally:
            db.close()
        console.print(f"✅ Seeded {inserted} communication type(s)")


@app.command("types")
def list_types(
    active_only: bool = typer.Option(False, help="Show active types only"),
):
    """List communication types and their valid statuses."""
    db = get_session_local()()
    try:
        types = CatalogRepository(db).list_types(active_only=active_only)
    finally:
        db.close()

    if not types:
        console.print("No communication types defined")
        return

    table = Table(title="Communication Types", show_header=True, header_style="bold cyan")
    table.add_column("Code", style="yellow")
    table.add_column("Name")
    table.add_column("Active", style="green")
    table.add_column("Valid statuses", style="magenta")

    for communication_type in types:
        table.add_row(
            communication_type.code,
            communication_type.display_name,
            "🟢" if communication_type.active else "🔴",
            ", ".join(communication_type.statuses),
        )

    console.print(table)


@app.command()
def consume():
    """Consume status-change events and log them until interrupted."""
    configure_logging()
    consumer = RabbitMQEventConsumer.from_settings(get_settings())
    console.print(f"Consuming from queue '{consumer.queue}' (Ctrl+C to stop)")
    consumer.run()


@app.command("dispatch-outbox")
def dispatch_outbox(
    once: bool = typer.Option(False, help="Drain one batch and exit"),
    poll_interval: Optional[float] = typer.Option(None, help="Seconds between polls"),
    batch_size: Optional[int] = typer.Option(None, help="Events per batch"),
):
    """Publish outbox events that were committed but not delivered."""
    configure_logging()
    publisher = create_publisher(get_settings())
    dispatcher = OutboxDispatcher(publisher, poll_interval=poll_interval, batch_size=batch_size)
    try:
        if once:
            delivered = dispatcher.run_once()
            console.print(f"✅ Delivered {delivered} event(s)")
        else:
            dispatcher.start()
    finally:
        publisher.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
