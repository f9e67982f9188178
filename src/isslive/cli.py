"""CLI entry point using Typer."""

import logging
from datetime import UTC, datetime

import structlog
import typer
from rich.console import Console
from rich.table import Table

from isslive.config import settings

app = typer.Typer(
    name="isslive",
    help="ISS Live telemetry history - feed ingestion and query API.",
)
console = Console()


def configure_logging(level: str = "INFO") -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper(), logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


@app.callback()
def main(log_level: str = typer.Option(settings.log_level, "--log-level", help="Log level")) -> None:
    configure_logging(log_level)


def _open_store():
    from isslive.db import Database
    from isslive.store import RetentionStore

    database = Database(settings.database_url, busy_timeout=settings.sqlite_busy_timeout_seconds)
    return RetentionStore(database, retention_cap=settings.retention_cap)


def _format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


@app.command()
def serve(
    host: str = typer.Option(settings.host, help="Interface to bind"),
    port: int = typer.Option(settings.port, help="HTTP port"),
    feed: bool = typer.Option(settings.feed_enabled, "--feed/--no-feed", help="Subscribe to the live feed"),
) -> None:
    """Run the query API and ingest the live feed."""
    import uvicorn
    from sqlalchemy.exc import SQLAlchemyError

    from isslive.api import create_app
    from isslive.context import build_context, build_lightstreamer_feed

    context = build_context(settings, feed=build_lightstreamer_feed(settings) if feed else None)

    try:
        context.store.create_schema()
    except SQLAlchemyError as e:
        console.print(f"[bold red]Failed to initialize database:[/bold red] {e}")
        context.close()
        raise typer.Exit(1)

    console.print(f"[bold blue]Server running on port {port}[/bold blue]")
    try:
        uvicorn.run(create_app(context), host=host, port=port, log_level=settings.log_level.lower())
    finally:
        context.close()


@app.command("init-db")
def init_db() -> None:
    """Create the sample table and index if missing."""
    from sqlalchemy.exc import SQLAlchemyError

    from isslive.db import Database

    database = Database(settings.database_url, busy_timeout=settings.sqlite_busy_timeout_seconds)
    try:
        database.create_schema()
    except SQLAlchemyError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    finally:
        database.dispose()
    console.print("[bold green]Database ready.[/bold green]")


@app.command()
def catalog(
    path: str = typer.Option(settings.catalog_path, help="Path to PUIList.xml"),
    encoding: str = typer.Option(settings.catalog_encoding, help="File encoding"),
) -> None:
    """Show the items the feed would subscribe to."""
    from isslive.catalog import load_catalog

    loaded = load_catalog(path, encoding=encoding)

    table = Table(title=f"Catalog ({loaded.source})")
    table.add_column("Key", style="cyan")
    table.add_column("Units", style="magenta")
    table.add_column("Description", style="white")
    for key in loaded:
        descriptor = loaded.descriptor_for(key)
        table.add_row(key, descriptor.units, descriptor.description)

    console.print(table)
    console.print(f"{len(loaded)} items")


@app.command()
def latest() -> None:
    """Show the most recent value of every stored key."""
    from isslive.store import StorageUnavailable

    store = _open_store()
    try:
        samples = store.get_latest()
    except StorageUnavailable as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    finally:
        store.database.dispose()

    if not samples:
        console.print("[yellow]No data stored yet.[/yellow]")
        return

    table = Table(title="Latest Values")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Units", style="magenta")
    table.add_column("Received (UTC)", style="white")
    for key, sample in samples.items():
        table.add_row(key, sample.value or "", sample.descriptor.units, _format_timestamp(sample.timestamp))

    console.print(table)


@app.command()
def keys() -> None:
    """Show stored keys and how many samples each retains."""
    from isslive.store import StorageUnavailable

    store = _open_store()
    try:
        counts = store.counts_by_key()
        infos = store.list_keys()
    except StorageUnavailable as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    finally:
        store.database.dispose()

    table = Table(title="Stored Keys")
    table.add_column("Key", style="cyan")
    table.add_column("Samples", style="green")
    table.add_column("Description", style="white")
    for info in infos:
        table.add_row(info.key, str(counts.get(info.key, 0)), info.descriptor.description)

    console.print(table)
    console.print(f"Retention cap: {store.retention_cap} samples per key")


if __name__ == "__main__":
    app()
