"""Main CLI entry point for the novel catalog cache."""
import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from utils.logger import setup_logger
from utils.connectivity import ConnectivityMonitor
from execution.catalog_session import CatalogSession
from monitoring.renderer import ConsoleRenderer
from storage.database import NovelStore, StorageUnavailableError
from storage.freshness import is_fresh
import config

logger = setup_logger(__name__)
console = Console()


def open_session(data_dir: Optional[str], offline: bool) -> CatalogSession:
    """Build a session over the store in ``data_dir``."""
    store = NovelStore(Path(data_dir) if data_dir else config.DATA_DIR)
    connectivity = ConnectivityMonitor(online=not offline)
    if not offline:
        asyncio.run(connectivity.probe())
    return CatalogSession(store, ConsoleRenderer(console), connectivity)


@click.group()
@click.option('--data-dir', type=click.Path(file_okay=False), default=None, help='Directory holding the catalog databases')
@click.pass_context
def cli(ctx, data_dir):
    """Novel Catalog - local cache of the novel listing page"""
    ctx.ensure_object(dict)
    ctx.obj['data_dir'] = data_dir


@cli.command()
@click.pass_context
def refresh(ctx):
    """Discard the cached catalog and download it again."""
    console.print("\n[bold cyan]Refreshing Catalog[/bold cyan]\n")

    try:
        session = open_session(ctx.obj['data_dir'], offline=False)
        asyncio.run(session.refresh())
    except StorageUnavailableError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    report = session.last_report
    if report:
        console.print(f"\nGeneration: [cyan]{session.store.generation_name}[/cyan]")
        console.print(f"Inserted: {report.inserted}  Duplicates: {report.duplicates}  Skipped: {report.skipped}")


@cli.command()
@click.option('--search', 'term', default='', help='Only show novels whose name matches')
@click.option('--pages', default=1, show_default=True, type=click.IntRange(min=1), help='Number of pages to show')
@click.option('--offline', is_flag=True, help='Do not touch the network')
@click.pass_context
def browse(ctx, term, pages, offline):
    """Show pages of the catalog, ingesting first if the cache is stale."""

    async def _browse(session: CatalogSession) -> None:
        session.start_velocity_ticker()
        try:
            await session.start(search_term=term)
            for _ in range(pages - 1):
                if not session.controller.has_more:
                    break
                await session.load_more()
        finally:
            await session.stop_velocity_ticker()

    try:
        session = open_session(ctx.obj['data_dir'], offline)
        asyncio.run(_browse(session))
    except StorageUnavailableError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    if not session.controller.has_more:
        console.print("[dim]End of catalog[/dim]")


@cli.command()
@click.pass_context
def status(ctx):
    """Show the state of the local cache."""
    try:
        store = NovelStore(Path(ctx.obj['data_dir']) if ctx.obj['data_dir'] else config.DATA_DIR)
        count = store.count()
        fresh = is_fresh(store)
        sample = store.sample_record()
        theme = store.settings_get("theme", config.DEFAULT_THEME)
    except StorageUnavailableError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1)

    table = Table(title="Catalog Cache", show_header=False)
    table.add_row("Data directory", str(store.data_dir))
    table.add_row("Generation", f"[cyan]{store.generation_name}[/cyan]")
    table.add_row("Novels", f"{count:,}")
    table.add_row("Fresh", "[green]yes[/green]" if fresh else "[yellow]no[/yellow]")
    if sample:
        table.add_row("Ingested", datetime.fromtimestamp(sample.timestamp / 1000).isoformat(timespec='seconds'))
    table.add_row("Theme", theme)

    console.print(table)


@cli.command()
@click.argument('value', required=False, type=click.Choice(config.THEMES))
@click.option('--toggle', is_flag=True, help='Switch between light and dark')
@click.pass_context
def theme(ctx, value, toggle):
    """Show or change the theme preference."""
    session = CatalogSession(
        NovelStore(Path(ctx.obj['data_dir']) if ctx.obj['data_dir'] else config.DATA_DIR),
        ConsoleRenderer(console),
        ConnectivityMonitor(online=False)
    )

    if toggle:
        current = session.toggle_theme()
    elif value:
        current = session.set_theme(value)
    else:
        current = session.get_theme()

    console.print(f"Theme: [cyan]{current}[/cyan]")


if __name__ == "__main__":
    cli()
