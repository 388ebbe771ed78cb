"""CLI for the conference pipeline."""

import asyncio
import os
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from conference_pipeline.config import DEFAULT_DB_PATH, Settings
from conference_pipeline.errors import ConfigError, PipelineError
from conference_pipeline.pipeline import ScrapePipeline, print_conferences, print_report
from conference_pipeline.storage import SQLiteStore, build_store

# Load environment variables (override=True to beat shell env vars)
load_dotenv(override=True)

app = typer.Typer(
    name="conference-pipeline",
    help="Transport conference scraping pipeline",
    add_completion=False,
)
console = Console()


def load_settings(**overrides) -> Settings:
    """Settings from the environment, with CLI overrides applied."""
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("[dim]Make sure to set LOVABLE_API_KEY (and SUPABASE_* for supabase) in .env[/dim]")
        raise typer.Exit(1)
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return settings.model_copy(update=overrides) if overrides else settings


@app.command()
def scrape(
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Sources processed concurrently"),
    reject_past: Optional[bool] = typer.Option(
        None, "--reject-past/--keep-past", help="Drop conferences dated before today"
    ),
    show_summary: bool = typer.Option(True, "--summary/--no-summary", help="Show per-source table"),
):
    """Run one scrape pass over all active sources."""
    settings = load_settings(max_workers=workers, reject_past_dates=reject_past)
    store = build_store(settings)

    try:
        report = asyncio.run(ScrapePipeline(settings, store).run())
    except PipelineError as e:
        console.print(f"[red]Scrape failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    if show_summary:
        print_report(report)


@app.command()
def upcoming(
    limit: int = typer.Option(20, "--limit", "-l", help="Max conferences to show"),
    since: Optional[str] = typer.Option(None, "--since", help="Cutoff date (YYYY-MM-DD, default today)"),
):
    """Show stored conferences dated today or later."""
    settings = load_settings()
    cutoff = date.fromisoformat(since) if since else date.today()

    store = build_store(settings)
    try:
        conferences = store.list_upcoming(cutoff)
    finally:
        store.close()

    if not conferences:
        console.print("[yellow]No upcoming conferences[/yellow]")
        raise typer.Exit(0)

    print_conferences(conferences, limit=limit)


@app.command()
def sources():
    """List active sources and when they were last scraped."""
    settings = load_settings()
    store = build_store(settings)
    try:
        active = store.list_active_sources()
    except PipelineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    table = Table(title=f"Active Sources ({len(active)})")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("URL", style="blue", max_width=50)
    table.add_column("Last Scraped", style="yellow")
    for source in active:
        last = source.last_scraped_at.strftime("%Y-%m-%d %H:%M") if source.last_scraped_at else "never"
        table.add_row(str(source.id), source.name, source.url, last)
    console.print(table)


@app.command("init-db")
def init_db(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="SQLite file (default: CONFERENCE_DB_PATH)"),
):
    """Create the local SQLite schema."""
    if path is None:
        path = Path(os.environ.get("CONFERENCE_DB_PATH") or DEFAULT_DB_PATH)
    SQLiteStore(path)
    console.print(f"[green]Database ready at {path}[/green]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
):
    """Serve the HTTP scrape trigger."""
    import uvicorn

    from conference_pipeline.server import create_app

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    app()
