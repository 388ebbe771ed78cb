"""Main pipeline orchestration.

One pass:
1. List active sources from the registry (failure aborts the pass)
2. For each source: fetch → extract → normalize, isolated per source
3. Stamp last_scraped_at for every source attempted
4. Bulk upsert all conferences, ignoring (title, university, date) duplicates

Store calls are synchronous and run in worker threads.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Literal, Optional

import httpx
from pydantic import BaseModel, Field
from rich.console import Console
from rich.table import Table

from conference_pipeline.config import Settings
from conference_pipeline.errors import (
    ExtractionError,
    FetchError,
    PersistenceError,
    RegistryError,
)
from conference_pipeline.extractors.fetch import fetch_page
from conference_pipeline.extractors.llm import ExtractionClient
from conference_pipeline.models import Conference, Source
from conference_pipeline.normalizers.conference import normalize_candidates
from conference_pipeline.storage.base import ConferenceStore

console = Console()

SourceStatus = Literal["ok", "fetch_failed", "extraction_failed", "error"]


class SourceResult(BaseModel):
    """Outcome of processing one source."""

    source: Source
    status: SourceStatus = "ok"
    candidates: int = 0  # Returned by the model, before normalization
    conferences: list[Conference] = Field(default_factory=list)
    error: Optional[str] = None


class ScrapeReport(BaseModel):
    """Outcome of a whole pass."""

    sources: int = 0
    results: list[SourceResult] = Field(default_factory=list)
    conferences: list[Conference] = Field(default_factory=list)
    inserted: int = 0  # New rows; duplicates are not counted

    @property
    def scraped(self) -> int:
        return len(self.conferences)

    @property
    def failed_sources(self) -> list[SourceResult]:
        return [r for r in self.results if r.status != "ok"]

    def summary_message(self) -> str:
        return (
            f"Scraped {self.scraped} conferences from {self.sources} sources "
            f"({self.inserted} new)"
        )


class ScrapePipeline:
    """Runs scrape passes against a store with the given settings."""

    def __init__(
        self,
        settings: Settings,
        store: ConferenceStore,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.store = store
        self.client = client

    def _extraction_client(self, client: httpx.AsyncClient) -> ExtractionClient:
        return ExtractionClient(
            api_key=self.settings.ai_api_key,
            client=client,
            url=self.settings.ai_gateway_url,
            model=self.settings.ai_model,
            timeout=self.settings.extraction_timeout,
            max_html_chars=self.settings.max_html_chars,
        )

    async def process_source(
        self,
        source: Source,
        client: httpx.AsyncClient,
        extractor: ExtractionClient,
        today: date,
    ) -> SourceResult:
        """Fetch, extract and normalize one source. Never raises."""
        console.print(f"[cyan]Processing {source.name}...[/cyan]")
        result = SourceResult(source=source)

        try:
            html = await fetch_page(source.url, client=client, timeout=self.settings.fetch_timeout)
            candidates = await extractor.extract(html, today=today)
            result.candidates = len(candidates)
            result.conferences = normalize_candidates(
                candidates,
                source,
                today=today if self.settings.reject_past_dates else None,
            )
            console.print(
                f"[dim]Extracted {len(candidates)} conferences from {source.name} "
                f"({len(result.conferences)} valid)[/dim]"
            )
        except FetchError as e:
            result.status = "fetch_failed"
            result.error = str(e)
            console.print(f"[yellow]{e}[/yellow]")
        except ExtractionError as e:
            result.status = "extraction_failed"
            result.error = str(e)
            console.print(f"[yellow]AI extraction failed for {source.name}: {e}[/yellow]")
        except Exception as e:
            result.status = "error"
            result.error = str(e)
            console.print(f"[red]Error processing {source.name}: {e}[/red]")

        await self._mark_scraped(source)
        return result

    async def _mark_scraped(self, source: Source) -> None:
        """Record the attempt, whatever its outcome."""
        try:
            await asyncio.to_thread(self.store.mark_scraped, source.id, datetime.now(timezone.utc))
        except PersistenceError as e:
            console.print(f"[yellow]{e}[/yellow]")

    async def _process_all(
        self,
        sources: list[Source],
        client: httpx.AsyncClient,
        today: date,
    ) -> list[SourceResult]:
        extractor = self._extraction_client(client)

        if self.settings.max_workers <= 1:
            results = []
            for source in sources:
                results.append(await self.process_source(source, client, extractor, today))
            return results

        semaphore = asyncio.Semaphore(self.settings.max_workers)

        async def process_with_semaphore(source: Source) -> SourceResult:
            async with semaphore:
                return await self.process_source(source, client, extractor, today)

        # gather keeps source order
        return list(await asyncio.gather(*(process_with_semaphore(s) for s in sources)))

    async def run(self, today: Optional[date] = None) -> ScrapeReport:
        """Run one scrape pass.

        Raises:
            RegistryError: if active sources cannot be listed; nothing is written.
            PersistenceError: if the bulk upsert fails; source timestamps
                already written are kept.
        """
        today = today or date.today()
        console.print("\n[bold cyan]Starting conference scraping[/bold cyan]\n")

        try:
            sources = await asyncio.to_thread(self.store.list_active_sources)
        except RegistryError as e:
            console.print(f"[red]Error fetching sources: {e}[/red]")
            raise
        console.print(f"[dim]Found {len(sources)} active sources[/dim]")

        if self.client is not None:
            results = await self._process_all(sources, self.client, today)
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                results = await self._process_all(sources, client, today)

        report = ScrapeReport(sources=len(sources), results=results)
        for result in results:
            report.conferences.extend(result.conferences)

        if report.conferences:
            console.print(f"[cyan]Inserting {len(report.conferences)} conferences...[/cyan]")
            try:
                report.inserted = await asyncio.to_thread(self.store.upsert_conferences, report.conferences)
            except PersistenceError as e:
                console.print(f"[red]Error inserting conferences: {e}[/red]")
                raise

        console.print(f"[green]{report.summary_message()}[/green]\n")
        return report


def print_report(report: ScrapeReport) -> None:
    """Print a per-source summary table."""
    table = Table(title=f"Scrape Summary ({report.sources} sources)")
    table.add_column("Source", style="cyan", max_width=20)
    table.add_column("Status", style="yellow")
    table.add_column("Candidates", style="magenta", justify="right")
    table.add_column("Valid", style="green", justify="right")
    table.add_column("Error", style="red", max_width=40)

    for result in report.results:
        status_style = "green" if result.status == "ok" else "red"
        table.add_row(
            result.source.name[:20],
            f"[{status_style}]{result.status}[/{status_style}]",
            str(result.candidates),
            str(len(result.conferences)),
            (result.error or "-")[:40],
        )

    console.print(table)
    console.print(f"  Scraped: {report.scraped}  New: {report.inserted}  "
                  f"Failed sources: {len(report.failed_sources)}")


def print_conferences(conferences: list[Conference], limit: int = 20) -> None:
    """Print a table of conferences, earliest first."""
    table = Table(title=f"Upcoming Conferences (showing {min(len(conferences), limit)} of {len(conferences)})")
    table.add_column("Date", style="red")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("University", style="green")
    table.add_column("Location", style="yellow", max_width=20)
    table.add_column("Format", style="blue")
    table.add_column("Topic", style="magenta", max_width=25)

    for conf in conferences[:limit]:
        dates = f"{conf.date} – {conf.end_date}" if conf.end_date else conf.date
        table.add_row(dates, conf.title[:40], conf.university, conf.location[:20], conf.format, conf.topic)

    console.print(table)
