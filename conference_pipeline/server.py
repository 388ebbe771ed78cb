"""HTTP trigger for scrape passes.

A single endpoint runs one pass per request (timer or manual trigger) and
always answers with JSON and permissive CORS headers.
"""

from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response
from rich.console import Console

from conference_pipeline.config import Settings
from conference_pipeline.pipeline import ScrapePipeline
from conference_pipeline.storage import ConferenceStore, build_store

console = Console()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

SCRAPE_PATH = "/scrape-conferences"

# Any method except the OPTIONS preflight runs a pass
TRIGGER_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


def create_app(
    settings: Optional[Settings] = None,
    store_factory: Callable[[Settings], ConferenceStore] = build_store,
    pipeline_factory: Callable[..., ScrapePipeline] = ScrapePipeline,
) -> FastAPI:
    """Build the trigger app.

    Settings are read from the environment on each request unless given,
    so a misconfigured deployment answers 500 instead of failing to start.
    """
    app = FastAPI(title="Conference Scraper", version="0.1")

    @app.options(SCRAPE_PATH)
    async def preflight() -> Response:
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.api_route(SCRAPE_PATH, methods=TRIGGER_METHODS)
    async def scrape_conferences() -> JSONResponse:
        store = None
        try:
            run_settings = settings or Settings.from_env()
            store = store_factory(run_settings)
            report = await pipeline_factory(run_settings, store).run()
        except Exception as e:
            console.print(f"[red]Error in scrape-conferences: {e}[/red]")
            return JSONResponse(
                {"error": str(e) or type(e).__name__},
                status_code=500,
                headers=CORS_HEADERS,
            )
        finally:
            if store is not None:
                store.close()

        return JSONResponse(
            {
                "success": True,
                "scraped": report.scraped,
                "sources": report.sources,
                "message": report.summary_message(),
                "conferences": [c.to_display() for c in report.conferences],
            },
            headers=CORS_HEADERS,
        )

    return app
