"""HTTP fetcher for source pages.

One attempt per source per pass, bounded by a timeout. Failures raise
FetchError so the caller can skip the source and carry on.
"""

from typing import Optional

import httpx
from rich.console import Console

from conference_pipeline.errors import FetchError

console = Console()

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ru-RU,ru;q=0.9,en;q=0.8",
}


async def fetch_page(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 15.0,
) -> str:
    """Fetch raw HTML for a source URL.

    Args:
        url: Page to fetch
        client: Shared client; a short-lived one is created if omitted
        timeout: Seconds before the attempt is abandoned

    Raises:
        FetchError: on timeout, network failure or a non-2xx status
    """
    if client is None:
        async with httpx.AsyncClient(follow_redirects=True) as own_client:
            return await fetch_page(url, client=own_client, timeout=timeout)

    try:
        response = await client.get(url, headers=DEFAULT_HEADERS, timeout=timeout)
        response.raise_for_status()
    except httpx.TimeoutException as e:
        raise FetchError(url, "timeout") from e
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise FetchError(url, str(status), status=status) from e
    except httpx.ConnectError as e:
        raise FetchError(url, "connection") from e
    except httpx.HTTPError as e:
        raise FetchError(url, type(e).__name__.lower()) from e

    console.print(f"[dim]Fetched {len(response.text)} chars from {url}[/dim]")
    return response.text
