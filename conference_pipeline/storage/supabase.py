"""Supabase store, talking to the PostgREST endpoint over httpx."""

from datetime import date, datetime
from typing import Optional, Sequence

import httpx
from rich.console import Console

from conference_pipeline.errors import ConfigError, PersistenceError, RegistryError
from conference_pipeline.models import Conference, Source
from conference_pipeline.storage.base import (
    CONFERENCES_TABLE,
    CONFLICT_COLUMNS,
    SOURCES_TABLE,
    ConferenceStore,
)

console = Console()


class SupabaseStore(ConferenceStore):
    """Conference store backed by a Supabase project."""

    def __init__(
        self,
        url: str,
        key: str,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        if not url or not key:
            raise ConfigError("Supabase URL and service role key are required")
        self.rest_url = f"{url.rstrip('/')}/rest/v1"
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=timeout)
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    def _table_url(self, table: str) -> str:
        return f"{self.rest_url}/{table}"

    def list_active_sources(self) -> list[Source]:
        try:
            response = self.client.get(
                self._table_url(SOURCES_TABLE),
                params={"select": "*", "is_active": "eq.true"},
                headers=self.headers,
            )
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RegistryError(f"Failed to list sources: {e}") from e
        return [Source.model_validate(row) for row in rows]

    def mark_scraped(self, source_id: int | str, when: datetime) -> None:
        try:
            response = self.client.patch(
                self._table_url(SOURCES_TABLE),
                params={"id": f"eq.{source_id}"},
                json={"last_scraped_at": when.isoformat()},
                headers={**self.headers, "Prefer": "return=minimal"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PersistenceError(f"Failed to update source {source_id}: {e}") from e

    def upsert_conferences(self, conferences: Sequence[Conference]) -> int:
        if not conferences:
            return 0

        try:
            response = self.client.post(
                self._table_url(CONFERENCES_TABLE),
                params={"on_conflict": ",".join(CONFLICT_COLUMNS)},
                json=[c.to_row() for c in conferences],
                headers={
                    **self.headers,
                    # Ignored duplicates are left out of the returned rows
                    "Prefer": "resolution=ignore-duplicates,return=representation",
                },
            )
            response.raise_for_status()
            inserted = len(response.json())
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"Failed to upsert conferences: {e}") from e

        console.print(
            f"[dim]Inserted {inserted} new conferences "
            f"({len(conferences) - inserted} already stored)[/dim]"
        )
        return inserted

    def list_upcoming(self, cutoff: date) -> list[Conference]:
        response = self.client.get(
            self._table_url(CONFERENCES_TABLE),
            params={"select": "*", "date": f"gte.{cutoff.isoformat()}", "order": "date.asc"},
            headers=self.headers,
        )
        response.raise_for_status()
        return [Conference.model_validate(row) for row in response.json()]

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
