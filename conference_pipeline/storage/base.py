"""Store interface shared by the Supabase and SQLite backends."""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Sequence

from conference_pipeline.models import Conference, Source

SOURCES_TABLE = "scraping_sources"
CONFERENCES_TABLE = "conferences"
CONFLICT_COLUMNS = ("title", "university", "date")


class ConferenceStore(ABC):
    """Source registry plus deduplicated conference table."""

    @abstractmethod
    def list_active_sources(self) -> list[Source]:
        """Sources with is_active set. Raises RegistryError."""

    @abstractmethod
    def mark_scraped(self, source_id: int | str, when: datetime) -> None:
        """Set last_scraped_at for one source. Raises PersistenceError."""

    @abstractmethod
    def upsert_conferences(self, conferences: Sequence[Conference]) -> int:
        """Insert conferences, ignoring (title, university, date) conflicts.

        Returns the number of new rows. Raises PersistenceError.
        """

    @abstractmethod
    def list_upcoming(self, cutoff: date) -> list[Conference]:
        """Conferences dated on or after cutoff, earliest first."""

    def close(self) -> None:
        """Release connections held by the store."""
