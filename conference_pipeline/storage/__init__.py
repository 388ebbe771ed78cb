"""Conference and source storage backends."""

from conference_pipeline.config import Settings
from conference_pipeline.storage.base import ConferenceStore
from conference_pipeline.storage.sqlite import SQLiteStore
from conference_pipeline.storage.supabase import SupabaseStore


def build_store(settings: Settings) -> ConferenceStore:
    """Create the store selected by settings.store_backend."""
    if settings.store_backend == "supabase":
        return SupabaseStore(settings.supabase_url, settings.supabase_key)
    return SQLiteStore(settings.database_path)


__all__ = ["ConferenceStore", "SQLiteStore", "SupabaseStore", "build_store"]
