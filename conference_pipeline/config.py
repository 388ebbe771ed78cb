"""Pipeline settings.

Settings are built once at the edge (CLI, HTTP trigger) and passed into
the pipeline, so the pipeline itself never reads the environment.
"""

import os
from pathlib import Path
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from conference_pipeline.errors import ConfigError

AI_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
AI_MODEL = "google/gemini-2.5-flash"
DEFAULT_DB_PATH = Path(__file__).parent.parent / ".cache" / "conferences.db"


class Settings(BaseModel):
    """Connection parameters and limits for one scrape pass."""

    # Completion service
    ai_api_key: str
    ai_gateway_url: str = AI_GATEWAY_URL
    ai_model: str = AI_MODEL

    # Storage
    store_backend: Literal["supabase", "sqlite"] = "sqlite"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    database_path: Path = DEFAULT_DB_PATH

    # Limits
    fetch_timeout: float = 15.0  # seconds per source page
    extraction_timeout: float = 60.0  # seconds per completion call
    max_html_chars: int = Field(default=30_000, gt=0)
    max_workers: int = Field(default=1, ge=1)  # 1 = sequential

    # Drop candidates dated before today (the model is only asked to)
    reject_past_dates: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigError: if the completion service key or the Supabase
                credentials for the selected backend are missing.
        """
        env = os.environ if environ is None else environ

        api_key = env.get("LOVABLE_API_KEY")
        if not api_key:
            raise ConfigError("LOVABLE_API_KEY is not configured")

        supabase_url = env.get("SUPABASE_URL") or None
        supabase_key = env.get("SUPABASE_SERVICE_ROLE_KEY") or None
        backend = env.get("STORE_BACKEND") or ("supabase" if supabase_url else "sqlite")
        if backend not in ("supabase", "sqlite"):
            raise ConfigError(f"Unknown STORE_BACKEND: {backend}")
        if backend == "supabase" and not (supabase_url and supabase_key):
            raise ConfigError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for the supabase backend"
            )

        values = {
            "ai_api_key": api_key,
            "store_backend": backend,
            "supabase_url": supabase_url,
            "supabase_key": supabase_key,
        }
        optional = {
            "ai_gateway_url": "AI_GATEWAY_URL",
            "ai_model": "AI_MODEL",
            "database_path": "CONFERENCE_DB_PATH",
            "fetch_timeout": "FETCH_TIMEOUT",
            "extraction_timeout": "EXTRACTION_TIMEOUT",
            "max_html_chars": "MAX_HTML_CHARS",
            "max_workers": "SCRAPE_MAX_WORKERS",
            "reject_past_dates": "REJECT_PAST_DATES",
        }
        for field, var in optional.items():
            if env.get(var):
                values[field] = env[var]

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}") from e
