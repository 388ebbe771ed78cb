"""Error taxonomy for a scrape pass.

Only RegistryError and PersistenceError (bulk upsert) end a pass; the
others are soft and confined to one source or one candidate.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigError(PipelineError, ValueError):
    """Required configuration is missing or invalid."""


class RegistryError(PipelineError):
    """Active sources could not be listed."""


class FetchError(PipelineError):
    """A source page could not be fetched (timeout, network, non-2xx)."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.reason = reason  # "timeout", "connection", "404", ...
        self.status = status
        super().__init__(f"Failed to fetch {url}: {reason}")


class ExtractionError(PipelineError):
    """The completion service returned no usable structured output."""


class CandidateValidationError(PipelineError):
    """A candidate record cannot be turned into a conference."""


class PersistenceError(PipelineError):
    """A write to the conference or source store failed."""
