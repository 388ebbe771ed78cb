"""Candidate → canonical conference normalization.

This is the boundary between model output and storage: every field that
reaches the store passes through here. Attribution (university, source_url)
always comes from the Source, never from the candidate.
"""

import re
from datetime import date
from typing import Iterable, Optional

from rich.console import Console

from conference_pipeline.errors import CandidateValidationError
from conference_pipeline.extractors.schema import RawCandidate
from conference_pipeline.models import (
    Conference,
    Source,
    FORMATS,
    DEFAULT_FORMAT,
    DEFAULT_TOPIC,
)

console = Console()

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Passed through when present, left absent otherwise
PASSTHROUGH_FIELDS = (
    "end_date",
    "registration_url",
    "registration_deadline",
    "contact_email",
    "contact_phone",
    "venue",
    "fee",
)


def validate_date(value: Optional[str]) -> str:
    """Return value if it is a real YYYY-MM-DD date."""
    if not value or not ISO_DATE_RE.match(value):
        raise CandidateValidationError(f"invalid date: {value!r}")
    try:
        date.fromisoformat(value)
    except ValueError as e:
        raise CandidateValidationError(f"impossible date: {value!r}") from e
    return value


def normalize_format(value: Optional[str]) -> str:
    """Map to one of the known formats, defaulting to in-person."""
    if value in FORMATS:
        return value
    return DEFAULT_FORMAT


def build_conference(
    candidate: RawCandidate,
    source: Source,
    today: Optional[date] = None,
) -> Conference:
    """Build a Conference or raise CandidateValidationError.

    Args:
        candidate: Unvalidated model output
        source: Source the candidate was extracted from
        today: If given, conferences starting before this date are rejected
    """
    if not candidate.title:
        raise CandidateValidationError("missing title")
    conf_date = validate_date(candidate.date)
    if today and date.fromisoformat(conf_date) < today:
        raise CandidateValidationError(f"past date: {conf_date}")

    optional = {
        field: getattr(candidate, field)
        for field in PASSTHROUGH_FIELDS
        if getattr(candidate, field)
    }

    return Conference(
        title=candidate.title,
        date=conf_date,
        location=candidate.location or source.name,
        description=candidate.description or "",
        format=normalize_format(candidate.format),
        topic=candidate.topic or DEFAULT_TOPIC,
        university=source.name,
        source_url=source.url,
        **optional,
    )


def normalize_candidate(
    candidate: RawCandidate,
    source: Source,
    today: Optional[date] = None,
) -> Optional[Conference]:
    """Normalize one candidate, returning None if it must be discarded."""
    try:
        return build_conference(candidate, source, today=today)
    except CandidateValidationError as e:
        console.print(f"[dim]Skipping conference '{candidate.title or '?'}': {e}[/dim]")
        return None


def normalize_candidates(
    candidates: Iterable[RawCandidate],
    source: Source,
    today: Optional[date] = None,
) -> list[Conference]:
    """Normalize candidates from one source, dropping invalid ones."""
    conferences = []
    for candidate in candidates:
        conference = normalize_candidate(candidate, source, today=today)
        if conference is not None:
            conferences.append(conference)
    return conferences
