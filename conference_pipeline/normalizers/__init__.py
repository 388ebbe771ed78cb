"""Normalizers for extracted conference data."""

from conference_pipeline.normalizers.conference import (
    normalize_candidate,
    normalize_candidates,
    normalize_format,
    validate_date,
)

__all__ = ["normalize_candidate", "normalize_candidates", "normalize_format", "validate_date"]
