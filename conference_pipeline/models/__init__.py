"""Data models for the conference pipeline."""

from conference_pipeline.models.conference import (
    Conference,
    Source,
    FORMATS,
    TOPICS,
    UNIVERSITIES,
    DEFAULT_FORMAT,
    DEFAULT_TOPIC,
)

__all__ = [
    "Conference",
    "Source",
    "FORMATS",
    "TOPICS",
    "UNIVERSITIES",
    "DEFAULT_FORMAT",
    "DEFAULT_TOPIC",
]
