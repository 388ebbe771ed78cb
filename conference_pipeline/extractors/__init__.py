"""Page → candidate extraction.

1. Fetches raw HTML from a source URL
2. Sends a truncated excerpt to the completion service with a forced
   function-call schema
3. Returns unvalidated candidate records
"""

from conference_pipeline.extractors.fetch import fetch_page, USER_AGENT
from conference_pipeline.extractors.llm import ExtractionClient, parse_candidates, truncate_html
from conference_pipeline.extractors.schema import RawCandidate, build_tool_schema

__all__ = [
    "fetch_page",
    "USER_AGENT",
    "ExtractionClient",
    "parse_candidates",
    "truncate_html",
    "RawCandidate",
    "build_tool_schema",
]
