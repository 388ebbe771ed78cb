"""LLM extraction of conference candidates from raw HTML.

Sends a truncated HTML excerpt to an OpenAI-compatible chat completions
gateway and forces the answer through a single function tool, so the
response is structured JSON rather than free text.
"""

import json
from datetime import date
from typing import Any, Optional

import httpx
from pydantic import ValidationError
from rich.console import Console

from conference_pipeline.errors import ExtractionError
from conference_pipeline.extractors.schema import (
    CANDIDATE_FIELDS,
    TOOL_NAME,
    RawCandidate,
    build_tool_choice,
    build_tool_schema,
)
from conference_pipeline.models import FORMATS, TOPICS

console = Console()


def truncate_html(html: str, max_chars: int) -> str:
    """Cut HTML to a character budget. Tag boundaries are ignored."""
    return html[:max_chars]


def build_messages(html: str, today: date) -> list[dict]:
    """System + user messages for one extraction request."""
    today_iso = today.isoformat()
    formats_str = ", ".join(f'"{f}"' for f in FORMATS)
    topics_str = ", ".join(f'"{t}"' for t in TOPICS)

    field_lines = []
    for field, hint in CANDIDATE_FIELDS.items():
        if field == "format":
            hint = formats_str
        elif field == "topic":
            hint = f"тема (выбери из: {topics_str})"
        field_lines.append(f"- {field}: {hint}")
    fields_str = "\n".join(field_lines)

    system = (
        "Ты помощник для извлечения информации о научных конференциях из HTML страниц "
        f"российских транспортных университетов. Текущая дата: {today_iso}. "
        "Извлекай ТОЛЬКО предстоящие конференции с датами в будущем."
    )
    user = f"""Проанализируй HTML и извлеки информацию о предстоящих научных конференциях.

Для каждой конференции верни:
{fields_str}

Если информации нет — пропусти это поле. Верни только конференции с датой >= {today_iso}.

HTML:
{html}"""

    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def parse_candidates(data: dict) -> list[RawCandidate]:
    """Pull candidates out of a chat completion response.

    Raises:
        ExtractionError: if there is no tool call or its arguments are not
            the expected JSON object.
    """
    try:
        message = data["choices"][0]["message"] or {}
    except (KeyError, IndexError, TypeError) as e:
        raise ExtractionError("Response has no choices") from e
    if not isinstance(message, dict):
        raise ExtractionError("Response message is not an object")

    tool_calls = message.get("tool_calls") or []
    if not isinstance(tool_calls, list) or not tool_calls:
        raise ExtractionError("Response has no tool call")
    if not isinstance(tool_calls[0], dict):
        raise ExtractionError("Tool call is not an object")

    function = tool_calls[0].get("function") or {}
    if not isinstance(function, dict):
        raise ExtractionError("Tool call has no function")
    if function.get("name") not in (None, TOOL_NAME):
        raise ExtractionError(f"Unexpected tool: {function.get('name')}")

    arguments: Any = function.get("arguments")
    if not arguments:
        raise ExtractionError("Tool call has no arguments")
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Tool arguments are not valid JSON: {e}") from e
    if not isinstance(arguments, dict):
        raise ExtractionError("Tool arguments are not an object")

    items = arguments.get("conferences") or []
    if not isinstance(items, list):
        raise ExtractionError("'conferences' is not an array")

    candidates = []
    for item in items:
        if not isinstance(item, dict):
            console.print(f"[dim]Skipping non-object candidate: {item!r:.60}[/dim]")
            continue
        try:
            candidates.append(RawCandidate.model_validate(item))
        except ValidationError as e:
            console.print(f"[dim]Skipping malformed candidate: {e.error_count()} errors[/dim]")
    return candidates


class ExtractionClient:
    """Client for the completion service used to extract conferences."""

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient,
        url: str,
        model: str,
        timeout: float = 60.0,
        max_html_chars: int = 30_000,
    ):
        self.api_key = api_key
        self.client = client
        self.url = url
        self.model = model
        self.timeout = timeout
        self.max_html_chars = max_html_chars

    def build_payload(self, html: str, today: date) -> dict:
        excerpt = truncate_html(html, self.max_html_chars)
        return {
            "model": self.model,
            "messages": build_messages(excerpt, today),
            "tools": [build_tool_schema()],
            "tool_choice": build_tool_choice(),
        }

    async def extract(self, html: str, today: Optional[date] = None) -> list[RawCandidate]:
        """Extract candidate conferences from a page.

        Raises:
            ExtractionError: on a non-success response, transport failure
                or unusable structured output.
        """
        payload = self.build_payload(html, today or date.today())
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            response = await self.client.post(
                self.url, json=payload, headers=headers, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise ExtractionError("Completion service timed out") from e
        except httpx.HTTPError as e:
            raise ExtractionError(f"Completion service unreachable: {e}") from e

        if not response.is_success:
            raise ExtractionError(
                f"Completion service error {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Completion response is not JSON: {e}") from e

        return parse_candidates(data)
