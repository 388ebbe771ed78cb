"""Shared test fixtures and configuration."""

import json

import httpx
import pytest

from conference_pipeline.config import Settings
from conference_pipeline.extractors.schema import RawCandidate
from conference_pipeline.models import Source
from conference_pipeline.storage import SQLiteStore

AI_URL = "https://ai.test/v1/chat/completions"


def completion_response(conferences: list) -> dict:
    """Chat completion body carrying a forced extract_conferences call."""
    return {
        "choices": [{
            "message": {
                "role": "assistant",
                "content": None,
                "tool_calls": [{
                    "id": "call_1",
                    "type": "function",
                    "function": {
                        "name": "extract_conferences",
                        "arguments": json.dumps({"conferences": conferences}, ensure_ascii=False),
                    },
                }],
            }
        }]
    }


class FakeWeb:
    """MockTransport handler serving source pages and the completion service.

    pages maps URL -> HTML (or an exception / status code to fail with);
    extractions maps a marker found in the HTML -> conferences returned by the model.
    """

    def __init__(self, pages: dict, extractions: dict, ai_status: int = 200):
        self.pages = pages
        self.extractions = extractions
        self.ai_status = ai_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url == AI_URL:
            if self.ai_status != 200:
                return httpx.Response(self.ai_status, text="gateway error")
            prompt = json.loads(request.content)["messages"][1]["content"]
            for marker, conferences in self.extractions.items():
                if marker in prompt:
                    return httpx.Response(200, json=completion_response(conferences))
            return httpx.Response(200, json=completion_response([]))

        page = self.pages.get(url)
        if page is None:
            return httpx.Response(404, text="not found")
        if isinstance(page, int):
            return httpx.Response(page, text="error")
        if isinstance(page, Exception):
            raise page
        return httpx.Response(200, text=page)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def source() -> Source:
    return Source(id=1, name="ПГУПС", url="https://pgups.test")


@pytest.fixture
def raw_candidate() -> RawCandidate:
    return RawCandidate(
        title="Транспорт России: проблемы и перспективы",
        date="2026-11-12",
        end_date="2026-11-13",
        location="Санкт-Петербург",
        description="Международная научно-практическая конференция.",
        format="Очно",
        topic="Железнодорожный транспорт",
        registration_url="https://pgups.test/conf/register",
    )


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "conferences.db")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        ai_api_key="test-key",
        ai_gateway_url=AI_URL,
        store_backend="sqlite",
        database_path=tmp_path / "conferences.db",
    )


@pytest.fixture
def make_web():
    """Factory for FakeWeb handlers."""
    return FakeWeb


@pytest.fixture
def completion():
    """Builder for chat completion bodies."""
    return completion_response
