"""End-to-end tests for a scrape pass against a local store."""

import threading
from datetime import date

import httpx
import pytest

from conference_pipeline.errors import PersistenceError, RegistryError
from conference_pipeline.pipeline import ScrapePipeline
from conference_pipeline.storage import SQLiteStore

TODAY = date(2026, 1, 15)

PGUPS_CONF = {
    "title": "Транспорт России",
    "date": "2026-11-12",
    "location": "Санкт-Петербург",
    "description": "Научно-практическая конференция.",
    "format": "Очно",
    "topic": "Железнодорожный транспорт",
}


class TestScrapePass:
    """Fetch → extract → normalize → upsert."""

    @pytest.mark.asyncio
    async def test_single_source_single_conference(self, settings, store: SQLiteStore, make_web):
        source = store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={"pgups-page": [PGUPS_CONF]},
        )

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.scraped == 1
        assert report.sources == 1
        assert report.inserted == 1
        [conf] = store.list_upcoming(TODAY)
        assert conf.university == "ПГУПС"
        assert conf.source_url == "https://pgups.test"
        assert conf.date == "2026-11-12"
        assert store.get_source(source.id).last_scraped_at is not None

    @pytest.mark.asyncio
    async def test_invalid_dates_not_persisted(self, settings, store: SQLiteStore, make_web):
        store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={"pgups-page": [{**PGUPS_CONF, "date": "15 марта"}]},
        )

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.scraped == 0
        assert report.results[0].candidates == 1
        assert store.list_upcoming(date(2000, 1, 1)) == []

    @pytest.mark.asyncio
    async def test_odd_optional_field_keeps_dated_candidate(self, settings, store: SQLiteStore, make_web):
        store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={"pgups-page": [{**PGUPS_CONF, "venue": {"building": "1"}}]},
        )

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.scraped == 1
        [conf] = store.list_upcoming(TODAY)
        assert conf.venue is None

    @pytest.mark.asyncio
    async def test_same_triple_from_two_sources(self, settings, store: SQLiteStore, make_web):
        # Two registry rows for one university (main site and a faculty page)
        store.add_source("ПГУПС", "https://pgups.test")
        store.add_source("ПГУПС", "https://science.pgups.test")
        web = make_web(
            pages={
                "https://pgups.test": "<html>pgups-page</html>",
                "https://science.pgups.test": "<html>science-page</html>",
            },
            extractions={"pgups-page": [PGUPS_CONF], "science-page": [PGUPS_CONF]},
        )

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.scraped == 2
        assert report.inserted == 1
        [stored] = store.list_upcoming(TODAY)
        assert stored.source_url == "https://pgups.test"

    @pytest.mark.asyncio
    async def test_no_active_sources(self, settings, store: SQLiteStore, make_web):
        store.add_source("МАДИ", "https://madi.test", is_active=False)
        web = make_web(pages={}, extractions={})

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.sources == 0
        assert report.scraped == 0
        assert web.requests == []


class TestSourceIsolation:
    """One bad source never spoils the pass."""

    @pytest.mark.asyncio
    async def test_fetch_timeout_between_good_sources(self, settings, store: SQLiteStore, make_web):
        first = store.add_source("ПГУПС", "https://pgups.test")
        slow = store.add_source("МАДИ", "https://madi.test")
        last = store.add_source("РГУПС", "https://rgups.test")
        web = make_web(
            pages={
                "https://pgups.test": "<html>pgups-page</html>",
                "https://madi.test": httpx.ReadTimeout("timed out"),
                "https://rgups.test": "<html>rgups-page</html>",
            },
            extractions={
                "pgups-page": [PGUPS_CONF],
                "rgups-page": [{**PGUPS_CONF, "title": "Транспорт Юга"}],
            },
        )

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert [r.status for r in report.results] == ["ok", "fetch_failed", "ok"]
        assert report.scraped == 2
        assert {c.university for c in store.list_upcoming(TODAY)} == {"ПГУПС", "РГУПС"}
        for source in (first, slow, last):
            assert store.get_source(source.id).last_scraped_at is not None

    @pytest.mark.asyncio
    async def test_http_error_status_skips_source(self, settings, store: SQLiteStore, make_web):
        store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(pages={"https://pgups.test": 403}, extractions={})

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.results[0].status == "fetch_failed"
        # The completion service is never called for a failed fetch
        assert all(r.url.host != "ai.test" for r in web.requests)

    @pytest.mark.asyncio
    async def test_extraction_failure_is_zero_candidates(self, settings, store: SQLiteStore, make_web):
        source = store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={},
            ai_status=500,
        )

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.results[0].status == "extraction_failed"
        assert report.scraped == 0
        assert store.get_source(source.id).last_scraped_at is not None

    @pytest.mark.asyncio
    async def test_concurrent_workers_keep_source_order(self, settings, store: SQLiteStore, make_web):
        urls = [f"https://u{i}.test" for i in range(5)]
        for i, url in enumerate(urls):
            store.add_source(f"U{i}", url)
        web = make_web(
            pages={url: f"<html>page-{i}</html>" for i, url in enumerate(urls)},
            extractions={f"page-{i}": [{**PGUPS_CONF, "title": f"Conf {i}"}] for i in range(5)},
        )
        settings = settings.model_copy(update={"max_workers": 3})

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert [r.source.name for r in report.results] == [f"U{i}" for i in range(5)]
        assert [c.title for c in report.conferences] == [f"Conf {i}" for i in range(5)]


class TestPassFailures:
    """Pass-level errors."""

    @pytest.mark.asyncio
    async def test_registry_failure_aborts(self, settings, tmp_path, make_web):
        store = SQLiteStore(tmp_path / "empty.db", auto_initialize=False)
        web = make_web(pages={}, extractions={})

        async with web.client() as client:
            with pytest.raises(RegistryError):
                await ScrapePipeline(settings, store, client=client).run(today=TODAY)
        assert web.requests == []

    @pytest.mark.asyncio
    async def test_upsert_failure_keeps_timestamps(self, settings, store: SQLiteStore, make_web, monkeypatch):
        source = store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={"pgups-page": [PGUPS_CONF]},
        )

        def broken_upsert(conferences):
            raise PersistenceError("disk full")

        monkeypatch.setattr(store, "upsert_conferences", broken_upsert)

        async with web.client() as client:
            with pytest.raises(PersistenceError):
                await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert store.get_source(source.id).last_scraped_at is not None

    @pytest.mark.asyncio
    async def test_timestamp_failure_does_not_abort(self, settings, store: SQLiteStore, make_web, monkeypatch):
        store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={"pgups-page": [PGUPS_CONF]},
        )

        def broken_mark(source_id, when):
            raise PersistenceError("read-only")

        monkeypatch.setattr(store, "mark_scraped", broken_mark)

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.inserted == 1


class TestPastDateRecheck:
    """Optional re-check of the model's future-date filter."""

    @pytest.mark.asyncio
    async def test_past_conference_dropped_when_enabled(self, settings, store: SQLiteStore, make_web):
        store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={"pgups-page": [PGUPS_CONF, {**PGUPS_CONF, "title": "Old", "date": "2025-05-01"}]},
        )
        settings = settings.model_copy(update={"reject_past_dates": True})

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert [c.title for c in report.conferences] == ["Транспорт России"]


class TestStoreCalls:
    """Blocking store calls stay off the event loop."""

    @pytest.mark.asyncio
    async def test_store_runs_in_worker_threads(self, settings, store: SQLiteStore, make_web, monkeypatch):
        store.add_source("ПГУПС", "https://pgups.test")
        web = make_web(
            pages={"https://pgups.test": "<html>pgups-page</html>"},
            extractions={"pgups-page": [PGUPS_CONF]},
        )
        loop_thread = threading.get_ident()
        threads = {}

        for name in ("list_active_sources", "mark_scraped", "upsert_conferences"):
            method = getattr(store, name)

            def recording(*args, _name=name, _method=method):
                threads[_name] = threading.get_ident()
                return _method(*args)

            monkeypatch.setattr(store, name, recording)

        async with web.client() as client:
            report = await ScrapePipeline(settings, store, client=client).run(today=TODAY)

        assert report.inserted == 1
        assert set(threads) == {"list_active_sources", "mark_scraped", "upsert_conferences"}
        assert loop_thread not in threads.values()
