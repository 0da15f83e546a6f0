# tests/unit/pipeline/test_unit_orchestrator.py — v3
"""Tests for pipeline/orchestrator.py — dedup, routing, deadlines and pooling.

The fetcher is faked; cache, store, retry queue and postprocessor are real
and confined to tmp_path.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from newsweaver.cache.fingerprint import compute_fingerprint
from newsweaver.cache.memory_store import MemoryFingerprintCache
from newsweaver.core.errors import (
    FetchError,
    GenerationError,
    GenerationFailure,
    StorageError,
)
from newsweaver.core.models import SourceItem
from newsweaver.enrichment.enricher import Enricher
from newsweaver.enrichment.postprocessor import PostProcessor
from newsweaver.feed.fetcher import FetchBatch
from newsweaver.feed.normalizer import Normalizer
from newsweaver.pipeline.deadline import Deadline
from newsweaver.pipeline.orchestrator import PipelineOrchestrator
from newsweaver.retry.manager import RetryManager
from newsweaver.retry.queue_store import RetryQueueStore
from newsweaver.storage.item_store import ItemStore

BODY = (
    "Rail operators announced a new timetable for the spring season. "
    "Trains on the coastal line will run every fifteen minutes. "
    "Night services return after a two year break."
)

REPLY = {
    "seo_title": "New Spring Rail Timetable Announced",
    "seo_description": "Coastal trains every fifteen minutes and night services return.",
    "tldr": ["New timetable", "Trains every 15 minutes", "Night services back"],
    "content_md": "## Timetable\n\n" + BODY,
    "category": "Transport",
    "tags": ["rail", "timetable"],
}


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def _source(guid: str, url: str | None = None) -> SourceItem:
    return SourceItem(
        guid=guid,
        title=f"Rail news {guid}",
        body=BODY,
        category="transport",
        url=url or f"https://rail.example.com/{guid}",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def llm(llm_response_factory) -> AsyncMock:
    client = AsyncMock()
    client.complete = AsyncMock(return_value=llm_response_factory(json.dumps(REPLY)))
    return client


@pytest.fixture
def parts(tmp_path: Path, llm: AsyncMock, clock: FakeClock) -> dict:
    return {
        "fetcher": AsyncMock(),
        "cache": MemoryFingerprintCache(),
        "store": ItemStore(tmp_path),
        "retry": RetryManager(RetryQueueStore(tmp_path), max_attempts=3, delay_s=60, clock=clock),
        "llm": llm,
    }


def _orchestrator(parts: dict, *, enricher: bool = True, max_workers: int = 5):
    return PipelineOrchestrator(
        fetcher=parts["fetcher"],
        normalizer=Normalizer(),
        cache=parts["cache"],
        enricher=Enricher(parts["llm"], timeout_s=5) if enricher else None,
        postprocessor=PostProcessor(),
        store=parts["store"],
        retry_manager=parts["retry"],
        cache_ttl_s=3600,
        max_workers=max_workers,
    )


def _feed(parts: dict, *items: SourceItem, error: FetchError | None = None) -> None:
    parts["fetcher"].fetch_all = AsyncMock(return_value=FetchBatch(list(items), error))


@pytest.mark.asyncio
class TestHappyPath:
    async def test_items_stored(self, parts):
        _feed(parts, _source("a"), _source("b"))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.fetched == 2
        assert outcome.normalized == 2
        assert outcome.stored == 2
        assert len(parts["store"]) == 2
        stored = await parts["store"].get_by_id(outcome.stored_ids[0])
        assert stored.seo_title == REPLY["seo_title"]
        assert stored.original_url.startswith("https://rail.example.com/")
        assert await parts["cache"].is_processed(compute_fingerprint(stored.original_url))
        assert outcome.finished_at is not None

    async def test_invalid_items_counted(self, parts):
        _feed(parts, _source("a"), SourceItem(guid="x", title="", url="https://x.test"))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])
        assert outcome.invalid == 1
        assert outcome.stored == 1

    async def test_partial_fetch_failure_recorded(self, parts):
        error = FetchError.aggregate([FetchError("boom", url="https://down.test")], total=2)
        _feed(parts, _source("a"), error=error)
        outcome = await _orchestrator(parts).process_sources(["https://up.test", "https://down.test"])
        assert outcome.stored == 1
        assert "1 of 2 source(s) failed" in outcome.fetch_error


@pytest.mark.asyncio
class TestDedup:
    async def test_same_url_different_guid_stored_once(self, parts):
        url = "https://rail.example.com/story"
        _feed(parts, _source("a", url), _source("b", url))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.stored == 1
        assert outcome.duplicates == 1
        assert len(parts["store"]) == 1

    async def test_concurrent_duplicates_call_gateway_once(self, parts, llm, llm_response_factory):
        async def slow_complete(**kwargs):
            await asyncio.sleep(0.05)
            return llm_response_factory(json.dumps(REPLY))

        llm.complete = AsyncMock(side_effect=slow_complete)
        url = "https://rail.example.com/story"
        _feed(parts, *(_source(f"g{n}", url) for n in range(5)))

        outcome = await _orchestrator(parts, max_workers=5).process_sources(["https://feed.test"])
        assert llm.complete.await_count == 1
        assert outcome.stored == 1
        assert outcome.duplicates == 4

    async def test_second_batch_skips_processed(self, parts, llm):
        _feed(parts, _source("a"))
        orchestrator = _orchestrator(parts)
        await orchestrator.process_sources(["https://feed.test"])
        outcome = await orchestrator.process_sources(["https://feed.test"])
        assert outcome.duplicates == 1
        assert llm.complete.await_count == 1

    async def test_url_fingerprint_ignores_fragment_and_host_case(self, parts):
        _feed(
            parts,
            _source("a", "https://Rail.Example.com/story"),
            _source("b", "https://rail.example.com/story#comments"),
        )
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])
        assert outcome.stored == 1


@pytest.mark.asyncio
class TestFailureRouting:
    async def test_unparseable_reply_stored_as_fallback(self, parts, llm, llm_response_factory):
        llm.complete = AsyncMock(return_value=llm_response_factory("Sorry, I cannot do JSON."))
        _feed(parts, _source("a"))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.stored == 1
        assert outcome.fallback == 1
        item = await parts["store"].get_by_id(outcome.stored_ids[0])
        assert item.fallback is True
        assert item.seo_title == "Rail news a"
        assert len(item.tldr) == 3

    async def test_transient_generation_error_queued(self, parts, llm):
        llm.complete = AsyncMock(side_effect=GenerationError(GenerationFailure.SERVER, "503"))
        item = _source("a")
        _feed(parts, item)
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.queued == 1
        assert "a" in parts["retry"]
        # Reservation stays while the retry queue owns the item.
        assert not await parts["cache"].reserve(compute_fingerprint(item.url), 60)

    async def test_rejected_generation_dead_lettered(self, parts, llm):
        llm.complete = AsyncMock(side_effect=GenerationError(GenerationFailure.REJECTED, "blocked"))
        _feed(parts, _source("a"))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.dead_lettered == 1
        assert len(await parts["retry"].dead_letters()) == 1

    async def test_gateway_timeout_queued(self, parts, llm):
        async def hang(**kwargs):
            await asyncio.sleep(10)

        llm.complete = AsyncMock(side_effect=hang)
        orchestrator = PipelineOrchestrator(
            fetcher=parts["fetcher"],
            normalizer=Normalizer(),
            cache=parts["cache"],
            enricher=Enricher(llm, timeout_s=0.01),
            postprocessor=PostProcessor(),
            store=parts["store"],
            retry_manager=parts["retry"],
        )
        _feed(parts, _source("a"))
        outcome = await orchestrator.process_sources(["https://feed.test"])
        assert outcome.queued == 1
        assert parts["retry"].get("a").last_error.failure == GenerationFailure.TIMEOUT

    async def test_unpublishable_reply_dropped(self, parts, llm, llm_response_factory):
        reply = dict(REPLY, content_md="Too short.")
        llm.complete = AsyncMock(return_value=llm_response_factory(json.dumps(reply)))
        _feed(parts, _source("a"))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.dropped == 1
        assert len(parts["store"]) == 0
        assert "a" not in parts["retry"]

    async def test_storage_failure_releases_fingerprint(self, parts):
        parts["store"].save = AsyncMock(side_effect=StorageError("disk full"))
        item = _source("a")
        _feed(parts, item)
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.storage_failed == 1
        assert await parts["cache"].reserve(compute_fingerprint(item.url), 60)

    async def test_unexpected_error_contained(self, parts):
        parts["store"].save = AsyncMock(side_effect=RuntimeError("bug"))
        item = _source("a")
        _feed(parts, item, _source("b"))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.failed == 2
        assert await parts["cache"].reserve(compute_fingerprint(item.url), 60)

    async def test_mark_processed_failure_still_counts_stored(self, parts):
        class FlakyCache(MemoryFingerprintCache):
            async def mark_processed(self, fingerprint: str, ttl_s: float) -> None:
                raise ConnectionError("cache unreachable")

        parts["cache"] = FlakyCache()
        item = _source("a")
        _feed(parts, item)
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"])

        assert outcome.stored == 1
        assert outcome.failed == 0
        assert len(parts["store"]) == 1
        # Not released: the stored item must not be enriched again.
        assert not await parts["cache"].reserve(compute_fingerprint(item.url), 60)


@pytest.mark.asyncio
class TestDeadlines:
    async def test_cancel_mid_batch_skips_remaining(self, parts, llm, llm_response_factory):
        deadline = Deadline.never()

        async def complete_then_cancel(**kwargs):
            deadline.cancel()
            return llm_response_factory(json.dumps(REPLY))

        llm.complete = AsyncMock(side_effect=complete_then_cancel)
        _feed(parts, _source("a"), _source("b"), _source("c"))
        outcome = await _orchestrator(parts, max_workers=1).process_sources(
            ["https://feed.test"], deadline=deadline
        )

        assert outcome.stored == 1
        assert outcome.skipped == 2
        assert outcome.cancelled
        assert not outcome.deadline_hit

    async def test_already_cancelled_deadline_skips_at_normalize(self, parts, llm):
        deadline = Deadline.never()
        deadline.cancel()
        _feed(parts, _source("a"), _source("b"))
        outcome = await _orchestrator(parts).process_sources(["https://feed.test"], deadline=deadline)

        assert outcome.skipped == 2
        assert outcome.normalized == 0
        llm.complete.assert_not_awaited()

    async def test_no_credentials_skips_enrichment(self, parts):
        _feed(parts, _source("a"))
        outcome = await _orchestrator(parts, enricher=False).process_sources(["https://feed.test"])
        assert outcome.enrichment_skipped
        assert outcome.normalized == 1
        assert outcome.stored == 0

    async def test_deadline_reaches_fetch_stage(self, parts):
        deadline = Deadline.never()
        _feed(parts, _source("a"))
        await _orchestrator(parts).process_sources(["https://feed.test"], deadline=deadline)
        parts["fetcher"].fetch_all.assert_awaited_once_with(["https://feed.test"], deadline)


@pytest.mark.asyncio
class TestRetryCycle:
    async def test_nothing_due(self, parts, llm):
        outcome = await _orchestrator(parts).run_retry_cycle()
        assert outcome.kind == "retry"
        assert outcome.stored == 0
        llm.complete.assert_not_awaited()

    async def test_queued_item_stored_on_retry(self, parts, llm, clock, llm_response_factory):
        llm.complete = AsyncMock(side_effect=GenerationError(GenerationFailure.RATE_LIMIT, "429"))
        item = _source("a")
        _feed(parts, item)
        orchestrator = _orchestrator(parts)
        await orchestrator.process_sources(["https://feed.test"])

        # Not yet due.
        assert (await orchestrator.run_retry_cycle()).stored == 0

        clock.now += timedelta(seconds=61)
        llm.complete = AsyncMock(return_value=llm_response_factory(json.dumps(REPLY)))
        outcome = await orchestrator.run_retry_cycle()

        assert outcome.stored == 1
        assert "a" not in parts["retry"]
        assert await parts["cache"].is_processed(compute_fingerprint(item.url))

    async def test_repeated_failures_dead_letter(self, parts, llm, clock):
        llm.complete = AsyncMock(side_effect=GenerationError(GenerationFailure.SERVER, "502"))
        _feed(parts, _source("a"))
        orchestrator = _orchestrator(parts)
        await orchestrator.process_sources(["https://feed.test"])

        clock.now += timedelta(seconds=61)
        assert (await orchestrator.run_retry_cycle()).queued == 1
        clock.now += timedelta(seconds=61)
        assert (await orchestrator.run_retry_cycle()).dead_lettered == 1

        clock.now += timedelta(days=1)
        assert (await orchestrator.run_retry_cycle()).dead_lettered == 0
        assert llm.complete.await_count == 3

    async def test_retry_without_credentials(self, parts, llm, clock):
        llm.complete = AsyncMock(side_effect=GenerationError(GenerationFailure.SERVER, "502"))
        _feed(parts, _source("a"))
        await _orchestrator(parts).process_sources(["https://feed.test"])

        clock.now += timedelta(seconds=61)
        outcome = await _orchestrator(parts, enricher=False).run_retry_cycle()
        assert outcome.enrichment_skipped
        assert "a" in parts["retry"]

    async def test_retry_success_clears_queue_when_marking_fails(
        self, parts, llm, clock, llm_response_factory
    ):
        llm.complete = AsyncMock(side_effect=GenerationError(GenerationFailure.SERVER, "503"))
        _feed(parts, _source("a"))
        orchestrator = _orchestrator(parts)
        await orchestrator.process_sources(["https://feed.test"])

        parts["cache"].mark_processed = AsyncMock(side_effect=ConnectionError("down"))
        clock.now += timedelta(seconds=61)
        llm.complete = AsyncMock(return_value=llm_response_factory(json.dumps(REPLY)))
        outcome = await orchestrator.run_retry_cycle()

        assert outcome.stored == 1
        assert "a" not in parts["retry"]


@pytest.mark.asyncio
class TestConcurrency:
    async def test_enrichment_bounded_by_max_workers(self, parts, llm, llm_response_factory):
        in_flight = 0
        peak = 0

        async def gated(**kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return llm_response_factory(json.dumps(REPLY))

        llm.complete = AsyncMock(side_effect=gated)
        _feed(parts, *(_source(f"n{n}") for n in range(12)))
        outcome = await _orchestrator(parts, max_workers=3).process_sources(["https://feed.test"])

        assert outcome.stored == 12
        assert llm.complete.await_count == 12
        assert peak == 3
