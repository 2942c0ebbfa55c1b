"""
Tests for the fetch orchestrator.
"""
import asyncio

import pytest

from newsroom.core.errors import ConfigError, NetworkError
from newsroom.models.domain import FetchStatus
from newsroom.services.orchestrator import (
    BUDGET_SKIP_MESSAGE,
    NOT_SERVED_MESSAGE,
    TIMED_OUT_MESSAGE,
    FetchOrchestrator,
)
from newsroom.sources.base import SourceDescriptor
from newsroom.sources.mock import MockNewsAdapter


def build(store, run_logger, *adapters, k=4, budget=5.0, category_maps=None):
    category_maps = category_maps or {}
    descriptors = []
    for priority, adapter in enumerate(adapters, start=1):
        descriptor = SourceDescriptor(name=adapter.name, priority=priority, adapter=adapter)
        if adapter.name in category_maps:
            descriptor.category_map = category_maps[adapter.name]
        descriptors.append(descriptor)
    return FetchOrchestrator(
        name="test",
        sources=descriptors,
        store=store,
        run_logger=run_logger,
        max_concurrent_fetches=k,
        category_budget_seconds=budget,
    )


class ConcurrencyTracker(MockNewsAdapter):
    """Mock that records the peak number of overlapping calls."""

    active = 0
    peak = 0

    async def _fetch_items(self, category, limit):
        ConcurrencyTracker.active += 1
        ConcurrencyTracker.peak = max(ConcurrencyTracker.peak, ConcurrencyTracker.active)
        try:
            await asyncio.sleep(0.05)
            return await super()._fetch_items(category, limit)
        finally:
            ConcurrencyTracker.active -= 1


class TestIngestPipeline:
    """Normalize -> dedupe -> score -> upsert."""

    async def test_batch_duplicates_stored_once(self, store, run_logger, make_item):
        source = MockNewsAdapter(name="a", items=[make_item(1), make_item(2), make_item(1)])
        orchestrator = build(store, run_logger, source)

        summary = await orchestrator.run("general", 10)

        assert summary.total_fetched == 3
        assert summary.total_stored == 2
        assert await store.count() == 2

    async def test_rerun_is_idempotent(self, store, run_logger, make_items):
        source = MockNewsAdapter(name="a", items=make_items(2))
        orchestrator = build(store, run_logger, source)

        await orchestrator.run("general", 10)
        second = await orchestrator.run("general", 10)

        assert second.total_stored == 0
        assert second.entries[0].status == FetchStatus.SUCCESS
        assert await store.count() == 2

    async def test_force_refresh_reupserts(self, store, run_logger, make_items):
        source = MockNewsAdapter(name="a", items=make_items(2))
        orchestrator = build(store, run_logger, source)

        await orchestrator.run("general", 10)
        refreshed = await orchestrator.run("general", 10, force_refresh=True)

        assert refreshed.total_stored == 2
        assert await store.count() == 2

    async def test_invalid_items_are_dropped(self, store, run_logger, make_item):
        items = [make_item(1), make_item(2, title=None), make_item(3, url="mailto:desk@example.com")]
        orchestrator = build(store, run_logger, MockNewsAdapter(name="a", items=items))

        summary = await orchestrator.run("general", 10)

        assert summary.total_fetched == 3
        assert summary.total_stored == 1

    async def test_malformed_item_does_not_abort_the_run(self, store, run_logger, make_item):
        items = [
            make_item(1, description=12345),
            make_item(2),
            make_item(3, url_to_image={"src": "https://images.example.com/3.jpg"}),
        ]
        orchestrator = build(store, run_logger, MockNewsAdapter(name="a", items=items))

        summary = await orchestrator.run("general", 10)

        assert summary.entries[0].status == FetchStatus.SUCCESS
        assert summary.total_fetched == 3
        assert summary.total_stored == 1
        assert await store.find_by_hash_or_url("", "https://www.reuters.com/world/story-2") is not None
        assert await store.count() == 1

    async def test_articles_are_scored_and_categorized(self, store, run_logger, make_item):
        orchestrator = build(store, run_logger, MockNewsAdapter(name="a", items=[make_item(1)]))
        await orchestrator.run("business", 10)

        article = await store.find_by_hash_or_url("", "https://www.reuters.com/world/story-1")
        assert article.category == "business"
        assert article.scores.credibility == 0.9


class TestFailureIsolation:
    async def test_one_source_error_does_not_abort(self, store, run_logger, make_items):
        failing = MockNewsAdapter(name="a", error=NetworkError("HTTP 500"))
        working = MockNewsAdapter(name="b", items=make_items(3))
        orchestrator = build(store, run_logger, failing, working)

        summary = await orchestrator.run("general", 10)

        assert [e.source_name for e in summary.entries] == ["a", "b"]
        assert summary.entries[0].status == FetchStatus.ERROR
        assert "HTTP 500" in summary.entries[0].error_message
        assert summary.entries[1].status == FetchStatus.SUCCESS
        assert summary.total_stored == 3
        assert summary.per_source["a"].status == FetchStatus.ERROR
        assert summary.per_source["b"].stored == 3

    @pytest.mark.parametrize("k", [1, 4])
    async def test_fallthrough_tries_every_source(self, store, run_logger, make_items, k):
        sources = [
            MockNewsAdapter(name="a", items=make_items(20, start=0)),
            MockNewsAdapter(name="b", error=NetworkError("connection reset")),
            MockNewsAdapter(name="c", items=make_items(15, start=100)),
            MockNewsAdapter(name="d", items=make_items(30, start=200)),
        ]
        orchestrator = build(store, run_logger, *sources, k=k)

        summary = await orchestrator.run("general", 50)

        assert all(source.calls for source in sources)
        assert len(summary.entries) == 4
        assert summary.entries[1].status == FetchStatus.ERROR
        assert summary.total_stored == 50
        assert await store.count() == 50

    async def test_quota_stops_later_waves(self, store, run_logger, make_items):
        first = MockNewsAdapter(name="a", items=make_items(20))
        second = MockNewsAdapter(name="b", items=make_items(5, start=100))
        orchestrator = build(store, run_logger, first, second, k=1)

        summary = await orchestrator.run("general", 10)

        assert first.calls == [("general", 10)]
        assert second.calls == []
        assert summary.total_stored == 10
        assert [e.source_name for e in summary.entries] == ["a"]

    async def test_wave_shares_the_remaining_quota(self, store, run_logger, make_items):
        sources = [MockNewsAdapter(name=name, items=make_items(10, start=n * 100)) for n, name in enumerate("abcd")]
        orchestrator = build(store, run_logger, *sources, k=4)

        summary = await orchestrator.run("general", 10)

        assert all(source.calls for source in sources)
        assert summary.total_fetched == 40
        assert summary.total_stored == 10
        assert [e.articles_stored for e in summary.entries] == [10, 0, 0, 0]
        assert await store.count() == 10

    async def test_missing_credentials_is_no_data(self, store, run_logger, make_items):
        keyed = MockNewsAdapter(name="a", error=ConfigError("credentials not configured"))
        orchestrator = build(store, run_logger, keyed, MockNewsAdapter(name="b", items=make_items(1)))

        summary = await orchestrator.run("general", 10)

        assert summary.entries[0].status == FetchStatus.NO_DATA
        assert summary.entries[1].status == FetchStatus.SUCCESS

    async def test_unserved_category_is_no_data(self, store, run_logger, make_items):
        narrow = MockNewsAdapter(name="a", items=make_items(3))
        orchestrator = build(store, run_logger, narrow, category_maps={"a": lambda c: None})

        summary = await orchestrator.run("sports", 10)

        assert narrow.calls == []
        assert summary.entries[0].status == FetchStatus.NO_DATA
        assert summary.entries[0].error_message == NOT_SERVED_MESSAGE

    async def test_category_is_mapped_for_the_source(self, store, run_logger, make_items):
        source = MockNewsAdapter(name="a", items=make_items(1))
        orchestrator = build(store, run_logger, source, category_maps={"a": lambda c: "sport"})

        await orchestrator.run("sports", 10)

        assert source.calls == [("sport", 10)]

    async def test_unexpected_exception_is_logged_as_error(self, store, run_logger, make_items):
        broken = MockNewsAdapter(name="a", error=RuntimeError("boom"))
        orchestrator = build(store, run_logger, broken, MockNewsAdapter(name="b", items=make_items(2)))

        summary = await orchestrator.run("general", 10)

        assert summary.entries[0].status == FetchStatus.ERROR
        assert summary.entries[0].error_message.startswith("unexpected error")
        assert summary.total_stored == 2


class TestBudgetAndOrdering:
    async def test_budget_exhaustion(self, store, run_logger, make_items):
        slow = MockNewsAdapter(name="slow", items=make_items(3), delay=2.0)
        later = MockNewsAdapter(name="later", items=make_items(3, start=10))
        orchestrator = build(store, run_logger, slow, later, k=1, budget=0.3)

        summary = await orchestrator.run("general", 10)

        assert summary.entries[0].status == FetchStatus.ERROR
        assert summary.entries[0].error_message == TIMED_OUT_MESSAGE
        assert summary.entries[1].status == FetchStatus.NO_DATA
        assert summary.entries[1].error_message == BUDGET_SKIP_MESSAGE
        assert later.calls == []
        assert await store.count() == 0

    async def test_entries_follow_priority_not_completion(self, store, run_logger, make_items):
        sources = [
            MockNewsAdapter(name="a", items=make_items(1, start=0), delay=0.15),
            MockNewsAdapter(name="b", items=make_items(1, start=10), delay=0.05),
            MockNewsAdapter(name="c", items=make_items(1, start=20)),
        ]
        orchestrator = build(store, run_logger, *sources)

        summary = await orchestrator.run("general", 10)

        assert [e.source_name for e in summary.entries] == ["a", "b", "c"]
        logged = await run_logger.recent(10)
        assert [e.source_name for e in reversed(logged)] == ["a", "b", "c"]

    async def test_concurrency_is_bounded(self, store, run_logger, make_items):
        ConcurrencyTracker.active = 0
        ConcurrencyTracker.peak = 0
        sources = [ConcurrencyTracker(name=f"s{i}", items=make_items(1, start=i * 10)) for i in range(5)]
        orchestrator = build(store, run_logger, *sources, k=2)

        await orchestrator.run("general", 100)

        assert ConcurrencyTracker.peak <= 2
        assert all(source.calls for source in sources)

    async def test_log_rows_are_persisted(self, store, run_logger, make_items):
        orchestrator = build(
            store, run_logger,
            MockNewsAdapter(name="a", items=make_items(2)),
            MockNewsAdapter(name="b", error=NetworkError("HTTP 503")),
        )
        await orchestrator.run("technology", 10)

        logged = await run_logger.recent(10)
        assert len(logged) == 2
        assert {e.category for e in logged} == {"technology"}
        assert {e.pipeline for e in logged} == {"test"}
        by_source = {e.source_name: e for e in logged}
        assert by_source["a"].articles_stored == 2
        assert by_source["b"].status == FetchStatus.ERROR
