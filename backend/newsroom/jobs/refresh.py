"""
News refresh job - wires sources, services and pipelines together.

This is the only place that reads Settings; everything below it receives
plain values through constructors.

Operations:
1. ingest: one category through every configured source
2. purge_and_refresh: purge, refill via the default pipelines, maintenance
3. auto_refresh: ingest every configured category (scheduled)
4. recent_logs: latest fetch log entries
"""
import asyncio
import time
from typing import Optional

import httpx
import structlog

from newsroom.config import Settings, get_settings
from newsroom.core.categories import CATEGORIES
from newsroom.models.database import Database
from newsroom.models.domain import FetchLogEntry, FetchStatus, IngestResult, PurgeAndRefreshResult
from newsroom.services.coordinator import PurgeAndRefreshCoordinator, RefreshPipeline
from newsroom.services.orchestrator import FetchOrchestrator
from newsroom.services.persistence import ArticleStore
from newsroom.services.run_logger import RunLogger
from newsroom.services.scoring import HeuristicQualityScorer, QualityScorer
from newsroom.sources import (
    FirecrawlScrapeAdapter,
    GuardianAdapter,
    MockNewsAdapter,
    NewsAPIAdapter,
    RateLimiter,
    RSSAdapter,
    SourceDescriptor,
)
from newsroom.sources.guardian import guardian_section
from newsroom.sources.newsapi import newsapi_category
from newsroom.sources.rss import rss_category
from newsroom.sources.scrape import scrape_category

logger = structlog.get_logger()

SUPERSEDED_MESSAGE = "superseded by a newer refresh"

# Pipelines refilling the store after a purge: (name, sources in priority order, categories, limit, split)
DEFAULT_PIPELINES = [
    ("headlines", ["newsapi", "guardian", "rss"], ["general"], 150, False),
    (
        "reliable-feeds",
        ["guardian", "rss"],
        ["general", "technology", "business", "sports", "entertainment", "science"],
        20,
        False,
    ),
    ("multi-source", ["newsapi", "guardian", "firecrawl"], ["general", "technology", "business"], 100, True),
]


def build_source_descriptors(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> dict[str, SourceDescriptor]:
    """Create every source the settings allow, keyed by name, in priority order."""
    rate_limiter = rate_limiter or RateLimiter()
    common = {
        "client": client,
        "rate_limiter": rate_limiter,
        "timeout": settings.source_timeout_seconds,
        "retries": settings.http_retries,
        "user_agent": settings.user_agent,
    }

    descriptors = [
        SourceDescriptor(
            name="newsapi",
            priority=1,
            adapter=NewsAPIAdapter(settings.newsapi_key, country=settings.newsapi_country, **common),
            category_map=newsapi_category,
        ),
        SourceDescriptor(
            name="guardian",
            priority=2,
            adapter=GuardianAdapter(settings.guardian_api_key, **common),
            category_map=guardian_section,
        ),
        SourceDescriptor(
            name="rss",
            priority=3,
            adapter=RSSAdapter(**common),
            category_map=rss_category,
        ),
        SourceDescriptor(
            name="firecrawl",
            priority=4,
            adapter=FirecrawlScrapeAdapter(settings.firecrawl_api_key, **common),
            category_map=scrape_category,
        ),
    ]
    if settings.enable_mock_source:
        descriptors.append(SourceDescriptor(name="mock", priority=99, adapter=MockNewsAdapter(**common)))

    return {d.name: d for d in descriptors}


def build_default_pipelines(
    descriptors: dict[str, SourceDescriptor],
    store: ArticleStore,
    run_logger: RunLogger,
    scorer: QualityScorer,
    settings: Settings,
) -> list[RefreshPipeline]:
    """
    The three refill pipelines. Each gets its own orchestrator, so dedup
    scopes are never shared between pipelines. The mock source, when
    enabled, is appended to every pipeline.
    """
    pipelines = []
    for name, source_names, categories, limit, split in DEFAULT_PIPELINES:
        sources = [descriptors[s] for s in source_names if s in descriptors]
        if "mock" in descriptors:
            sources.append(descriptors["mock"])
        orchestrator = FetchOrchestrator(
            name=name,
            sources=sources,
            store=store,
            run_logger=run_logger,
            scorer=scorer,
            max_concurrent_fetches=settings.max_concurrent_fetches,
            category_budget_seconds=settings.category_budget_seconds,
            max_items_per_source=settings.max_items_per_source,
        )
        pipelines.append(RefreshPipeline(
            name=name,
            orchestrator=orchestrator,
            categories=categories,
            limit=limit,
            split_limit=split,
        ))
    return pipelines


class NewsRefreshJob:
    """
    Composition root for ingestion.

    A new purge-and-refresh supersedes one still in flight (and any running
    auto refresh) by cancelling its task. Writes the superseded run already
    committed stay, upserts being idempotent.
    """

    def __init__(
        self,
        database: Database,
        settings: Optional[Settings] = None,
        sources: Optional[dict[str, SourceDescriptor]] = None,
        pipelines: Optional[list[RefreshPipeline]] = None,
        scorer: Optional[QualityScorer] = None,
    ):
        self.database = database
        self.settings = settings or get_settings()

        self.store = ArticleStore(database)
        self.run_logger = RunLogger(database)
        self.scorer = scorer or HeuristicQualityScorer()

        self._client: Optional[httpx.AsyncClient] = None
        if sources is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.source_timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": self.settings.user_agent},
            )
            sources = build_source_descriptors(self.settings, client=self._client)
        self.sources = sources

        self.orchestrator = FetchOrchestrator(
            name="ingest",
            sources=list(sources.values()),
            store=self.store,
            run_logger=self.run_logger,
            scorer=self.scorer,
            max_concurrent_fetches=self.settings.max_concurrent_fetches,
            category_budget_seconds=self.settings.category_budget_seconds,
            max_items_per_source=self.settings.max_items_per_source,
        )
        if pipelines is None:
            pipelines = build_default_pipelines(
                sources, self.store, self.run_logger, self.scorer, self.settings
            )
        self.coordinator = PurgeAndRefreshCoordinator(
            store=self.store,
            pipelines=pipelines,
            pipeline_timeout_seconds=self.settings.pipeline_timeout_seconds,
            freshness_half_life_hours=self.settings.freshness_half_life_hours,
        )

        self._refresh_task: Optional[asyncio.Task] = None
        self._auto_refresh_task: Optional[asyncio.Task] = None

    async def initialize(self):
        """Create tables."""
        await self.database.create_tables()
        logger.info(
            "Refresh job initialized",
            sources=list(self.sources),
            pipelines=[p.name for p in self.coordinator.pipelines],
        )

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def ingest(
        self,
        category: str = "general",
        limit: Optional[int] = None,
        force_refresh: bool = False,
    ) -> IngestResult:
        """Ingest one category through every configured source."""
        category = category.strip().lower()
        if category not in CATEGORIES:
            return IngestResult(success=False, category=category, error=f"unknown category: {category}")
        limit = limit or self.settings.default_ingest_limit

        start = time.monotonic()
        summary = await self.orchestrator.run(category, limit, force_refresh=force_refresh)

        invoked = [e for e in summary.entries if e.articles_fetched or e.status != FetchStatus.NO_DATA]
        all_failed = bool(invoked) and all(e.status == FetchStatus.ERROR for e in invoked)

        return IngestResult(
            success=not all_failed,
            category=category,
            total_fetched=summary.total_fetched,
            total_stored=summary.total_stored,
            logs=summary.entries,
            duration_ms=int((time.monotonic() - start) * 1000),
            error="all sources failed" if all_failed else None,
        )

    async def purge_and_refresh(
        self,
        max_age_hours: Optional[float] = None,
        wipe_all: bool = False,
    ) -> PurgeAndRefreshResult:
        """Run the coordinator, superseding any refresh still in flight."""
        if max_age_hours is None:
            max_age_hours = self.settings.purge_max_age_hours

        previous = self._refresh_task
        if previous is not None and not previous.done():
            logger.info("Superseding in-flight refresh")
            previous.cancel()
        self._cancel_auto_refresh()

        task = asyncio.create_task(self.coordinator.run(max_age_hours, wipe_all))
        self._refresh_task = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and self._refresh_task is not task:
                logger.info("Refresh superseded")
                return PurgeAndRefreshResult(success=False, error=SUPERSEDED_MESSAGE)
            raise
        finally:
            if self._refresh_task is task:
                self._refresh_task = None

    async def auto_refresh(self) -> list[IngestResult]:
        """Ingest every configured category; skipped while a full refresh runs."""
        if self._refresh_task is not None and not self._refresh_task.done():
            logger.info("Auto refresh skipped, full refresh in progress")
            return []
        if self._auto_refresh_task is not None and not self._auto_refresh_task.done():
            logger.info("Auto refresh skipped, previous run still in progress")
            return []

        task = asyncio.create_task(self._ingest_categories(self.settings.auto_refresh_categories))
        self._auto_refresh_task = task
        try:
            results = await task
        except asyncio.CancelledError:
            if task.cancelled() and self._auto_refresh_task is not task:
                logger.info("Auto refresh superseded")
                return []
            raise
        finally:
            if self._auto_refresh_task is task:
                self._auto_refresh_task = None

        logger.info(
            "Auto refresh completed",
            categories=len(results),
            stored=sum(r.total_stored for r in results),
        )
        return results

    async def recent_logs(self, limit: int = 50) -> list[FetchLogEntry]:
        return await self.run_logger.recent(limit)

    async def _ingest_categories(self, categories: list[str]) -> list[IngestResult]:
        results = []
        for category in categories:
            results.append(await self.ingest(category))
        return results

    def _cancel_auto_refresh(self):
        task = self._auto_refresh_task
        if task is not None and not task.done():
            self._auto_refresh_task = None
            task.cancel()
