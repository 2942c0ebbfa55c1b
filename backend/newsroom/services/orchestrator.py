"""
Fetch Orchestrator - drives one category's ingestion across prioritized sources.

Sources are called in priority-ordered waves of at most
``max_concurrent_fetches`` concurrent adapter calls. Each wave's results are
piped through normalize -> dedupe -> score -> upsert and logged in priority
order. Lower-priority sources keep being called until the stored quota is
met or every source has been tried; no single source failure aborts a run.
"""

import asyncio
import time
from typing import Optional

import structlog

from newsroom.core.errors import ConfigError, PersistenceError
from newsroom.models.domain import FetchLogEntry, FetchStatus, RunSummary, utcnow
from newsroom.services.deduplicator import DedupScope, Deduplicator
from newsroom.services.normalizer import Normalizer
from newsroom.services.persistence import ArticleStore
from newsroom.services.run_logger import RunLogger
from newsroom.services.scoring import HeuristicQualityScorer, QualityScorer
from newsroom.sources.base import FetchResult, RawItem, SourceDescriptor

logger = structlog.get_logger(__name__)

TIMED_OUT_MESSAGE = "timed out"
BUDGET_SKIP_MESSAGE = "skipped: category time budget exhausted"
NOT_SERVED_MESSAGE = "category not served by this source"


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class FetchOrchestrator:
    """
    Runs the ingestion pipeline for one category at a time.

    Each ``run`` gets its own DedupScope. The semaphore is shared by every
    run of this orchestrator, so concurrent runs together never exceed
    ``max_concurrent_fetches`` outbound calls.
    """

    def __init__(
        self,
        name: str,
        sources: list[SourceDescriptor],
        store: ArticleStore,
        run_logger: RunLogger,
        scorer: Optional[QualityScorer] = None,
        normalizer: Optional[Normalizer] = None,
        deduplicator: Optional[Deduplicator] = None,
        max_concurrent_fetches: int = 4,
        category_budget_seconds: float = 30.0,
        max_items_per_source: int = 50,
    ):
        self.name = name
        # sorted() is stable, equal priorities keep their configured order
        self.sources = sorted(sources, key=lambda s: s.priority)
        self.store = store
        self.run_logger = run_logger
        self.scorer = scorer or HeuristicQualityScorer()
        self.normalizer = normalizer or Normalizer()
        self.deduplicator = deduplicator or Deduplicator(store)
        self.max_concurrent_fetches = max(1, max_concurrent_fetches)
        self.category_budget_seconds = category_budget_seconds
        self.max_items_per_source = max_items_per_source
        self._semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

    async def run(self, category: str, target_limit: int, force_refresh: bool = False) -> RunSummary:
        """
        Ingest up to ``target_limit`` stored articles for ``category``.

        ``force_refresh`` skips the store-side duplicate check so existing
        rows are re-upserted with fresh scores and images.
        """
        started_at = utcnow()
        run_start = time.monotonic()
        deadline = run_start + self.category_budget_seconds
        scope = DedupScope()
        entries: list[FetchLogEntry] = []
        stored_total = 0

        log = logger.bind(pipeline=self.name, category=category)
        log.info("run started", target=target_limit, sources=[s.name for s in self.sources])

        queue = list(enumerate(self.sources))
        while queue and stored_total < target_limit:
            remaining_time = deadline - time.monotonic()
            if remaining_time <= 0:
                break

            wave = queue[: self.max_concurrent_fetches]
            queue = queue[self.max_concurrent_fetches:]
            sub_limit = max(1, min(self.max_items_per_source, target_limit - stored_total))

            wave_entries = await self._run_wave(
                wave, category, sub_limit, target_limit - stored_total, remaining_time, scope, force_refresh
            )
            for entry in wave_entries:
                stored_total += entry.articles_stored
                entries.append(entry)
                await self._append_entry(entry)

        if queue and stored_total < target_limit:
            log.warning("category budget exhausted", skipped=[d.name for _, d in queue])
            for sequence, descriptor in queue:
                entry = self._entry(
                    descriptor, category, sequence, FetchStatus.NO_DATA, error_message=BUDGET_SKIP_MESSAGE
                )
                entries.append(entry)
                await self._append_entry(entry)

        summary = RunSummary.from_entries(
            category=category,
            entries=entries,
            started_at=started_at,
            duration_ms=_elapsed_ms(run_start),
            pipeline=self.name,
        )
        try:
            await self.run_logger.append_summary(summary)
        except PersistenceError as e:
            log.warning("run summary not recorded", error=str(e))
        return summary

    async def _run_wave(
        self,
        wave: list[tuple[int, SourceDescriptor]],
        category: str,
        sub_limit: int,
        quota: int,
        timeout: float,
        scope: DedupScope,
        force_refresh: bool,
    ) -> list[FetchLogEntry]:
        """
        Fetch a wave concurrently, then process results in priority order.

        Sources share ``quota``: once it is met, later results in the wave are
        still counted as fetched but nothing more is stored.
        """
        wave_start = time.monotonic()
        tasks: dict[int, asyncio.Task] = {}
        for sequence, descriptor in wave:
            mapped = descriptor.map_category(category)
            if mapped is None:
                continue
            tasks[sequence] = asyncio.create_task(
                self._fetch(descriptor, mapped, sub_limit),
                name=f"{self.name}:{descriptor.name}:{category}",
            )

        pending: set[asyncio.Task] = set()
        if tasks:
            try:
                _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
            except asyncio.CancelledError:
                for task in tasks.values():
                    task.cancel()
                raise
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        entries = []
        wave_stored = 0
        for sequence, descriptor in wave:
            task = tasks.get(sequence)
            if task is None:
                entries.append(self._entry(
                    descriptor, category, sequence, FetchStatus.NO_DATA, error_message=NOT_SERVED_MESSAGE
                ))
                continue

            if task in pending:
                entries.append(self._entry(
                    descriptor, category, sequence, FetchStatus.ERROR,
                    error_message=TIMED_OUT_MESSAGE,
                    execution_time_ms=_elapsed_ms(wave_start),
                ))
                continue

            error = task.exception()
            if error is not None:
                logger.error(
                    "adapter raised",
                    source=descriptor.name,
                    category=category,
                    error=repr(error),
                    exc_info=error,
                )
                entries.append(self._entry(
                    descriptor, category, sequence, FetchStatus.ERROR,
                    error_message=f"unexpected error: {error!r}",
                    execution_time_ms=_elapsed_ms(wave_start),
                ))
                continue

            result, elapsed_ms = task.result()
            stored = await self._ingest_items(
                result.items, descriptor.name, category, scope, force_refresh, limit=quota - wave_stored
            )
            wave_stored += stored
            entries.append(self._entry(
                descriptor, category, sequence,
                self._status(result),
                fetched=len(result.items),
                stored=stored,
                error_message=str(result.error) if result.error else None,
                execution_time_ms=elapsed_ms,
            ))

        return entries

    async def _fetch(self, descriptor: SourceDescriptor, category: str, limit: int) -> tuple[FetchResult, int]:
        async with self._semaphore:
            start = time.monotonic()
            result = await descriptor.adapter.fetch(category, limit)
            return result, _elapsed_ms(start)

    async def _ingest_items(
        self,
        items: list[RawItem],
        source_name: str,
        category: str,
        scope: DedupScope,
        force_refresh: bool,
        limit: int,
    ) -> int:
        """Normalize, dedupe, score and upsert up to ``limit`` items; returns the stored count."""
        stored = 0
        for raw in items:
            if stored >= limit:
                break

            try:
                article = self.normalizer.normalize(raw, source_name=source_name, category=category)
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(
                    "item dropped",
                    source=source_name,
                    category=category,
                    url=raw.url if isinstance(raw.url, str) else None,
                    error=repr(e),
                )
                continue
            if article is None:
                continue

            try:
                if await self.deduplicator.is_duplicate(article, scope, check_store=not force_refresh):
                    continue
                article.scores = self.scorer.score(article)
                await self.store.upsert(article)
            except (PersistenceError, ValueError) as e:
                logger.warning(
                    "article skipped",
                    source=source_name,
                    category=category,
                    url=article.url,
                    error=str(e),
                )
                continue

            stored += 1
        return stored

    def _status(self, result: FetchResult) -> FetchStatus:
        if result.items:
            return FetchStatus.SUCCESS
        if result.error is not None and not isinstance(result.error, ConfigError):
            return FetchStatus.ERROR
        return FetchStatus.NO_DATA

    def _entry(
        self,
        descriptor: SourceDescriptor,
        category: str,
        sequence: int,
        status: FetchStatus,
        fetched: int = 0,
        stored: int = 0,
        error_message: Optional[str] = None,
        execution_time_ms: int = 0,
    ) -> FetchLogEntry:
        return FetchLogEntry(
            source_name=descriptor.name,
            category=category,
            articles_fetched=fetched,
            articles_stored=stored,
            status=status,
            error_message=error_message,
            execution_time_ms=execution_time_ms,
            sequence=sequence,
            pipeline=self.name,
        )

    async def _append_entry(self, entry: FetchLogEntry) -> None:
        try:
            await self.run_logger.append_entry(entry)
        except PersistenceError as e:
            logger.warning("fetch log entry not recorded", source=entry.source_name, error=str(e))
