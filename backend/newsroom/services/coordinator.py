"""
Purge-and-Refresh Coordinator.

1. Purge stale (or all) articles. Failure here ends the run.
2. Refill through independent pipelines running concurrently; a failing
   pipeline contributes zero.
3. Store maintenance: duplicate cleanup, then freshness recomputation.
   Failures are reported as warnings.
"""

import asyncio
import math
import time
from dataclasses import dataclass, field
from datetime import timedelta

import structlog

from newsroom.core.errors import PersistenceError, PurgeError
from newsroom.models.domain import PurgeAndRefreshResult, utcnow
from newsroom.services.orchestrator import FetchOrchestrator
from newsroom.services.persistence import ArticleStore

logger = structlog.get_logger(__name__)


@dataclass
class RefreshPipeline:
    """
    One refill pipeline: an orchestrator plus the categories it covers.

    ``limit`` applies to each category, or is divided across them when
    ``split_limit`` is set.
    """
    name: str
    orchestrator: FetchOrchestrator
    categories: list[str] = field(default_factory=lambda: ["general"])
    limit: int = 50
    split_limit: bool = False
    force_refresh: bool = False

    def category_limit(self) -> int:
        if self.split_limit and self.categories:
            return max(1, math.ceil(self.limit / len(self.categories)))
        return self.limit

    async def run(self) -> int:
        """Run every category in order; returns the number of articles stored."""
        stored = 0
        for category in self.categories:
            summary = await self.orchestrator.run(
                category, self.category_limit(), force_refresh=self.force_refresh
            )
            stored += summary.total_stored
        return stored


class PurgeAndRefreshCoordinator:
    """Top-level maintenance operation over the article store."""

    def __init__(
        self,
        store: ArticleStore,
        pipelines: list[RefreshPipeline],
        pipeline_timeout_seconds: float = 120.0,
        freshness_half_life_hours: float = 24.0,
    ):
        self.store = store
        self.pipelines = pipelines
        self.pipeline_timeout_seconds = pipeline_timeout_seconds
        self.freshness_half_life_hours = freshness_half_life_hours

    async def run(self, max_age_hours: float = 48, wipe_all: bool = False) -> PurgeAndRefreshResult:
        start = time.monotonic()
        log = logger.bind(max_age_hours=max_age_hours, wipe_all=wipe_all)
        log.info("purge and refresh started", pipelines=[p.name for p in self.pipelines])

        try:
            removed = await self._purge(max_age_hours, wipe_all)
        except PurgeError as e:
            log.error("purge failed, refresh aborted", error=str(e))
            return PurgeAndRefreshResult(
                success=False,
                error=str(e),
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        warnings: list[str] = []
        counts = await asyncio.gather(*(self._run_pipeline(p, warnings) for p in self.pipelines))
        breakdown = {p.name: count for p, count in zip(self.pipelines, counts)}

        duplicates_cleaned = 0
        try:
            duplicates_cleaned = await self.store.cleanup_duplicates()
        except PersistenceError as e:
            log.warning("duplicate cleanup failed", error=str(e))
            warnings.append(f"duplicate cleanup failed: {e}")

        freshness_updated = 0
        try:
            freshness_updated = await self.store.recompute_freshness(self.freshness_half_life_hours)
        except PersistenceError as e:
            log.warning("freshness recompute failed", error=str(e))
            warnings.append(f"freshness recompute failed: {e}")

        result = PurgeAndRefreshResult(
            success=True,
            removed=removed,
            articles_added=sum(breakdown.values()),
            per_pipeline_breakdown=breakdown,
            duplicates_cleaned=duplicates_cleaned,
            freshness_updated=freshness_updated,
            duration_ms=int((time.monotonic() - start) * 1000),
            warnings=warnings,
        )
        log.info(
            "purge and refresh completed",
            removed=result.removed,
            added=result.articles_added,
            breakdown=breakdown,
            duplicates_cleaned=duplicates_cleaned,
            duration_ms=result.duration_ms,
        )
        return result

    async def _purge(self, max_age_hours: float, wipe_all: bool) -> int:
        try:
            if wipe_all:
                return await self.store.delete_all()
            if max_age_hours <= 0:
                raise PurgeError(f"max_age_hours must be positive, got {max_age_hours}")
            cutoff = utcnow() - timedelta(hours=max_age_hours)
            return await self.store.delete_older_than(cutoff)
        except PersistenceError as e:
            raise PurgeError(f"purge failed: {e.message}")

    async def _run_pipeline(self, pipeline: RefreshPipeline, warnings: list[str]) -> int:
        try:
            return await asyncio.wait_for(pipeline.run(), timeout=self.pipeline_timeout_seconds)
        except asyncio.TimeoutError:
            message = f"pipeline {pipeline.name} timed out after {self.pipeline_timeout_seconds:.0f}s"
        except Exception as e:
            logger.error("pipeline failed", pipeline=pipeline.name, error=repr(e), exc_info=e)
            message = f"pipeline {pipeline.name} failed: {e}"

        logger.warning("pipeline contributed nothing", pipeline=pipeline.name, reason=message)
        warnings.append(message)
        return 0
