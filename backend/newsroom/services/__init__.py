"""
Services layer - the ingestion pipeline.

1. Normalizer (normalizer.py):
   - RawItem -> CanonicalArticle draft, content hash, topic tags

2. Deduplicator (deduplicator.py):
   - Per-run scope, then store lookup by hash or url

3. Scoring (scoring.py):
   - Pluggable QualityScorer, deterministic heuristic default

4. Persistence (persistence.py):
   - Atomic upsert, purge, duplicate cleanup, freshness

5. Orchestrator (orchestrator.py):
   - Priority-ordered, bounded-concurrency fetch of one category

6. Coordinator (coordinator.py):
   - Purge, concurrent refill pipelines, maintenance
"""

from newsroom.services.coordinator import PurgeAndRefreshCoordinator, RefreshPipeline
from newsroom.services.deduplicator import DedupScope, Deduplicator, canonical_url
from newsroom.services.normalizer import Normalizer, content_hash
from newsroom.services.orchestrator import FetchOrchestrator
from newsroom.services.persistence import ArticleStore
from newsroom.services.run_logger import RunLogger
from newsroom.services.scoring import HeuristicQualityScorer, QualityScorer

__all__ = [
    "ArticleStore",
    "DedupScope",
    "Deduplicator",
    "FetchOrchestrator",
    "HeuristicQualityScorer",
    "Normalizer",
    "PurgeAndRefreshCoordinator",
    "QualityScorer",
    "RefreshPipeline",
    "RunLogger",
    "canonical_url",
    "content_hash",
]
