"""
Domain models for the ingestion pipeline.
These are the core business entities, independent of database/API representation.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Naive UTC now; every timestamp in the store is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Enums
# =============================================================================

class FetchStatus(str, Enum):
    """Outcome of one adapter invocation."""
    SUCCESS = "success"
    ERROR = "error"
    NO_DATA = "no_data"


# =============================================================================
# Articles
# =============================================================================

class ArticleScores(BaseModel):
    """Quality signals attached to a stored article."""
    content_quality: float = Field(default=0.5, ge=0.0, le=1.0)
    credibility: float = Field(default=0.5, ge=0.0, le=1.0)
    bias: float = Field(default=0.5, ge=0.0, le=1.0)
    sentiment: float = Field(default=0.5, ge=0.0, le=1.0)
    engagement: int = Field(default=0, ge=0)


class CanonicalArticle(BaseModel):
    """Normalized article, the unit of deduplication and persistence."""
    id: Optional[str] = None  # Assigned by the store

    title: str
    description: str = ""
    content: str = ""
    url: str
    url_to_image: Optional[str] = None
    source_name: str
    author: Optional[str] = None
    published_at: datetime
    category: str = "general"
    language: str = "en"

    # Derived
    topic_tags: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    content_hash: str
    reading_time_minutes: int = Field(default=1, ge=1)

    # Scoring
    scores: ArticleScores = Field(default_factory=ArticleScores)
    freshness_score: float = Field(default=1.0, ge=0.0, le=1.0)

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# Observability records
# =============================================================================

class FetchLogEntry(BaseModel):
    """Immutable record of one adapter invocation."""
    model_config = ConfigDict(frozen=True)

    source_name: str
    category: str
    articles_fetched: int = 0
    articles_stored: int = 0
    status: FetchStatus
    error_message: Optional[str] = None
    execution_time_ms: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
    sequence: int = 0  # Priority position of the source within its run
    pipeline: Optional[str] = None


class SourceBreakdown(BaseModel):
    """Per-source totals inside a run summary."""
    fetched: int = 0
    stored: int = 0
    status: FetchStatus = FetchStatus.NO_DATA


class RunSummary(BaseModel):
    """Aggregate of the log entries of one orchestration pass."""
    category: str
    pipeline: Optional[str] = None
    total_fetched: int = 0
    total_stored: int = 0
    per_source: dict[str, SourceBreakdown] = Field(default_factory=dict)
    entries: list[FetchLogEntry] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    duration_ms: int = 0

    @classmethod
    def from_entries(
        cls,
        category: str,
        entries: list[FetchLogEntry],
        started_at: datetime,
        duration_ms: int,
        pipeline: Optional[str] = None,
    ) -> "RunSummary":
        """Aggregate entries; the result does not depend on their order."""
        per_source: dict[str, SourceBreakdown] = {}
        for entry in entries:
            breakdown = per_source.setdefault(entry.source_name, SourceBreakdown())
            breakdown.fetched += entry.articles_fetched
            breakdown.stored += entry.articles_stored
            if entry.status == FetchStatus.ERROR or breakdown.status == FetchStatus.ERROR:
                breakdown.status = FetchStatus.ERROR
            elif entry.status == FetchStatus.SUCCESS:
                breakdown.status = FetchStatus.SUCCESS

        return cls(
            category=category,
            pipeline=pipeline,
            total_fetched=sum(e.articles_fetched for e in entries),
            total_stored=sum(e.articles_stored for e in entries),
            per_source=per_source,
            entries=sorted(entries, key=lambda e: e.sequence),
            started_at=started_at,
            duration_ms=duration_ms,
        )


# =============================================================================
# Operation results
# =============================================================================

class IngestResult(BaseModel):
    """Result of an Ingest call for one category."""
    success: bool
    category: str
    total_fetched: int = 0
    total_stored: int = 0
    logs: list[FetchLogEntry] = Field(default_factory=list)
    duration_ms: int = 0
    error: Optional[str] = None


class PurgeAndRefreshResult(BaseModel):
    """Result of a purge-then-refill maintenance run."""
    success: bool
    removed: int = 0
    articles_added: int = 0
    per_pipeline_breakdown: dict[str, int] = Field(default_factory=dict)
    duplicates_cleaned: int = 0
    freshness_updated: int = 0
    duration_ms: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
    error: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)
