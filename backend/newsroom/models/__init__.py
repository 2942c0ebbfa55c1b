"""
Domain and database models.
"""
from newsroom.models.domain import (
    ArticleScores,
    CanonicalArticle,
    FetchLogEntry,
    FetchStatus,
    IngestResult,
    PurgeAndRefreshResult,
    RunSummary,
    SourceBreakdown,
)

__all__ = [
    "ArticleScores",
    "CanonicalArticle",
    "FetchLogEntry",
    "FetchStatus",
    "IngestResult",
    "PurgeAndRefreshResult",
    "RunSummary",
    "SourceBreakdown",
]
