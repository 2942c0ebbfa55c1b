"""
SQLAlchemy database models for the ingestion store.
Uses SQLAlchemy 2.0 async patterns.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncAttrs, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from newsroom.models.domain import utcnow


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Base
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Articles
# =============================================================================

class DBArticle(Base):
    """Stored article with all metadata and scores."""
    __tablename__ = "articles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # Identity (never changes once inserted)
    url: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # Core metadata
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    content: Mapped[Optional[str]] = mapped_column(Text)
    url_to_image: Mapped[Optional[str]] = mapped_column(Text)
    source_name: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[Optional[str]] = mapped_column(String(255))
    published_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="general")
    language: Mapped[str] = mapped_column(String(8), default="en")

    # Derived
    topic_tags_json: Mapped[Optional[list]] = mapped_column(JSON)
    entities_json: Mapped[Optional[list]] = mapped_column(JSON)
    reading_time_minutes: Mapped[int] = mapped_column(Integer, default=1)

    # Scores
    content_quality_score: Mapped[float] = mapped_column(Float, default=0.5)
    credibility_score: Mapped[float] = mapped_column(Float, default=0.5)
    bias_score: Mapped[float] = mapped_column(Float, default=0.5)
    sentiment_score: Mapped[float] = mapped_column(Float, default=0.5)
    engagement_score: Mapped[int] = mapped_column(Integer, default=0)
    freshness_score: Mapped[float] = mapped_column(Float, default=1.0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_articles_published_at", "published_at"),
        Index("ix_articles_category_published", "category", "published_at"),
    )


# =============================================================================
# Run logs (append-only)
# =============================================================================

class DBFetchLog(Base):
    """One row per adapter invocation."""
    __tablename__ = "fetch_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    pipeline: Mapped[Optional[str]] = mapped_column(String(100))
    sequence: Mapped[int] = mapped_column(Integer, default=0)
    articles_fetched: Mapped[int] = mapped_column(Integer, default=0)
    articles_stored: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    execution_time_ms: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_fetch_logs_timestamp", "timestamp"),
    )


class DBRunSummary(Base):
    """One row per orchestration pass."""
    __tablename__ = "run_summaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    pipeline: Mapped[Optional[str]] = mapped_column(String(100))
    total_fetched: Mapped[int] = mapped_column(Integer, default=0)
    total_stored: Mapped[int] = mapped_column(Integer, default=0)
    per_source_json: Mapped[Optional[dict]] = mapped_column(JSON)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)


# =============================================================================
# Database Connection
# =============================================================================

class Database:
    """Database connection manager."""

    def __init__(self, database_url: str, echo: bool = False):
        self.url = database_url
        connect_args = {}
        if database_url.startswith("sqlite"):
            # Concurrent pipelines write to the same file
            connect_args["timeout"] = 30
        self.engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args=connect_args,
        )
        self.async_session = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def create_tables(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()
