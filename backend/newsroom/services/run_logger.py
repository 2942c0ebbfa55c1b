"""
Append-only sink for fetch log entries and run summaries.
"""
import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from newsroom.core.errors import PersistenceError
from newsroom.models.database import Database, DBFetchLog, DBRunSummary
from newsroom.models.domain import FetchLogEntry, FetchStatus, RunSummary

logger = structlog.get_logger(__name__)


class RunLogger:
    """Writes observability records; there is no update or delete path."""

    def __init__(self, database: Database):
        self.database = database

    async def append_entry(self, entry: FetchLogEntry) -> None:
        log = logger.warning if entry.status == FetchStatus.ERROR else logger.info
        log(
            "source fetched",
            source=entry.source_name,
            category=entry.category,
            pipeline=entry.pipeline,
            status=entry.status.value,
            fetched=entry.articles_fetched,
            stored=entry.articles_stored,
            error=entry.error_message,
            elapsed_ms=entry.execution_time_ms,
        )

        row = DBFetchLog(
            source_name=entry.source_name,
            category=entry.category,
            pipeline=entry.pipeline,
            sequence=entry.sequence,
            articles_fetched=entry.articles_fetched,
            articles_stored=entry.articles_stored,
            status=entry.status.value,
            error_message=entry.error_message,
            execution_time_ms=entry.execution_time_ms,
            timestamp=entry.timestamp,
        )
        await self._add(row)

    async def append_summary(self, summary: RunSummary) -> None:
        logger.info(
            "run completed",
            category=summary.category,
            pipeline=summary.pipeline,
            fetched=summary.total_fetched,
            stored=summary.total_stored,
            duration_ms=summary.duration_ms,
        )

        row = DBRunSummary(
            category=summary.category,
            pipeline=summary.pipeline,
            total_fetched=summary.total_fetched,
            total_stored=summary.total_stored,
            per_source_json={
                name: breakdown.model_dump(mode="json")
                for name, breakdown in summary.per_source.items()
            },
            started_at=summary.started_at,
            duration_ms=summary.duration_ms,
        )
        await self._add(row)

    async def recent(self, limit: int = 50) -> list[FetchLogEntry]:
        """Most recent entries first."""
        try:
            async with self.database.async_session() as session:
                result = await session.execute(
                    select(DBFetchLog)
                    .order_by(DBFetchLog.timestamp.desc(), DBFetchLog.id.desc())
                    .limit(limit)
                )
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"log read failed: {e}")

        return [
            FetchLogEntry(
                source_name=row.source_name,
                category=row.category,
                pipeline=row.pipeline,
                sequence=row.sequence,
                articles_fetched=row.articles_fetched,
                articles_stored=row.articles_stored,
                status=FetchStatus(row.status),
                error_message=row.error_message,
                execution_time_ms=row.execution_time_ms,
                timestamp=row.timestamp,
            )
            for row in rows
        ]

    async def _add(self, row) -> None:
        try:
            async with self.database.async_session() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"log write failed: {e}")
