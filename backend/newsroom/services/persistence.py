"""
Persistence gateway for canonical articles.

All writes go through single statements: the upsert is one
INSERT ... ON CONFLICT DO UPDATE, so concurrent pipelines racing on the
same url never produce two rows and never need an application lock.
"""
import math
from collections import defaultdict
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from newsroom.core.errors import PersistenceError
from newsroom.models.database import Database, DBArticle, new_id
from newsroom.models.domain import ArticleScores, CanonicalArticle, utcnow
from newsroom.services.deduplicator import canonical_url

logger = structlog.get_logger(__name__)

# Freshness never reaches zero so "never refreshed" stays distinguishable
FRESHNESS_FLOOR = 0.0001


class ArticleStore:
    """Article table operations. Every SQLAlchemy failure becomes PersistenceError."""

    def __init__(self, database: Database):
        self.database = database

    def _insert(self):
        if self.database.dialect == "postgresql":
            return pg_insert(DBArticle)
        return sqlite_insert(DBArticle)

    async def upsert(self, article: CanonicalArticle) -> str:
        """
        Insert the article, or refresh the mutable fields of the row with the
        same url. Returns the row id, which never changes after insert.

        Preserved on conflict: id, title, url, content hash, created_at and
        engagement. Description and image only overwrite when non-empty.
        """
        now = utcnow()
        values = {
            "id": new_id(),
            "url": article.url,
            "content_hash": article.content_hash,
            "title": article.title,
            "description": article.description,
            "content": article.content,
            "url_to_image": article.url_to_image,
            "source_name": article.source_name,
            "author": article.author,
            "published_at": article.published_at,
            "category": article.category,
            "language": article.language,
            "topic_tags_json": list(article.topic_tags),
            "entities_json": list(article.entities),
            "reading_time_minutes": article.reading_time_minutes,
            "content_quality_score": article.scores.content_quality,
            "credibility_score": article.scores.credibility,
            "bias_score": article.scores.bias,
            "sentiment_score": article.scores.sentiment,
            "engagement_score": article.scores.engagement,
            "freshness_score": article.freshness_score,
            "created_at": now,
            "updated_at": now,
        }

        stmt = self._insert().values(**values)
        excluded = stmt.excluded
        table = DBArticle.__table__
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.url],
            set_={
                "content_quality_score": excluded.content_quality_score,
                "credibility_score": excluded.credibility_score,
                "bias_score": excluded.bias_score,
                "sentiment_score": excluded.sentiment_score,
                "description": func.coalesce(func.nullif(excluded.description, ""), table.c.description),
                "url_to_image": func.coalesce(func.nullif(excluded.url_to_image, ""), table.c.url_to_image),
                "content": func.coalesce(func.nullif(excluded.content, ""), table.c.content),
                "topic_tags_json": excluded.topic_tags_json,
                "entities_json": excluded.entities_json,
                "reading_time_minutes": excluded.reading_time_minutes,
                "updated_at": now,
            },
        ).returning(table.c.id)

        try:
            async with self.database.async_session() as session:
                result = await session.execute(stmt)
                article_id = result.scalar_one()
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"upsert failed for {article.url}: {e.__class__.__name__}: {e}")

        return article_id

    async def find_by_hash_or_url(self, content_hash: str, url: str) -> Optional[CanonicalArticle]:
        try:
            async with self.database.async_session() as session:
                result = await session.execute(
                    select(DBArticle)
                    .where(or_(DBArticle.content_hash == content_hash, DBArticle.url == url))
                    .limit(1)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"lookup failed: {e}")

        return self._to_domain(row) if row else None

    async def get(self, article_id: str) -> Optional[CanonicalArticle]:
        try:
            async with self.database.async_session() as session:
                row = await session.get(DBArticle, article_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"get failed: {e}")
        return self._to_domain(row) if row else None

    async def count(self) -> int:
        try:
            async with self.database.async_session() as session:
                result = await session.execute(select(func.count()).select_from(DBArticle))
                return result.scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"count failed: {e}")

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete articles published before ``cutoff`` (naive UTC)."""
        return await self._delete(DBArticle.published_at < cutoff)

    async def delete_all(self) -> int:
        return await self._delete(None)

    async def _delete(self, condition) -> int:
        stmt = delete(DBArticle)
        if condition is not None:
            stmt = stmt.where(condition)
        try:
            async with self.database.async_session() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"delete failed: {e}")

        removed = result.rowcount or 0
        logger.info("articles deleted", removed=removed, all=condition is None)
        return removed

    async def cleanup_duplicates(self) -> int:
        """
        Collapse rows whose canonical urls coincide.

        The oldest row of each group survives and inherits the highest
        engagement of the group. Returns the number of rows deleted.
        """
        try:
            async with self.database.async_session() as session:
                result = await session.execute(
                    select(
                        DBArticle.id,
                        DBArticle.url,
                        DBArticle.created_at,
                        DBArticle.engagement_score,
                    )
                )
                groups: dict[str, list] = defaultdict(list)
                for row in result.all():
                    groups[canonical_url(row.url)].append(row)

                doomed: list[str] = []
                for rows in groups.values():
                    if len(rows) < 2:
                        continue
                    rows.sort(key=lambda r: (r.created_at, r.id))
                    keeper, *extras = rows
                    engagement = max(r.engagement_score or 0 for r in rows)
                    if engagement > (keeper.engagement_score or 0):
                        await session.execute(
                            update(DBArticle)
                            .where(DBArticle.id == keeper.id)
                            .values(engagement_score=engagement)
                        )
                    doomed.extend(r.id for r in extras)

                if doomed:
                    await session.execute(delete(DBArticle).where(DBArticle.id.in_(doomed)))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"duplicate cleanup failed: {e}")

        logger.info("duplicates cleaned", removed=len(doomed), groups=len(groups))
        return len(doomed)

    async def recompute_freshness(self, half_life_hours: float = 24.0, now: Optional[datetime] = None) -> int:
        """
        Recompute ``freshness_score`` as exponential decay of article age.

        An article ``half_life_hours`` old scores 0.5; future-dated ones 1.0.
        Returns the number of rows updated.
        """
        now = now or utcnow()
        try:
            async with self.database.async_session() as session:
                result = await session.execute(select(DBArticle.id, DBArticle.published_at))
                updates = []
                for row in result.all():
                    age_hours = max(0.0, (now - row.published_at).total_seconds() / 3600)
                    freshness = math.pow(0.5, age_hours / half_life_hours)
                    updates.append({"id": row.id, "freshness_score": max(FRESHNESS_FLOOR, freshness)})

                if updates:
                    await session.execute(update(DBArticle), updates)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"freshness recompute failed: {e}")

        logger.info("freshness recomputed", updated=len(updates), half_life_hours=half_life_hours)
        return len(updates)

    def _to_domain(self, row: DBArticle) -> CanonicalArticle:
        return CanonicalArticle(
            id=row.id,
            title=row.title,
            description=row.description or "",
            content=row.content or "",
            url=row.url,
            url_to_image=row.url_to_image,
            source_name=row.source_name,
            author=row.author,
            published_at=row.published_at,
            category=row.category or "general",
            language=row.language or "en",
            topic_tags=row.topic_tags_json or [],
            entities=row.entities_json or [],
            content_hash=row.content_hash,
            reading_time_minutes=max(1, row.reading_time_minutes or 1),
            scores=ArticleScores(
                content_quality=row.content_quality_score,
                credibility=row.credibility_score,
                bias=row.bias_score,
                sentiment=row.sentiment_score,
                engagement=row.engagement_score or 0,
            ),
            freshness_score=row.freshness_score,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
