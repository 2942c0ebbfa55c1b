"""
Normalization of raw source items into canonical articles.
"""
import hashlib
import math
import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from newsroom.core.categories import match_topics, normalize_category
from newsroom.models.domain import CanonicalArticle, utcnow
from newsroom.sources.base import RawItem

MAX_TITLE_CHARS = 500
MAX_DESCRIPTION_CHARS = 1000
WORDS_PER_MINUTE = 200

MAX_ENTITIES = 10
ENTITY_PATTERN = re.compile(r"\b[A-Z][a-z]{2,}\b")
ENTITY_STOPWORDS = {
    "The", "This", "That", "These", "Those", "And", "But", "For", "With",
    "From", "After", "Before", "When", "What", "How", "Why", "Who", "Its",
    "Our", "Their", "His", "Her", "New", "More", "Most", "Some", "Here",
}


def content_hash(title: str, url: str) -> str:
    """Stable dedup identity of an article: truncated SHA-256 of title and url."""
    digest = hashlib.sha256(f"{title.strip()}\n{url.strip()}".encode("utf-8"))
    return digest.hexdigest()[:32]


def clean_text(value: Optional[str]) -> str:
    return " ".join(value.split()) if value else ""


def to_utc_naive(value: Optional[datetime]) -> datetime:
    """Convert to naive UTC; naive inputs are taken to be UTC already."""
    if value is None:
        return utcnow()
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def reading_time_minutes(text: str) -> int:
    return max(1, math.ceil(len(text.split()) / WORDS_PER_MINUTE))


def extract_entities(text: str) -> list[str]:
    """Capitalized words, minus common sentence starters, in first-seen order."""
    entities: list[str] = []
    for word in ENTITY_PATTERN.findall(text):
        if word in ENTITY_STOPWORDS or word in entities:
            continue
        entities.append(word)
        if len(entities) >= MAX_ENTITIES:
            break
    return entities


class Normalizer:
    """Converts RawItems into CanonicalArticle drafts, or rejects them."""

    def normalize(
        self,
        raw: RawItem,
        source_name: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Optional[CanonicalArticle]:
        """
        Normalize one item.

        Returns None for items missing a title, a usable url, or both
        content and description. ``source_name`` is the fallback label when
        the item carries none; ``category`` is the pipeline category.
        """
        title = clean_text(raw.title)[:MAX_TITLE_CHARS]
        url = (raw.url or "").strip()
        if not title or not url:
            return None
        if urlparse(url).scheme not in ("http", "https"):
            return None

        description = clean_text(raw.description)[:MAX_DESCRIPTION_CHARS]
        content = (raw.content or "").strip()
        if not content and not description:
            return None

        text = f"{title} {description}"

        return CanonicalArticle(
            title=title,
            description=description,
            content=content or description,
            url=url,
            url_to_image=raw.url_to_image or raw.thumbnail or raw.page_image or None,
            source_name=clean_text(raw.source_name) or source_name or "unknown",
            author=clean_text(raw.author) or None,
            published_at=to_utc_naive(raw.published_at),
            category=normalize_category(category or raw.category),
            topic_tags=match_topics(text),
            entities=extract_entities(text),
            content_hash=content_hash(title, url),
            reading_time_minutes=reading_time_minutes(content or description),
        )
