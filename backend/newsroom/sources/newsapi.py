"""
NewsAPI adapter for top headlines.
API docs: https://newsapi.org/docs/endpoints/top-headlines
"""
import logging
from datetime import datetime
from typing import Optional

from newsroom.core.errors import NetworkError, ParseError
from newsroom.sources.base import RawItem, SourceAdapter, text_field

logger = logging.getLogger(__name__)

# NewsAPI has no politics category, political stories live under general
NEWSAPI_CATEGORIES = {
    "general": "general",
    "politics": "general",
    "technology": "technology",
    "business": "business",
    "health": "health",
    "sports": "sports",
    "entertainment": "entertainment",
    "science": "science",
}

REMOVED_MARKER = "[Removed]"


def newsapi_category(category: str) -> Optional[str]:
    return NEWSAPI_CATEGORIES.get(category, "general")


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, tolerating a trailing Z."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class NewsAPIAdapter(SourceAdapter):
    """Adapter for category-filtered top headlines from NewsAPI."""

    BASE_URL = "https://newsapi.org/v2"
    name = "newsapi"
    requires_credentials = True

    def __init__(self, api_key: Optional[str], country: str = "us", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.country = country

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _fetch_items(self, category: str, limit: int) -> list[RawItem]:
        params = {
            "category": newsapi_category(category),
            "country": self.country,
            "pageSize": min(limit, 100),
            "apiKey": self.api_key,
        }

        async with self.client() as client:
            response = await self._request(client, "GET", f"{self.BASE_URL}/top-headlines", params=params)

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"invalid JSON: {e}")

        if not isinstance(data, dict):
            raise ParseError("unexpected payload shape")
        if data.get("status") != "ok":
            raise NetworkError(f"NewsAPI error: {data.get('message') or data.get('code')}")

        items = []
        for article in data.get("articles") or []:
            item = self._parse_article(article, category)
            if item:
                items.append(item)

        logger.debug(f"NewsAPI returned {len(items)} usable articles for {category}")
        return items

    def _parse_article(self, article: object, category: str) -> Optional[RawItem]:
        """Map one NewsAPI article; unusable entries are dropped."""
        if not isinstance(article, dict):
            return None

        title = text_field(article.get("title"))
        url = text_field(article.get("url"))
        if not title or title == REMOVED_MARKER or not url:
            return None

        description = text_field(article.get("description"))
        if description == REMOVED_MARKER:
            description = None

        source = article.get("source") or {}
        source_name = text_field(source.get("name")) if isinstance(source, dict) else None

        return RawItem(
            title=title,
            url=url,
            source_name=source_name or "NewsAPI",
            description=description,
            content=text_field(article.get("content")) or description,
            url_to_image=text_field(article.get("urlToImage")),
            author=text_field(article.get("author")),
            published_at=parse_iso_datetime(text_field(article.get("publishedAt"))),
            category=category,
        )
