"""
Firecrawl scrape adapter.
API docs: https://docs.firecrawl.dev/api-reference/endpoint/scrape

Each seed page is sent to the scrape endpoint, which returns the page's
main content as markdown plus page metadata.
"""
import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from newsroom.core.errors import IngestionError, NetworkError, ParseError
from newsroom.sources.base import RawItem, SourceAdapter, text_field
from newsroom.sources.html import extract_meta_image
from newsroom.sources.newsapi import parse_iso_datetime

logger = logging.getLogger(__name__)

SEED_URLS: dict[str, list[str]] = {
    "general": [
        "https://www.reuters.com/world/",
        "https://apnews.com/world-news",
        "https://www.bbc.com/news",
    ],
    "technology": [
        "https://techcrunch.com",
        "https://www.theverge.com",
        "https://arstechnica.com",
    ],
    "business": [
        "https://www.bloomberg.com",
        "https://www.cnbc.com",
        "https://www.wsj.com",
    ],
    "science": [
        "https://www.nature.com/news",
        "https://www.newscientist.com",
    ],
    "sports": [
        "https://www.espn.com",
        "https://www.bbc.com/sport",
    ],
    "entertainment": [
        "https://variety.com",
        "https://www.hollywoodreporter.com",
    ],
}

# Keeps scrape credits bounded per category run
MAX_PAGES_PER_CALL = 3


def scrape_category(category: str) -> Optional[str]:
    return category if category in SEED_URLS else None


def domain_name(url: str) -> str:
    """Host of ``url`` without a leading www."""
    host = urlparse(url).hostname or ""
    return host[4:] if host.startswith("www.") else host or "unknown"


def first_paragraph(markdown: str, max_chars: int = 300) -> str:
    """First prose paragraph of a markdown document."""
    for block in markdown.split("\n\n"):
        block = block.strip()
        if not block or block.startswith(("#", "!", "[", "|", "-", "*", ">")):
            continue
        return " ".join(block.split())[:max_chars]
    return ""


class FirecrawlScrapeAdapter(SourceAdapter):
    """Scrapes news pages through Firecrawl and maps each page to a RawItem."""

    BASE_URL = "https://api.firecrawl.dev/v1"
    name = "firecrawl"
    requires_credentials = True

    def __init__(
        self,
        api_key: Optional[str],
        seed_urls: Optional[dict[str, list[str]]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.seed_urls = seed_urls if seed_urls is not None else SEED_URLS

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _fetch_items(self, category: str, limit: int) -> list[RawItem]:
        urls = self.seed_urls.get(category, [])[: min(limit, MAX_PAGES_PER_CALL)]
        if not urls:
            return []

        async with self.client() as client:
            results = await asyncio.gather(
                *(self._scrape(client, url, category) for url in urls),
                return_exceptions=True,
            )

        items: list[RawItem] = []
        errors: list[IngestionError] = []
        for url, result in zip(urls, results):
            if isinstance(result, (IngestionError, httpx.HTTPError)):
                logger.warning(f"Scrape of {url} failed: {result!r}")
                if not isinstance(result, IngestionError):
                    result = NetworkError(f"{url}: {result!r}")
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                items.append(result)

        if not items and errors:
            raise errors[0]
        return items

    async def _scrape(self, client: httpx.AsyncClient, url: str, category: str) -> Optional[RawItem]:
        response = await self._request(
            client,
            "POST",
            f"{self.BASE_URL}/scrape",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "url": url,
                "formats": ["markdown", "html"],
                "onlyMainContent": True,
            },
        )

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"invalid JSON: {e}")

        if not isinstance(payload, dict):
            raise ParseError("unexpected payload shape")
        if not payload.get("success", False):
            raise NetworkError(f"Firecrawl error: {payload.get('error', 'scrape failed')}")

        return self.parse_page(payload.get("data") or {}, url, category)

    def parse_page(self, data: dict, seed_url: str, category: Optional[str] = None) -> Optional[RawItem]:
        """Map one scrape result; pages without a title or body are dropped."""
        if not isinstance(data, dict):
            return None
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}

        def meta(*keys: str) -> Optional[str]:
            for key in keys:
                value = text_field(metadata.get(key))
                if value:
                    return value
            return None

        markdown = text_field(data.get("markdown")) or ""
        title = meta("title", "ogTitle")
        if not title or not markdown:
            return None

        page_url = meta("sourceURL", "url") or seed_url

        return RawItem(
            title=title,
            url=page_url,
            source_name=domain_name(seed_url),
            description=meta("description") or first_paragraph(markdown),
            content=markdown,
            url_to_image=meta("ogImage", "image"),
            page_image=extract_meta_image(text_field(data.get("html"))),
            author=meta("author"),
            published_at=parse_iso_datetime(meta("publishedTime", "article:published_time")),
            category=category,
        )
