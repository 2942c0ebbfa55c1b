"""
The Guardian Open Platform adapter.
API docs: https://open-platform.theguardian.com/documentation/search
"""
import logging
from typing import Optional

from newsroom.core.errors import NetworkError, ParseError
from newsroom.sources.base import RawItem, SourceAdapter, text_field
from newsroom.sources.html import strip_html
from newsroom.sources.newsapi import parse_iso_datetime

logger = logging.getLogger(__name__)

GUARDIAN_SECTIONS = {
    "general": "world",
    "politics": "politics",
    "technology": "technology",
    "business": "business",
    "health": "society",
    "sports": "sport",
    "entertainment": "culture",
    "science": "science",
}

MAX_CONTENT_CHARS = 2000


def guardian_section(category: str) -> Optional[str]:
    return GUARDIAN_SECTIONS.get(category)


class GuardianAdapter(SourceAdapter):
    """Adapter for section-filtered search results from The Guardian."""

    BASE_URL = "https://content.guardianapis.com"
    name = "guardian"
    requires_credentials = True

    def __init__(self, api_key: Optional[str], **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _fetch_items(self, category: str, limit: int) -> list[RawItem]:
        section = GUARDIAN_SECTIONS.get(category, category)
        params = {
            "section": section,
            "show-fields": "headline,trailText,body,thumbnail,byline",
            "order-by": "newest",
            "page-size": min(limit, 50),
            "api-key": self.api_key,
        }

        async with self.client() as client:
            response = await self._request(client, "GET", f"{self.BASE_URL}/search", params=params)

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"invalid JSON: {e}")

        body = data.get("response") if isinstance(data, dict) else None
        if not isinstance(body, dict):
            raise ParseError("missing response envelope")
        if body.get("status") != "ok":
            raise NetworkError(f"Guardian error: {body.get('message', body.get('status'))}")

        items = []
        for result in body.get("results") or []:
            item = self._parse_result(result, category)
            if item:
                items.append(item)

        logger.debug(f"Guardian returned {len(items)} articles for section {section}")
        return items

    def _parse_result(self, result: object, category: str) -> Optional[RawItem]:
        if not isinstance(result, dict):
            return None

        fields = result.get("fields")
        if not isinstance(fields, dict):
            fields = {}
        title = text_field(fields.get("headline")) or text_field(result.get("webTitle"))
        url = text_field(result.get("webUrl"))
        if not title or not url:
            return None

        description = strip_html(text_field(fields.get("trailText")) or "")
        content = strip_html(text_field(fields.get("body")) or "")[:MAX_CONTENT_CHARS] or description

        return RawItem(
            title=title,
            url=url,
            source_name="The Guardian",
            description=description,
            content=content,
            thumbnail=text_field(fields.get("thumbnail")),
            author=text_field(fields.get("byline")) or "The Guardian",
            published_at=parse_iso_datetime(text_field(result.get("webPublicationDate"))),
            category=category,
            tags=[result["sectionId"]] if text_field(result.get("sectionId")) else [],
        )
