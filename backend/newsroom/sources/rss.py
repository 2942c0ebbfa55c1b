"""
RSS/Atom feed aggregation for news outlets.

Feeds are parsed incrementally with ElementTree.iterparse, so a feed that
breaks half-way still yields the items that came before the damage.
"""

import asyncio
import io
import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional
from xml.etree import ElementTree

import httpx

from newsroom.core.errors import IngestionError, NetworkError, ParseError
from newsroom.sources.base import PartialParse, RawItem, SourceAdapter
from newsroom.sources.html import first_image_src, strip_html

logger = logging.getLogger(__name__)

RSS_FEEDS: dict[str, list[dict]] = {
    "general": [
        {"name": "BBC World", "url": "https://feeds.bbci.co.uk/news/world/rss.xml"},
        {"name": "NPR News", "url": "https://feeds.npr.org/1001/rss.xml"},
        {"name": "Al Jazeera", "url": "https://www.aljazeera.com/xml/rss/all.xml"},
        {"name": "The Guardian World", "url": "https://www.theguardian.com/world/rss"},
    ],
    "politics": [
        {"name": "Politico", "url": "https://www.politico.com/rss/politics.xml"},
        {"name": "The Hill", "url": "https://thehill.com/feed/"},
        {"name": "BBC Politics", "url": "https://feeds.bbci.co.uk/news/politics/rss.xml"},
    ],
    "technology": [
        {"name": "BBC Tech", "url": "https://feeds.bbci.co.uk/news/technology/rss.xml"},
        {"name": "TechCrunch", "url": "https://techcrunch.com/feed/"},
        {"name": "The Verge", "url": "https://www.theverge.com/rss/index.xml"},
        {"name": "Ars Technica", "url": "https://feeds.arstechnica.com/arstechnica/index"},
    ],
    "business": [
        {"name": "CNBC Top News", "url": "https://www.cnbc.com/id/100003114/device/rss/rss.html"},
        {"name": "BBC Business", "url": "https://feeds.bbci.co.uk/news/business/rss.xml"},
        {"name": "Fortune", "url": "https://fortune.com/feed/"},
    ],
    "health": [
        {"name": "BBC Health", "url": "https://feeds.bbci.co.uk/news/health/rss.xml"},
        {"name": "STAT News", "url": "https://www.statnews.com/feed/"},
    ],
    "sports": [
        {"name": "ESPN Sports", "url": "https://www.espn.com/espn/rss/news"},
        {"name": "BBC Sport", "url": "https://feeds.bbci.co.uk/sport/rss.xml"},
    ],
    "entertainment": [
        {"name": "Variety", "url": "https://variety.com/feed/"},
        {"name": "The Guardian Culture", "url": "https://www.theguardian.com/culture/rss"},
    ],
    "science": [
        {"name": "BBC Science", "url": "https://feeds.bbci.co.uk/news/science_and_environment/rss.xml"},
        {"name": "Quanta Magazine", "url": "https://www.quantamagazine.org/feed/"},
    ],
}

# XML namespaces
ATOM_NS = "{http://www.w3.org/2005/Atom}"
DC_NS = "{http://purl.org/dc/elements/1.1/}"
CONTENT_NS = "{http://purl.org/rss/1.0/modules/content/}"
MEDIA_NS = "{http://search.yahoo.com/mrss/}"

MAX_CONTENT_CHARS = 2000


def rss_category(category: str) -> Optional[str]:
    return category if category in RSS_FEEDS else None


class RSSAdapter(SourceAdapter):
    """
    RSS/Atom feed aggregator.

    Fetches every feed configured for a category concurrently and
    normalizes entries to RawItem.
    """

    name = "rss"

    def __init__(self, feeds: Optional[dict[str, list[dict]]] = None, **kwargs):
        super().__init__(**kwargs)
        self.feeds = feeds if feeds is not None else RSS_FEEDS

    async def _fetch_items(self, category: str, limit: int) -> list[RawItem]:
        feeds = self.feeds.get(category, [])
        if not feeds:
            return []

        async with self.client() as client:
            tasks = [self._fetch_feed(client, feed, category) for feed in feeds]
            results = await asyncio.gather(*tasks, return_exceptions=True)

        items: list[RawItem] = []
        errors: list[IngestionError] = []
        for feed, result in zip(feeds, results):
            if isinstance(result, IngestionError):
                logger.warning(f"Feed {feed['name']} failed: {result}")
                errors.append(result)
                continue
            if isinstance(result, BaseException):
                # httpx errors are per-feed failures, anything else surfaces
                if not isinstance(result, httpx.HTTPError):
                    raise result
                logger.warning(f"Feed {feed['name']} failed: {result!r}")
                errors.append(NetworkError(f"{feed['name']}: {result!r}"))
                continue
            feed_items, parse_error = result
            items.extend(feed_items)
            if parse_error:
                errors.append(parse_error)

        # Newest first, so the limit keeps the freshest stories
        items.sort(key=lambda i: i.published_at.timestamp() if i.published_at else 0, reverse=True)
        items = items[:limit]

        if not items and errors:
            raise errors[0]
        parse_errors = [e for e in errors if isinstance(e, ParseError)]
        if parse_errors:
            raise PartialParse(items, parse_errors[0])
        return items

    async def _fetch_feed(
        self,
        client,
        feed: dict,
        category: str,
    ) -> tuple[list[RawItem], Optional[ParseError]]:
        """Fetch and parse a single feed."""
        response = await self._request(
            client,
            "GET",
            feed["url"],
            headers={"Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml"},
        )
        items, error = self.parse_feed(response.content, feed["name"], category)
        logger.debug(f"Fetched {len(items)} items from {feed['name']}")
        return items, error

    def parse_feed(
        self,
        xml_content: bytes | str,
        source_name: str,
        category: Optional[str] = None,
    ) -> tuple[list[RawItem], Optional[ParseError]]:
        """
        Stream-parse an RSS 2.0 or Atom document.

        Returns the items parsed so far and, if the document is malformed,
        the ParseError that stopped parsing.
        """
        if isinstance(xml_content, str):
            xml_content = xml_content.encode("utf-8")

        items: list[RawItem] = []
        try:
            for _, elem in ElementTree.iterparse(io.BytesIO(xml_content), events=("end",)):
                if elem.tag == "item":
                    item = self._parse_rss_item(elem, source_name, category)
                elif elem.tag == f"{ATOM_NS}entry":
                    item = self._parse_atom_entry(elem, source_name, category)
                else:
                    continue
                if item:
                    items.append(item)
                elem.clear()
        except ElementTree.ParseError as e:
            logger.warning(f"Malformed feed from {source_name} after {len(items)} items: {e}")
            return items, ParseError(f"{source_name}: {e}")

        return items, None

    def _parse_rss_item(
        self,
        item: ElementTree.Element,
        source_name: str,
        category: Optional[str],
    ) -> Optional[RawItem]:
        """Parse a single RSS item."""
        title = strip_html(item.findtext("title", ""))
        link = (item.findtext("link") or "").strip()
        if not title or not link:
            return None

        raw_description = item.findtext("description", "")
        raw_content = item.findtext(f"{CONTENT_NS}encoded", "")
        description = strip_html(raw_description)
        content = strip_html(raw_content) or description

        author = item.findtext("author") or item.findtext(f"{DC_NS}creator")

        return RawItem(
            title=title,
            url=link,
            source_name=source_name,
            description=description,
            content=content[:MAX_CONTENT_CHARS],
            url_to_image=self._media_image(item),
            thumbnail=self._media_thumbnail(item) or first_image_src(raw_content or raw_description),
            author=author.strip() if author else None,
            published_at=parse_rss_date(item.findtext("pubDate") or item.findtext(f"{DC_NS}date")),
            category=category,
            tags=[cat.text.strip() for cat in item.findall("category") if cat.text],
        )

    def _parse_atom_entry(
        self,
        entry: ElementTree.Element,
        source_name: str,
        category: Optional[str],
    ) -> Optional[RawItem]:
        """Parse a single Atom entry."""
        title = strip_html(entry.findtext(f"{ATOM_NS}title", ""))
        if not title:
            return None

        link = None
        for link_elem in entry.findall(f"{ATOM_NS}link"):
            if link_elem.get("rel", "alternate") == "alternate":
                link = link_elem.get("href")
                break
        if not link:
            return None

        raw_summary = entry.findtext(f"{ATOM_NS}summary", "")
        raw_content = entry.findtext(f"{ATOM_NS}content", "")
        description = strip_html(raw_summary)
        content = strip_html(raw_content) or description

        authors = [
            name for name in (a.findtext(f"{ATOM_NS}name") for a in entry.findall(f"{ATOM_NS}author"))
            if name
        ]

        published = entry.findtext(f"{ATOM_NS}published") or entry.findtext(f"{ATOM_NS}updated")

        return RawItem(
            title=title,
            url=link.strip(),
            source_name=source_name,
            description=description,
            content=content[:MAX_CONTENT_CHARS],
            url_to_image=self._media_image(entry),
            thumbnail=self._media_thumbnail(entry) or first_image_src(raw_content or raw_summary),
            author=", ".join(authors) or None,
            published_at=parse_atom_date(published),
            category=category,
            tags=[
                term for term in (c.get("term") or c.get("label") for c in entry.findall(f"{ATOM_NS}category"))
                if term
            ],
        )

    def _media_image(self, elem: ElementTree.Element) -> Optional[str]:
        for media in elem.findall(f"{MEDIA_NS}content"):
            if media.get("url") and media.get("medium", "image") == "image":
                return media.get("url")
        for enclosure in elem.findall("enclosure"):
            if enclosure.get("url") and enclosure.get("type", "").startswith("image/"):
                return enclosure.get("url")
        return None

    def _media_thumbnail(self, elem: ElementTree.Element) -> Optional[str]:
        thumb = elem.find(f"{MEDIA_NS}thumbnail")
        if thumb is None:
            thumb = elem.find(f"{MEDIA_NS}group/{MEDIA_NS}thumbnail")
        return thumb.get("url") if thumb is not None else None


def parse_rss_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse RSS date format (RFC 822), falling back to ISO."""
    if not date_str:
        return None

    try:
        return parsedate_to_datetime(date_str.strip())
    except (ValueError, TypeError):
        pass

    return parse_atom_date(date_str)


def parse_atom_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse Atom/ISO date format."""
    if not date_str:
        return None

    date_str = date_str.strip()
    try:
        return datetime.fromisoformat(date_str.replace("Z", "+00:00"))
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(date_str[:19])
    except ValueError:
        return None
