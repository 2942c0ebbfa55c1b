"""
Tests for source adapters.

HTTP is served by httpx.MockTransport, so no test touches the network.
"""

import json

import httpx
import pytest

from newsroom.core.errors import ConfigError, NetworkError, ParseError
from newsroom.sources.base import SourceDescriptor
from newsroom.sources.guardian import GuardianAdapter, guardian_section
from newsroom.sources.html import extract_meta_image, first_image_src, strip_html
from newsroom.sources.mock import MockNewsAdapter
from newsroom.sources.newsapi import NewsAPIAdapter, newsapi_category
from newsroom.sources.rate_limiter import RateLimiter
from newsroom.sources.rss import RSSAdapter, parse_rss_date
from newsroom.sources.scrape import FirecrawlScrapeAdapter, domain_name, first_paragraph


# Sample RSS feed response
SAMPLE_RSS_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:media="http://search.yahoo.com/mrss/"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>BBC News - Technology</title>
    <item>
      <title>Chip shortage eases as new plants open</title>
      <link>https://www.bbc.co.uk/news/technology-1</link>
      <description><![CDATA[<p>Supply of <b>semiconductors</b> is recovering.</p>]]></description>
      <pubDate>Mon, 15 Jan 2024 09:00:00 GMT</pubDate>
      <dc:creator>Zoe Kleinman</dc:creator>
      <category>Technology</category>
      <media:thumbnail url="https://ichef.bbci.co.uk/thumb-1.jpg" width="240" height="135"/>
    </item>
    <item>
      <title>Regulators publish draft rules for app stores</title>
      <link>https://www.bbc.co.uk/news/technology-2</link>
      <description>Draft rules were published on Sunday.</description>
      <content:encoded><![CDATA[<p>Full text <img src="https://img.example.com/inline.jpg"/> here.</p>]]></content:encoded>
      <pubDate>Sun, 14 Jan 2024 15:00:00 GMT</pubDate>
      <media:content url="https://ichef.bbci.co.uk/full-2.jpg" medium="image"/>
    </item>
    <item>
      <title></title>
      <link>https://www.bbc.co.uk/news/untitled</link>
    </item>
  </channel>
</rss>
"""

# Sample Atom feed response
SAMPLE_ATOM_RESPONSE = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:media="http://search.yahoo.com/mrss/">
  <title>The Verge</title>
  <entry>
    <title>A new phone with a very large battery</title>
    <link rel="alternate" type="text/html" href="https://www.theverge.com/phones/1"/>
    <summary type="html">&lt;p&gt;Battery life is the headline feature.&lt;/p&gt;</summary>
    <published>2024-01-15T12:00:00-05:00</published>
    <author><name>Jane Doe</name></author>
    <category term="Phones"/>
    <media:thumbnail url="https://cdn.theverge.com/thumb.jpg"/>
  </entry>
</feed>
"""

# Two good items, then the document breaks off mid-item
TRUNCATED_RSS_RESPONSE = """<?xml version="1.0"?>
<rss version="2.0"><channel>
  <item><title>First complete story</title><link>https://example.com/a</link><description>One.</description></item>
  <item><title>Second complete story</title><link>https://example.com/b</link><description>Two.</description></item>
  <item><title>Third story is cut</title><link>https://example.com/c
"""


def json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"content-type": "application/json"})


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHtmlHelpers:
    """Tests for BeautifulSoup helpers."""

    def test_strip_html(self):
        assert strip_html("<p>Hello <b>world</b></p>\n\n<p>again</p>") == "Hello world again"
        assert strip_html("plain   text") == "plain text"
        assert strip_html(None) == ""

    def test_extract_meta_image(self):
        html = '<html><head><meta property="og:image" content=" https://img.example.com/og.jpg "></head></html>'
        assert extract_meta_image(html) == "https://img.example.com/og.jpg"

        twitter = '<meta name="twitter:image" content="https://img.example.com/tw.jpg">'
        assert extract_meta_image(twitter) == "https://img.example.com/tw.jpg"
        assert extract_meta_image("<p>no image</p>") is None

    def test_first_image_src(self):
        assert first_image_src('<p>x <img src="https://a/b.png"> y</p>') == "https://a/b.png"
        assert first_image_src("<p>none</p>") is None


class TestRSSAdapter:
    """Tests for the streaming RSS/Atom adapter."""

    def test_parse_rss(self):
        adapter = RSSAdapter()
        items, error = adapter.parse_feed(SAMPLE_RSS_RESPONSE, "BBC Tech", "technology")

        assert error is None
        assert len(items) == 2  # untitled item dropped

        first = items[0]
        assert first.title == "Chip shortage eases as new plants open"
        assert first.description == "Supply of semiconductors is recovering."
        assert first.author == "Zoe Kleinman"
        assert first.thumbnail == "https://ichef.bbci.co.uk/thumb-1.jpg"
        assert first.url_to_image is None
        assert first.tags == ["Technology"]
        assert first.published_at.year == 2024

        second = items[1]
        assert second.url_to_image == "https://ichef.bbci.co.uk/full-2.jpg"
        assert second.thumbnail == "https://img.example.com/inline.jpg"
        assert second.content == "Full text here."

    def test_parse_atom(self):
        adapter = RSSAdapter()
        items, error = adapter.parse_feed(SAMPLE_ATOM_RESPONSE, "The Verge", "technology")

        assert error is None
        assert len(items) == 1
        entry = items[0]
        assert entry.url == "https://www.theverge.com/phones/1"
        assert entry.description == "Battery life is the headline feature."
        assert entry.author == "Jane Doe"
        assert entry.thumbnail == "https://cdn.theverge.com/thumb.jpg"
        assert entry.tags == ["Phones"]
        assert entry.published_at.utcoffset().total_seconds() == -5 * 3600

    def test_truncated_feed_keeps_parsed_items(self):
        adapter = RSSAdapter()
        items, error = adapter.parse_feed(TRUNCATED_RSS_RESPONSE, "Broken Feed")

        assert [i.title for i in items] == ["First complete story", "Second complete story"]
        assert isinstance(error, ParseError)

    def test_parse_rss_date(self):
        assert parse_rss_date("Mon, 15 Jan 2024 09:00:00 GMT").hour == 9
        assert parse_rss_date("2024-01-15T09:00:00Z").day == 15
        assert parse_rss_date("not a date") is None
        assert parse_rss_date(None) is None

    async def test_fetch_survives_one_failing_feed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "good.example":
                return httpx.Response(200, content=SAMPLE_RSS_RESPONSE.encode())
            return httpx.Response(503)

        feeds = {
            "technology": [
                {"name": "Good Feed", "url": "https://good.example/rss"},
                {"name": "Down Feed", "url": "https://down.example/rss"},
            ]
        }
        async with mock_client(handler) as client:
            adapter = RSSAdapter(feeds=feeds, client=client)
            result = await adapter.fetch("technology", 10)

        assert result.ok
        assert len(result.items) == 2
        assert {i.source_name for i in result.items} == {"Good Feed"}

    async def test_fetch_all_feeds_failing_is_an_error(self):
        async with mock_client(lambda request: httpx.Response(500)) as client:
            adapter = RSSAdapter(feeds={"general": [{"name": "A", "url": "https://a.example/rss"}]}, client=client)
            result = await adapter.fetch("general", 10)

        assert result.items == []
        assert isinstance(result.error, NetworkError)
        assert result.error.source == "rss"

    async def test_fetch_partial_feed_returns_items_and_error(self):
        async with mock_client(lambda request: httpx.Response(200, content=TRUNCATED_RSS_RESPONSE.encode())) as client:
            adapter = RSSAdapter(feeds={"general": [{"name": "A", "url": "https://a.example/rss"}]}, client=client)
            result = await adapter.fetch("general", 10)

        assert len(result.items) == 2
        assert isinstance(result.error, ParseError)

    async def test_unknown_category_returns_nothing(self):
        adapter = RSSAdapter(feeds={})
        result = await adapter.fetch("science", 10)
        assert result.ok
        assert result.items == []


class TestNewsAPIAdapter:
    """Tests for the NewsAPI adapter."""

    async def test_fetch_maps_and_filters_articles(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return json_response({
                "status": "ok",
                "totalResults": 4,
                "articles": [
                    {
                        "source": {"id": "reuters", "name": "Reuters"},
                        "author": "Jane Smith",
                        "title": "Markets rally on rate hopes",
                        "description": "Stocks rose.",
                        "url": "https://www.reuters.com/markets/1",
                        "urlToImage": "https://img.reuters.com/1.jpg",
                        "publishedAt": "2024-01-15T12:00:00Z",
                        "content": "Stocks rose sharply on Monday.",
                    },
                    {"title": "[Removed]", "url": "https://removed.com", "source": {"name": "[Removed]"}},
                    {"title": "No url here"},
                    "not-a-dict",
                ],
            })

        async with mock_client(handler) as client:
            adapter = NewsAPIAdapter("test-key", client=client)
            result = await adapter.fetch("technology", 20)

        assert result.ok
        assert len(result.items) == 1
        item = result.items[0]
        assert item.source_name == "Reuters"
        assert item.url_to_image == "https://img.reuters.com/1.jpg"
        assert item.published_at.year == 2024
        assert seen["params"]["category"] == "technology"
        assert seen["params"]["apiKey"] == "test-key"
        assert seen["params"]["pageSize"] == "20"

    async def test_non_string_fields_are_dropped(self):
        payload = {
            "status": "ok",
            "articles": [
                {
                    "source": "Reuters",
                    "title": "Ports reopen after storm",
                    "description": 12345,
                    "url": "https://www.reuters.com/world/2",
                    "urlToImage": {"src": "https://img.reuters.com/2.jpg"},
                    "author": ["Jane Smith"],
                    "publishedAt": 1705320000,
                    "content": None,
                },
                {"title": 42, "url": "https://www.reuters.com/world/3"},
                {"title": "Url is a number", "url": 7},
            ],
        }

        async with mock_client(lambda request: json_response(payload)) as client:
            adapter = NewsAPIAdapter("key", client=client)
            result = await adapter.fetch("general", 10)

        assert result.ok
        assert len(result.items) == 1
        item = result.items[0]
        assert item.title == "Ports reopen after storm"
        assert item.description is None
        assert item.content is None
        assert item.url_to_image is None
        assert item.author is None
        assert item.source_name == "NewsAPI"
        assert item.published_at is None

    async def test_missing_key_is_config_error(self):
        adapter = NewsAPIAdapter(None)
        result = await adapter.fetch("general", 10)

        assert result.items == []
        assert isinstance(result.error, ConfigError)

    async def test_http_error_is_network_error(self):
        async with mock_client(lambda request: httpx.Response(500)) as client:
            adapter = NewsAPIAdapter("key", client=client)
            result = await adapter.fetch("general", 10)

        assert result.items == []
        assert isinstance(result.error, NetworkError)
        assert "HTTP 500" in str(result.error)

    async def test_provider_error_status(self):
        async with mock_client(lambda request: json_response({"status": "error", "code": "apiKeyInvalid"})) as client:
            adapter = NewsAPIAdapter("key", client=client)
            result = await adapter.fetch("general", 10)

        assert isinstance(result.error, NetworkError)
        assert "apiKeyInvalid" in str(result.error)

    async def test_invalid_json_is_parse_error(self):
        async with mock_client(lambda request: httpx.Response(200, content=b"<html>oops</html>")) as client:
            adapter = NewsAPIAdapter("key", client=client)
            result = await adapter.fetch("general", 10)

        assert isinstance(result.error, ParseError)

    async def test_transport_errors_are_retried(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return json_response({"status": "ok", "articles": []})

        async with mock_client(handler) as client:
            adapter = NewsAPIAdapter("key", client=client, retries=2)
            result = await adapter.fetch("general", 10)

        assert result.ok
        assert len(attempts) == 2

    def test_category_mapping(self):
        assert newsapi_category("politics") == "general"
        assert newsapi_category("sports") == "sports"


class TestGuardianAdapter:
    """Tests for The Guardian adapter."""

    async def test_fetch_parses_results(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return json_response({
                "response": {
                    "status": "ok",
                    "results": [
                        {
                            "webTitle": "Fallback title",
                            "webUrl": "https://www.theguardian.com/sport/1",
                            "webPublicationDate": "2024-01-15T10:00:00Z",
                            "sectionId": "sport",
                            "fields": {
                                "headline": "Late goal decides the derby",
                                "trailText": "<p>A <strong>dramatic</strong> finish.</p>",
                                "thumbnail": "https://media.guim.co.uk/1.jpg",
                            },
                        },
                        {"webTitle": "No url"},
                    ],
                }
            })

        async with mock_client(handler) as client:
            adapter = GuardianAdapter("key", client=client)
            result = await adapter.fetch(guardian_section("sports"), 10)

        assert result.ok
        assert seen["params"]["section"] == "sport"
        assert len(result.items) == 1
        item = result.items[0]
        assert item.title == "Late goal decides the derby"
        assert item.description == "A dramatic finish."
        assert item.thumbnail == "https://media.guim.co.uk/1.jpg"
        assert item.author == "The Guardian"
        assert item.tags == ["sport"]

    async def test_malformed_fields_are_ignored(self):
        payload = {
            "response": {
                "status": "ok",
                "results": [
                    {
                        "webTitle": "Budget vote delayed",
                        "webUrl": "https://www.theguardian.com/politics/1",
                        "sectionId": 3,
                        "fields": ["headline", "trailText"],
                    },
                    {
                        "webTitle": "Flood warnings issued",
                        "webUrl": "https://www.theguardian.com/uk/2",
                        "webPublicationDate": {"date": "2024-01-15"},
                        "fields": {"headline": None, "trailText": 5, "byline": ["A", "B"]},
                    },
                    {"webTitle": "Url missing", "webUrl": {"href": "x"}, "fields": "body"},
                ],
            }
        }

        async with mock_client(lambda request: json_response(payload)) as client:
            adapter = GuardianAdapter("key", client=client)
            result = await adapter.fetch("politics", 10)

        assert result.ok
        assert [item.title for item in result.items] == ["Budget vote delayed", "Flood warnings issued"]
        first, second = result.items
        assert first.tags == []
        assert first.description == ""
        assert second.author == "The Guardian"
        assert second.published_at is None

    async def test_missing_envelope_is_parse_error(self):
        async with mock_client(lambda request: json_response({"unexpected": True})) as client:
            adapter = GuardianAdapter("key", client=client)
            result = await adapter.fetch("world", 10)

        assert isinstance(result.error, ParseError)


class TestFirecrawlScrapeAdapter:
    """Tests for the scrape adapter."""

    def test_parse_page_uses_html_meta_image(self):
        adapter = FirecrawlScrapeAdapter("key")
        item = adapter.parse_page(
            {
                "markdown": "# Heading\n\n![logo](x.png)\n\nFirst paragraph of the story.\n\nSecond.",
                "html": '<html><head><meta property="og:image" content="https://img.example.com/og.jpg"></head></html>',
                "metadata": {"title": "Scraped story", "sourceURL": "https://www.bbc.com/news/story-1"},
            },
            "https://www.bbc.com/news",
            "general",
        )

        assert item.title == "Scraped story"
        assert item.url == "https://www.bbc.com/news/story-1"
        assert item.source_name == "bbc.com"
        assert item.description == "First paragraph of the story."
        assert item.url_to_image is None
        assert item.page_image == "https://img.example.com/og.jpg"

    def test_parse_page_without_markdown_is_dropped(self):
        adapter = FirecrawlScrapeAdapter("key")
        assert adapter.parse_page({"metadata": {"title": "x"}}, "https://a.com") is None

    def test_parse_page_with_malformed_metadata(self):
        adapter = FirecrawlScrapeAdapter("key")
        assert adapter.parse_page({"metadata": ["title"], "markdown": "Body."}, "https://a.com") is None
        assert adapter.parse_page("not a page", "https://a.com") is None

        item = adapter.parse_page(
            {
                "markdown": "Opening paragraph.",
                "html": 12,
                "metadata": {"title": "Story", "ogTitle": 5, "sourceURL": 9, "ogImage": ["a.jpg"]},
            },
            "https://www.bbc.com/news",
        )
        assert item.title == "Story"
        assert item.url == "https://www.bbc.com/news"
        assert item.url_to_image is None
        assert item.page_image is None

    async def test_fetch_posts_scrape_requests(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            requests.append((request.headers["Authorization"], body))
            return json_response({
                "success": True,
                "data": {
                    "markdown": "Body text of the page.",
                    "metadata": {
                        "title": f"Page {body['url']}",
                        "sourceURL": body["url"],
                        "ogImage": "https://img.example.com/og.jpg",
                    },
                },
            })

        seeds = {"technology": ["https://techcrunch.com", "https://www.theverge.com"]}
        async with mock_client(handler) as client:
            adapter = FirecrawlScrapeAdapter("fc-key", seed_urls=seeds, client=client)
            result = await adapter.fetch("technology", 10)

        assert result.ok
        assert len(result.items) == 2
        assert all(auth == "Bearer fc-key" for auth, _ in requests)
        assert requests[0][1]["formats"] == ["markdown", "html"]
        assert result.items[0].url_to_image == "https://img.example.com/og.jpg"

    def test_helpers(self):
        assert domain_name("https://www.reuters.com/world/") == "reuters.com"
        assert first_paragraph("# Title\n\n- list\n\nReal   text here.") == "Real text here."


class TestMockNewsAdapter:
    """Tests for the in-memory source."""

    async def test_honours_limit(self, make_items):
        adapter = MockNewsAdapter(items=make_items(10))
        result = await adapter.fetch("general", 3)

        assert len(result.items) == 3
        assert adapter.calls == [("general", 3)]

    async def test_sample_data(self):
        result = await MockNewsAdapter().fetch("technology", 10)
        assert len(result.items) >= 1
        assert all(i.url.startswith("https://news.example.com/technology/") for i in result.items)

    async def test_injected_error_becomes_value(self):
        adapter = MockNewsAdapter(name="flaky", error=NetworkError("boom"))
        result = await adapter.fetch("general", 5)

        assert result.items == []
        assert isinstance(result.error, NetworkError)
        assert result.error.source == "flaky"

    async def test_timeout_becomes_network_error(self, make_items):
        adapter = MockNewsAdapter(items=make_items(1), delay=1.0, timeout=0.05)
        result = await adapter.fetch("general", 5)

        assert isinstance(result.error, NetworkError)
        assert "timed out" in result.error.message


class TestSourceDescriptor:
    def test_category_map(self):
        descriptor = SourceDescriptor(
            name="guardian",
            priority=2,
            adapter=GuardianAdapter("key"),
            category_map=guardian_section,
        )
        assert descriptor.map_category("health") == "society"
        assert descriptor.map_category("unknown") is None


class TestRateLimiter:
    async def test_blocks_over_limit(self):
        limiter = RateLimiter()
        limiter.set_limit("tiny", 1, 60)

        assert await limiter.acquire("tiny", timeout=0.1) is True
        assert await limiter.acquire("tiny", timeout=0.1) is False
        assert limiter.get_status("tiny")["available"] == 0

    async def test_rate_limit_wait_is_network_error(self, make_items):
        limiter = RateLimiter()
        limiter.set_limit("mock", 1, 60)
        adapter = MockNewsAdapter(items=make_items(2), rate_limiter=limiter, timeout=0.1)

        first = await adapter.fetch("general", 5)
        second = await adapter.fetch("general", 5)

        assert first.ok
        assert isinstance(second.error, NetworkError)
