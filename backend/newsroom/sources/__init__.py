"""
News source adapters.
"""
from newsroom.sources.base import FetchResult, RawItem, SourceAdapter, SourceDescriptor
from newsroom.sources.guardian import GuardianAdapter
from newsroom.sources.mock import MockNewsAdapter
from newsroom.sources.newsapi import NewsAPIAdapter
from newsroom.sources.rate_limiter import RateLimiter
from newsroom.sources.rss import RSSAdapter
from newsroom.sources.scrape import FirecrawlScrapeAdapter

__all__ = [
    "FetchResult",
    "RawItem",
    "SourceAdapter",
    "SourceDescriptor",
    "RateLimiter",
    "NewsAPIAdapter",
    "GuardianAdapter",
    "RSSAdapter",
    "FirecrawlScrapeAdapter",
    "MockNewsAdapter",
]
