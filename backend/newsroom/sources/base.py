"""
Base classes and data models for source adapters.

Every adapter (REST API, RSS, scraper) implements ``_fetch_items``; the
``fetch`` template around it enforces the adapter contract:

- a missing credential returns an empty result carrying a ConfigError
- network failures and timeouts return an empty result carrying a NetworkError
- malformed payloads keep whatever items could be parsed
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from newsroom.core.errors import ConfigError, IngestionError, NetworkError, ParseError
from newsroom.sources.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 8.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; NewsroomIngest/1.0)"


@dataclass
class RawItem:
    """
    Raw article data from a source before normalization.

    This is the intermediate format between source-specific payloads
    and the CanonicalArticle model. Discarded after normalization.
    """
    title: Optional[str]
    url: Optional[str]
    source_name: Optional[str] = None

    # Content
    description: Optional[str] = None
    content: Optional[str] = None

    # Images, in fallback order
    url_to_image: Optional[str] = None
    thumbnail: Optional[str] = None
    page_image: Optional[str] = None

    # Metadata
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    category: Optional[str] = None
    tags: list[str] = field(default_factory=list)


@dataclass
class FetchResult:
    """Items returned by one adapter call, plus the failure reason if any."""
    items: list[RawItem] = field(default_factory=list)
    error: Optional[IngestionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Each implementation handles:
    - Fetching items from its specific API/feed/scraper
    - Parsing the source-specific payload
    - Mapping to RawItem
    """

    name: str = "source"
    requires_credentials: bool = False

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retries: int = 2,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self._client = client
        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self.retries = retries
        self.user_agent = user_agent

    def is_configured(self) -> bool:
        """Whether the credentials this source needs are present."""
        return True

    async def fetch(self, category: str, limit: int) -> FetchResult:
        """
        Fetch up to ``limit`` items for ``category``.

        Never raises for recoverable conditions; cancellation propagates.
        """
        if self.requires_credentials and not self.is_configured():
            logger.info(f"{self.name}: credentials not configured, skipping")
            return FetchResult(error=ConfigError("credentials not configured", source=self.name))

        if not await self.rate_limiter.acquire(self.name, timeout=self.timeout):
            return FetchResult(error=NetworkError("rate limit wait exceeded", source=self.name))

        try:
            items = await asyncio.wait_for(
                self._fetch_items(category, limit),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{self.name}: timed out after {self.timeout:.1f}s")
            return FetchResult(error=NetworkError(f"timed out after {self.timeout:.1f}s", source=self.name))
        except httpx.HTTPStatusError as e:
            logger.warning(f"{self.name}: HTTP {e.response.status_code}")
            return FetchResult(error=NetworkError(f"HTTP {e.response.status_code}", source=self.name))
        except httpx.HTTPError as e:
            logger.warning(f"{self.name}: transport error: {e!r}")
            return FetchResult(error=NetworkError(f"transport error: {e!r}", source=self.name))
        except PartialParse as e:
            logger.warning(f"{self.name}: partial parse, kept {len(e.items)} items: {e.error}")
            return FetchResult(items=e.items[:limit], error=e.error)
        except IngestionError as e:
            logger.warning(f"{self.name}: {e.message}")
            if e.source is None:
                e.source = self.name
            return FetchResult(error=e)

        return FetchResult(items=items[:limit])

    @abstractmethod
    async def _fetch_items(self, category: str, limit: int) -> list[RawItem]:
        """
        Source-specific fetch.

        May raise httpx errors, IngestionError subclasses or PartialParse;
        ``fetch`` converts them into FetchResult values.
        """
        pass

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs,
    ) -> httpx.Response:
        """Send a request, retrying transient transport failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
        return response

    @asynccontextmanager
    async def client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the injected client, or a short-lived one owned by this call."""
        if self._client is not None:
            yield self._client
            return

        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
        ) as client:
            yield client


class PartialParse(Exception):
    """Raised by adapters that parsed some items before hitting bad input."""

    def __init__(self, items: list[RawItem], error: ParseError):
        super().__init__(str(error))
        self.items = items
        self.error = error


def text_field(value: object) -> Optional[str]:
    """A payload value usable as text; anything else (numbers, objects, lists) is dropped."""
    return value if isinstance(value, str) else None


def identity_category(category: str) -> Optional[str]:
    return category


@dataclass
class SourceDescriptor:
    """
    A source as seen by the orchestrator.

    ``priority`` is advisory ordering: lower numbers are tried first.
    ``category_map`` translates a pipeline category into the source's own
    vocabulary, returning None when the source does not serve it.
    """
    name: str
    priority: int
    adapter: SourceAdapter
    category_map: Callable[[str], Optional[str]] = identity_category

    def map_category(self, category: str) -> Optional[str]:
        return self.category_map(category)
