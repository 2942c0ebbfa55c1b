"""
Two-tier duplicate detection: per-run memory first, then the store.
"""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlparse

from newsroom.models.domain import CanonicalArticle

if TYPE_CHECKING:
    from newsroom.services.persistence import ArticleStore

TRACKING_PARAMS = {
    "utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term",
    "ref", "source", "via", "fbclid", "gclid", "cmpid", "ocid",
}


def canonical_url(url: str) -> str:
    """
    Normalize a URL for duplicate grouping.

    Scheme and host are lower-cased, tracking parameters, the fragment and
    a trailing slash are dropped, remaining query parameters are sorted.
    """
    parsed = urlparse(url.strip())
    params = [
        (k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if k.lower() not in TRACKING_PARAMS
    ]
    path = parsed.path.rstrip("/")

    clean_url = f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"
    if params:
        clean_url += "?" + urlencode(sorted(params))
    return clean_url


@dataclass
class DedupScope:
    """Hashes and urls seen during one orchestration run. Never shared."""
    hashes: set[str] = field(default_factory=set)
    urls: set[str] = field(default_factory=set)

    def seen(self, article: CanonicalArticle) -> bool:
        return article.content_hash in self.hashes or article.url in self.urls

    def add(self, article: CanonicalArticle) -> None:
        self.hashes.add(article.content_hash)
        self.urls.add(article.url)


class Deduplicator:
    """Rejects drafts already seen in this run or already stored."""

    def __init__(self, store: "ArticleStore"):
        self.store = store

    async def is_duplicate(
        self,
        article: CanonicalArticle,
        scope: DedupScope,
        check_store: bool = True,
    ) -> bool:
        """
        Check the run scope, then (unless ``check_store`` is False) the store.

        The draft is added to the scope as soon as it is checked, so a later
        repeat in the same run never reaches the store. Store lookup failures
        propagate as PersistenceError.
        """
        if scope.seen(article):
            return True
        scope.add(article)

        if not check_store:
            return False

        existing = await self.store.find_by_hash_or_url(article.content_hash, article.url)
        return existing is not None
