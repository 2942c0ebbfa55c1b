"""
Article quality scoring.

Scorers implement ``QualityScorer.score``; the orchestrator only depends on
that interface, so a model-backed classifier can replace the heuristics
below without touching callers.
"""
import re
from abc import ABC, abstractmethod
from urllib.parse import urlparse

from newsroom.models.domain import ArticleScores, CanonicalArticle

CONTENT_QUALITY_BASE = 0.5
CONTENT_QUALITY_STEP = 0.1

ATTRIBUTION_PHRASES = [
    "according to",
    "said in a statement",
    "told reporters",
    "confirmed to",
    "reported by",
]

SPAM_MARKERS = ["breaking", "!!!", "you won't believe", "shocking"]

# Credibility tiers: (score, source names, domains)
HIGH_CREDIBILITY = (
    0.9,
    {
        "reuters", "associated press", "ap news", "bbc", "wall street journal",
        "bloomberg", "npr", "guardian", "financial times", "nature",
    },
    {
        "reuters.com", "apnews.com", "bbc.com", "bbc.co.uk", "wsj.com",
        "bloomberg.com", "npr.org", "theguardian.com", "ft.com", "nature.com",
    },
)
MEDIUM_CREDIBILITY = (
    0.7,
    {
        "cnn", "cnbc", "techcrunch", "the verge", "ars technica", "politico",
        "the hill", "espn", "variety", "al jazeera", "fortune", "stat news",
        "quanta magazine", "hollywood reporter", "new scientist",
    },
    {
        "cnn.com", "cnbc.com", "techcrunch.com", "theverge.com", "arstechnica.com",
        "politico.com", "thehill.com", "espn.com", "variety.com", "aljazeera.com",
        "fortune.com", "statnews.com", "quantamagazine.org",
        "hollywoodreporter.com", "newscientist.com",
    },
)
LOW_CREDIBILITY_SCORE = 0.5

POSITIVE_WORDS = {
    "win", "wins", "won", "success", "successful", "growth", "gain", "gains",
    "improve", "improves", "improved", "record", "breakthrough", "celebrate",
    "agreement", "recovery", "rise", "rises", "boost", "hope", "progress",
    "approved", "strong", "benefit", "safe", "peace", "award",
}
NEGATIVE_WORDS = {
    "loss", "losses", "lose", "crisis", "crash", "decline", "declines", "fall",
    "falls", "war", "attack", "killed", "death", "deaths", "dead", "fraud",
    "scandal", "fear", "fears", "risk", "threat", "collapse", "conflict",
    "injured", "warning", "protest", "recession", "fail", "failed",
}
LOADED_WORDS = {
    "outrageous", "disgraceful", "radical", "slams", "blasts", "destroys",
    "disaster", "corrupt", "extremist", "unbelievable", "horrifying",
    "propaganda", "regime", "shameful", "heroic", "evil", "insane",
    "catastrophic", "betrayal", "rigged", "woke", "elitist", "thugs",
}

BIAS_BASELINE = 0.3
# Loaded-word density at which bias saturates at 1.0
BIAS_SATURATION_DENSITY = 0.05

WORD_PATTERN = re.compile(r"[a-z']+")


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _normalize_name(name: str) -> str:
    words = re.sub(r"[^a-z0-9]+", " ", name.lower()).split()
    return f" {' '.join(words)} "


def _host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def credibility_for(source_name: str, url: str = "") -> float:
    """Tier lookup by source name, then by article domain; unknown is low."""
    name = _normalize_name(source_name)
    host = _host(url) if url else ""

    for score, names, domains in (HIGH_CREDIBILITY, MEDIUM_CREDIBILITY):
        if any(f" {n} " in name for n in names):
            return score
        if host and any(host == d or host.endswith("." + d) for d in domains):
            return score
    return LOW_CREDIBILITY_SCORE


class QualityScorer(ABC):
    """Computes bounded quality signals for an article."""

    @abstractmethod
    def score(self, article: CanonicalArticle) -> ArticleScores:
        """Return scores with every bounded field in [0, 1]."""
        pass


class HeuristicQualityScorer(QualityScorer):
    """
    Deterministic keyword heuristics.

    Identical input always yields identical scores. Engagement is never
    produced here; it accumulates in the store.
    """

    def score(self, article: CanonicalArticle) -> ArticleScores:
        words = self._words(article)
        return ArticleScores(
            content_quality=self.content_quality(article),
            credibility=credibility_for(article.source_name, article.url),
            bias=self.bias(words),
            sentiment=self.sentiment(words),
        )

    def content_quality(self, article: CanonicalArticle) -> float:
        score = CONTENT_QUALITY_BASE
        if len(article.content) > 500:
            score += CONTENT_QUALITY_STEP
        if 20 <= len(article.title) <= 100:
            score += CONTENT_QUALITY_STEP
        body = f"{article.content} {article.description}".lower()
        if any(phrase in body for phrase in ATTRIBUTION_PHRASES):
            score += CONTENT_QUALITY_STEP
        if not self._is_spammy_title(article.title):
            score += CONTENT_QUALITY_STEP
        return clamp(round(score, 4))

    def sentiment(self, words: list[str]) -> float:
        """0 is negative, 0.5 neutral, 1 positive."""
        positive = sum(1 for w in words if w in POSITIVE_WORDS)
        negative = sum(1 for w in words if w in NEGATIVE_WORDS)
        if positive + negative == 0:
            return 0.5
        return clamp(round(0.5 + 0.5 * (positive - negative) / (positive + negative), 4))

    def bias(self, words: list[str]) -> float:
        """Share of emotionally loaded vocabulary; lower is more neutral."""
        if not words:
            return BIAS_BASELINE
        loaded = sum(1 for w in words if w in LOADED_WORDS)
        density = loaded / len(words)
        saturation = min(1.0, density / BIAS_SATURATION_DENSITY)
        return clamp(round(BIAS_BASELINE + (1 - BIAS_BASELINE) * saturation, 4))

    def _words(self, article: CanonicalArticle) -> list[str]:
        text = f"{article.title} {article.description} {article.content[:2000]}"
        return WORD_PATTERN.findall(text.lower())

    def _is_spammy_title(self, title: str) -> bool:
        letters = [c for c in title if c.isalpha()]
        if letters and all(c.isupper() for c in letters) and len(letters) > 3:
            return True
        lowered = title.lower()
        return "!" in title or any(marker in lowered for marker in SPAM_MARKERS)
