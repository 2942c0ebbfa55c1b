"""
News category vocabulary.

Categories drive which feeds/sections a source queries, and the keyword
table below drives topic tagging during normalization.
"""

CATEGORIES = [
    "general",
    "politics",
    "technology",
    "business",
    "health",
    "sports",
    "entertainment",
    "science",
]

DEFAULT_CATEGORY = "general"

# Keyword vocabulary for topic tags (case-insensitive substring match)
TOPIC_KEYWORDS: dict[str, list[str]] = {
    "politics": [
        "election", "government", "congress", "senate", "president",
        "policy", "vote", "campaign", "parliament", "minister",
    ],
    "technology": [
        "technology", "software", "internet", "digital", "cyber",
        "artificial intelligence", "smartphone", "startup", "platform",
    ],
    "business": [
        "market", "stock", "economy", "finance", "company", "corporate",
        "investment", "earnings", "business",
    ],
    "health": [
        "health", "medical", "disease", "hospital", "doctor", "vaccine",
        "medicine", "patients",
    ],
    "sports": [
        "team", "player", "match", "championship", "league", "tournament",
        "coach", "sports",
    ],
    "entertainment": [
        "movie", "music", "celebrity", "film", "actor", "entertainment",
        "album", "festival",
    ],
    "science": [
        "research", "study", "scientist", "discovery", "space", "climate",
        "environment", "science",
    ],
}

MAX_TOPIC_TAGS = 5


def normalize_category(category: str | None) -> str:
    """Lower-case a category and fall back to the default for unknown values."""
    if not category:
        return DEFAULT_CATEGORY
    value = category.strip().lower()
    return value if value in CATEGORIES else DEFAULT_CATEGORY


def match_topics(text: str) -> list[str]:
    """Return up to MAX_TOPIC_TAGS topics whose keywords occur in text."""
    lowered = text.lower()
    topics = [
        topic
        for topic, keywords in TOPIC_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    ]
    return topics[:MAX_TOPIC_TAGS] or [DEFAULT_CATEGORY]
