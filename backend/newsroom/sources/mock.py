"""
Mock news source for development and testing.
Serves realistic-looking articles without external API calls.
"""
import asyncio
import hashlib
from datetime import timedelta
from typing import Optional

from newsroom.core.errors import IngestionError
from newsroom.models.domain import utcnow
from newsroom.sources.base import RawItem, SourceAdapter

MOCK_DATA = {
    "general": [
        {
            "title": "Leaders Reach Agreement on Cross-Border Water Sharing After Decade of Talks",
            "description": "Negotiators from three countries signed a framework that sets seasonal quotas for the river basin.",
            "source": "Reuters",
            "author": "Staff Reporter",
        },
        {
            "title": "City Councils Pilot Four-Day Week for Municipal Workers",
            "description": "Early results from the six-month trial show lower absenteeism, according to officials.",
            "source": "Associated Press",
            "author": "Maria Santos",
        },
    ],
    "technology": [
        {
            "title": "Chipmakers Race to Ship Smaller Transistors as Demand for Data Centers Grows",
            "description": "New fabrication plants are due online next year, according to company filings.",
            "source": "TechCrunch",
            "author": "James Liu",
        },
        {
            "title": "Open Source Maintainers Push for Funding Model Backed by Large Software Firms",
            "description": "A coalition of developers published a proposal for sustainable maintenance of critical libraries.",
            "source": "The Verge",
            "author": "Emily Watson",
        },
    ],
    "business": [
        {
            "title": "Central Bank Holds Interest Rates Steady Amid Cooling Inflation",
            "description": "Policymakers signalled cuts could come later in the year if price growth continues to slow.",
            "source": "Bloomberg",
            "author": "David Park",
        },
    ],
    "health": [
        {
            "title": "Large Study Links Regular Walking to Lower Risk of Heart Disease",
            "description": "Researchers followed 40,000 adults for a decade, according to the published paper.",
            "source": "BBC News",
            "author": "Health Desk",
        },
    ],
    "sports": [
        {
            "title": "Underdog Club Clinches League Title on Final Day of Season",
            "description": "A late goal sealed the championship in front of a sold-out stadium.",
            "source": "ESPN",
            "author": "Sports Desk",
        },
    ],
    "science": [
        {
            "title": "Telescope Captures Detailed Images of Planet-Forming Disk",
            "description": "Astronomers say the observations reveal gaps carved by young planets.",
            "source": "Nature",
            "author": "Anna Kowalski",
        },
    ],
}

DEFAULT_ARTICLES = [
    {
        "title": "Regional Roundup: The Stories Shaping the Week",
        "description": "A summary of the most significant developments across the region this week.",
        "source": "Mock Wire",
        "author": "Newsroom",
    },
]

MOCK_BODY = (
    "{description} The report draws on interviews, public records and data released "
    "this week. Officials said further details would be published in the coming days, "
    "and independent analysts cautioned that the full picture may take time to emerge."
)


def make_raw_item(template: dict, category: str, index: int = 0) -> RawItem:
    """Build a deterministic RawItem from a mock template."""
    slug = hashlib.md5(f"{category}:{template['title']}".encode()).hexdigest()[:10]
    return RawItem(
        title=template["title"],
        url=f"https://news.example.com/{category}/{slug}",
        source_name=template.get("source", "Mock Wire"),
        description=template["description"],
        content=MOCK_BODY.format(description=template["description"]),
        url_to_image=f"https://images.example.com/{slug}.jpg",
        author=template.get("author"),
        published_at=utcnow() - timedelta(hours=index + 1),
        category=category,
    )


class MockNewsAdapter(SourceAdapter):
    """
    In-memory source.

    ``items`` replaces the built-in sample data; ``error`` is raised from
    every call so the adapter contract maps it to a FetchResult; ``delay``
    simulates a slow upstream.
    """

    name = "mock"

    def __init__(
        self,
        name: Optional[str] = None,
        items: Optional[list[RawItem]] = None,
        error: Optional[IngestionError] = None,
        delay: float = 0.0,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if name:
            self.name = name
        self.items = items
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int]] = []

    async def _fetch_items(self, category: str, limit: int) -> list[RawItem]:
        self.calls.append((category, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

        if self.items is not None:
            return list(self.items[:limit])

        templates = MOCK_DATA.get(category) or DEFAULT_ARTICLES
        return [make_raw_item(t, category, i) for i, t in enumerate(templates[:limit])]
