"""
Shared fixtures: a throwaway SQLite file per test and RawItem factories.
"""
from datetime import timedelta

import pytest

from newsroom.config import Settings
from newsroom.models.database import Database
from newsroom.models.domain import utcnow
from newsroom.services.persistence import ArticleStore
from newsroom.services.run_logger import RunLogger
from newsroom.sources.base import RawItem

LONG_BODY = (
    "Officials confirmed the figures on Tuesday, according to a statement released by the "
    "ministry. The report covers the last three quarters and includes regional breakdowns "
    "that analysts had requested for months. Independent economists said the numbers were "
    "broadly in line with expectations, though several warned that revisions are common. "
    "The data will feed into next month's budget discussions, which are expected to focus "
    "on infrastructure spending and public health programmes across the country. "
    "Further updates are expected later in the week."
)


def build_item(n: int, **overrides) -> RawItem:
    """A valid, unique RawItem; ``n`` makes title and url distinct."""
    values = {
        "title": f"Regional economy report number {n} released",
        "url": f"https://www.reuters.com/world/story-{n}",
        "source_name": "Reuters",
        "description": f"Summary of report {n} on the regional economy.",
        "content": LONG_BODY,
        "url_to_image": f"https://images.example.com/{n}.jpg",
        "author": "Staff Reporter",
        "published_at": utcnow() - timedelta(hours=1),
    }
    values.update(overrides)
    return RawItem(**values)


@pytest.fixture
def make_item():
    return build_item


@pytest.fixture
def make_items():
    def _make(count: int, start: int = 0) -> list[RawItem]:
        return [build_item(n) for n in range(start, start + count)]
    return _make


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
def store(database):
    return ArticleStore(database)


@pytest.fixture
def run_logger(database):
    return RunLogger(database)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        newsapi_key=None,
        guardian_api_key=None,
        firecrawl_api_key=None,
        category_budget_seconds=5.0,
        source_timeout_seconds=2.0,
        pipeline_timeout_seconds=10.0,
        auto_refresh_categories=["general", "technology"],
    )
