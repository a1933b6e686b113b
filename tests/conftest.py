"""Shared pytest fixtures."""

import os
import sys
from collections.abc import AsyncGenerator, Callable, Iterable
from datetime import UTC, datetime
from pathlib import Path

import pytest
import pytest_asyncio
from hypothesis import HealthCheck, settings

from student_home.config import Settings
from student_home.db.sqlite_store import SQLitePropertyStore
from student_home.models import Property, PropertyType, RawListing
from student_home.scrapers.fetcher import FetchedPage


def pytest_configure(config: pytest.Config) -> None:
    """Force line-buffered stdout when piped."""
    if hasattr(sys.stdout, "reconfigure") and not sys.stdout.isatty():
        sys.stdout.reconfigure(line_buffering=True)
    if hasattr(sys.stderr, "reconfigure") and not sys.stderr.isatty():
        sys.stderr.reconfigure(line_buffering=True)


# Hypothesis settings profiles for different environments
settings.register_profile("fast", max_examples=10)
settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture(autouse=True)
def _isolate_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent a local .env file or exported variables from leaking into Settings."""
    monkeypatch.setattr(
        Settings,
        "model_config",
        {**Settings.model_config, "env_file": None},
    )
    for name in list(os.environ):
        if name.startswith("STUDENT_HOME_"):
            monkeypatch.delenv(name)


@pytest.fixture
def fixtures_path() -> Path:
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[SQLitePropertyStore, None]:
    """An initialized in-memory SQLite store."""
    store = SQLitePropertyStore(":memory:")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def sample_raw_listing() -> RawListing:
    return RawListing(
        source_url="https://www.rightmove.co.uk/student-accommodation/manchester",
        title="2 bedroom flat to rent",
        price_text="£250 pcm",
        address_text="Flat 2, 45 Oxford Road, Manchester, M1 5QA",
        bedrooms_text="2",
        bathrooms_text="1",
        description_text="Close to the university.",
        image_refs=("dir/123/img_0.jpg", "dir/123/img_1.jpg"),
        listing_url="https://www.rightmove.co.uk/properties/123",
        scraped_at=datetime(2025, 9, 1, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def sample_property() -> Property:
    """A valid normalized property for store tests."""
    return Property(
        title="2 bedroom flat to rent",
        price=250,
        location="Manchester",
        full_address="Flat 2, 45 Oxford Road, Manchester, M1 5QA",
        postcode="M1 5QA",
        bedrooms=2,
        property_type=PropertyType.FLAT,
        source="rightmove",
        source_url="https://www.rightmove.co.uk/properties/123",
        features=frozenset({"Bills included", "Gym"}),
        scraped_at=datetime(2025, 9, 1, 12, 0, tzinfo=UTC),
    )


class FakeChecker:
    """Liveness checker that answers from a fixed set of live URLs."""

    def __init__(self, live: Iterable[str] = ()) -> None:
        self.live = set(live)
        self.checked: list[str] = []

    async def check(self, url: str) -> bool:
        self.checked.append(url)
        return url in self.live

    async def check_many(self, urls: Iterable[str]) -> dict[str, bool]:
        return {url: await self.check(url) for url in dict.fromkeys(urls)}


@pytest.fixture
def make_checker() -> Callable[..., FakeChecker]:
    """Factory for checkers: ``make_checker(live={...})``."""
    return FakeChecker


class FakeFetcher:
    """Page fetcher that serves canned HTML by URL; unknown URLs fail."""

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = pages or {}
        self.fetched: list[str] = []
        self.closed = False

    async def fetch(self, url: str) -> FetchedPage | None:
        self.fetched.append(url)
        html = self.pages.get(url)
        if html is None:
            return None
        return FetchedPage(url=url, html=html, status_code=200)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_fetcher() -> Callable[..., FakeFetcher]:
    """Factory for fetchers: ``make_fetcher({url: html})``."""
    return FakeFetcher
