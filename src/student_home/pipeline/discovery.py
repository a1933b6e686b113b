"""Worklist discovery from the provider index page and the seed file."""

import json
from pathlib import Path
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from student_home.filters.deduplication import dedupe_urls
from student_home.logging import get_logger
from student_home.models import DiscoveredUrl, DiscoverySource
from student_home.scrapers.extractor import extract_links
from student_home.scrapers.fetcher import PageFetcher

logger = get_logger(__name__)


class SeedLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    location: str
    url: str

    @field_validator("location")
    @classmethod
    def strip_newlines(cls, v: str) -> str:
        return " ".join(v.split())


class SeedUniversity(SeedLocation):
    name: str


class SeedFile(BaseModel):
    """Location and university pages to crawl, with URLs relative to the seed site."""

    model_config = ConfigDict(extra="ignore")

    location_urls: list[SeedLocation] = Field(default_factory=list)
    universities: list[SeedUniversity] = Field(default_factory=list)


DEFAULT_SEED = SeedFile(
    location_urls=[
        SeedLocation(location="London", url="/student-accommodation/london"),
        SeedLocation(location="Manchester", url="/student-accommodation/manchester"),
        SeedLocation(location="Birmingham", url="/student-accommodation/birmingham"),
        SeedLocation(location="Leeds", url="/student-accommodation/leeds"),
        SeedLocation(location="Liverpool", url="/student-accommodation/liverpool"),
    ],
    universities=[
        SeedUniversity(
            name="University of London",
            location="London",
            url="/university/university-of-london",
        ),
        SeedUniversity(
            name="University of Manchester",
            location="Manchester",
            url="/university/university-of-manchester",
        ),
        SeedUniversity(
            name="University of Birmingham",
            location="Birmingham",
            url="/university/university-of-birmingham",
        ),
    ],
)


def load_seed(path: Path) -> SeedFile:
    """Load the seed file, falling back to the built-in seed when it is absent.

    The file may hold a single seed object or a list whose first entry is the
    seed. A file that exists but is malformed also falls back, with a warning.
    """
    if not path.exists():
        logger.info("seed_file_missing_using_default", path=str(path))
        return DEFAULT_SEED
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, list):
            data = data[0] if data else {}
        return SeedFile.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("seed_file_invalid_using_default", path=str(path), error=str(e))
        return DEFAULT_SEED


def seed_candidates(seed: SeedFile, base_url: str) -> list[DiscoveredUrl]:
    """Absolute worklist entries for every seed location, then every university."""
    candidates = [
        DiscoveredUrl(
            url=urljoin(base_url, item.url),
            kind=DiscoverySource.LOCATION,
            location=item.location,
        )
        for item in seed.location_urls
    ]
    candidates.extend(
        DiscoveredUrl(
            url=urljoin(base_url, item.url),
            kind=DiscoverySource.UNIVERSITY,
            location=item.location,
            name=item.name,
        )
        for item in seed.universities
    )
    return candidates


async def index_candidates(fetcher: PageFetcher, index_url: str) -> list[DiscoveredUrl]:
    """Links found on the provider's university index page (empty if it fails)."""
    page = await fetcher.fetch(index_url)
    if page is None:
        logger.warning("index_page_unavailable", url=index_url)
        return []
    links = extract_links(page.html, page.url)
    logger.info("index_links_found", url=index_url, count=len(links))
    return [DiscoveredUrl(url=link, kind=DiscoverySource.INDEX) for link in links]


async def discover_worklist(
    fetcher: PageFetcher,
    *,
    index_url: str,
    seed: SeedFile,
    seed_base_url: str,
    max_pages: int | None = None,
) -> list[DiscoveredUrl]:
    """Build the deduplicated crawl worklist.

    Sources are merged in order (index links, seed locations, seed universities)
    before deduplication.

    Args:
        fetcher: Fetcher used for the index page.
        index_url: Provider page listing the university pages.
        seed: Seed locations and universities.
        seed_base_url: Base URL that seed entries are relative to.
        max_pages: Optional cap on the worklist length.

    Returns:
        Unique URLs in discovery order.
    """
    candidates = await index_candidates(fetcher, index_url)
    candidates.extend(seed_candidates(seed, seed_base_url))
    worklist = dedupe_urls(candidates)
    if max_pages is not None:
        worklist = worklist[:max_pages]
    logger.info("worklist_built", candidates=len(candidates), pages=len(worklist))
    return worklist
