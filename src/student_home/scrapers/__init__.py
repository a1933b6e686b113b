"""Page fetching and listing extraction."""

from student_home.scrapers.extractor import ListingExtractor, extract_links
from student_home.scrapers.fetcher import (
    BrowserPageFetcher,
    FetchedPage,
    HttpPageFetcher,
    PageFetcher,
    create_fetcher,
)
from student_home.scrapers.providers import PROVIDERS, RIGHTMOVE, Provider, get_provider

__all__ = [
    "PROVIDERS",
    "RIGHTMOVE",
    "BrowserPageFetcher",
    "FetchedPage",
    "HttpPageFetcher",
    "ListingExtractor",
    "PageFetcher",
    "Provider",
    "create_fetcher",
    "extract_links",
    "get_provider",
]
