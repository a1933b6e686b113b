"""Worklist and listing deduplication across discovery sources."""

from collections.abc import Iterable

from student_home.logging import get_logger
from student_home.models import DiscoveredUrl, Property, RawListing

logger = get_logger(__name__)

ListingKey = tuple[str | float, ...]


def dedupe_urls(candidates: Iterable[DiscoveredUrl]) -> list[DiscoveredUrl]:
    """Collapse candidates to one entry per URL.

    URLs are compared by exact string equality (no query or trailing-slash
    normalization). When the same URL is seen more than once, the last entry's
    metadata wins while the URL keeps the position where it was first seen.

    Args:
        candidates: URLs from all discovery sources, in discovery order.

    Returns:
        Unique candidates.
    """
    unique: dict[str, DiscoveredUrl] = {}
    total = 0
    for candidate in candidates:
        total += 1
        unique[candidate.url] = candidate

    if total != len(unique):
        logger.info("worklist_deduplicated", candidates=total, unique=len(unique))
    return list(unique.values())


def listing_key(raw: RawListing, prop: Property) -> ListingKey:
    """Identity of a listing across pages.

    The listing's own deep link when the page gave one, else the normalized
    title, location and price (case-insensitive on the text fields).
    """
    if raw.listing_url:
        return (raw.listing_url,)
    return (prop.title.casefold(), prop.location.casefold(), prop.price)


class ListingDeduplicator:
    """Remembers the listings seen so far in one run.

    Location pages and university pages for the same city return the same
    listings, so the same property turns up on several pages of a crawl.
    """

    def __init__(self) -> None:
        self._seen: set[ListingKey] = set()

    def is_duplicate(self, raw: RawListing, prop: Property) -> bool:
        """Record the listing and report whether it was already seen."""
        key = listing_key(raw, prop)
        if key in self._seen:
            return True
        self._seen.add(key)
        return False
