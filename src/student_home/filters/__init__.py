"""Listing normalization and worklist and listing deduplication."""

from student_home.filters.deduplication import (
    ListingDeduplicator,
    dedupe_urls,
    listing_key,
)
from student_home.filters.normalizer import normalize_listing, resolve_location

__all__ = [
    "ListingDeduplicator",
    "dedupe_urls",
    "listing_key",
    "normalize_listing",
    "resolve_location",
]
