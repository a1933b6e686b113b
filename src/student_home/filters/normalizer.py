"""Field normalization: RawListing free text -> typed Property."""

from student_home.errors import NormalizationError
from student_home.models import Property, PropertyType, RawListing
from student_home.scrapers.parsing import (
    classify_property_type,
    clean_features,
    extract_count,
    extract_postcode,
    extract_price,
    extract_price_type,
    is_unavailable,
    is_unfurnished,
    location_from_address,
    location_from_url,
)

UNKNOWN_LOCATION = "Unknown"


def resolve_location(raw: RawListing) -> str:
    """Pick the listing's town: address segment, then seed location, then URL token."""
    return (
        location_from_address(raw.address_text)
        or (raw.location_hint.strip() if raw.location_hint and raw.location_hint.strip() else None)
        or location_from_url(raw.listing_url)
        or location_from_url(raw.source_url)
        or UNKNOWN_LOCATION
    )


def _count_or_default(text: str | None) -> int:
    count = extract_count(text)
    if count is None or count < 1:
        return 1
    return count


def normalize_listing(raw: RawListing, *, source: str) -> Property:
    """Convert a RawListing into a Property.

    Pure and deterministic: the same listing and source always produce the
    same Property. Fields missing from the listing take their defaults
    (weekly price type, one bedroom and bathroom, furnished, available).

    Args:
        raw: Listing as scraped.
        source: Provenance tag stored on the row (e.g. "rightmove").

    Raises:
        NormalizationError: If the listing has no title or source is empty.
    """
    title = " ".join((raw.title or "").split())
    if not title:
        raise NormalizationError(f"listing from {raw.source_url} has no title")
    if not source:
        raise NormalizationError("source tag is required")

    property_type = (
        classify_property_type(raw.property_type_text)
        or classify_property_type(title)
        or PropertyType.FLAT
    )

    return Property(
        title=title,
        price=extract_price(raw.price_text) or 0,
        price_type=extract_price_type(raw.price_text),
        location=resolve_location(raw),
        full_address=raw.address_text or None,
        postcode=extract_postcode(raw.address_text),
        bedrooms=_count_or_default(raw.bedrooms_text),
        bathrooms=_count_or_default(raw.bathrooms_text),
        property_type=property_type,
        furnished=not is_unfurnished(raw.furnished_text),
        available=not is_unavailable(raw.availability_text),
        description=raw.description_text or None,
        landlord_name=raw.landlord_name or None,
        source=source,
        source_url=raw.listing_url or raw.source_url,
        features=clean_features(raw.features),
        scraped_at=raw.scraped_at,
    )
