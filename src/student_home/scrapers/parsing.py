"""Named free-text parsing rules for listing fields.

Each rule is a small pure function so it can be tested on its own; the field
normalizer composes them.
"""

import re
from collections.abc import Iterable
from typing import Final

from student_home.models import PriceType, PropertyType

POSTCODE_PATTERN: Final = re.compile(
    r"\b[A-Z]{1,2}[0-9][A-Z0-9]?\s?[0-9][A-Z]{2}\b",
    re.IGNORECASE,
)

_CURRENCY_CHARS: Final = re.compile(r"[£$€,]")
_NUMBER: Final = re.compile(r"\d+(?:\.\d+)?")
_INTEGER: Final = re.compile(r"\d+")
_LOCATION_URL_PATTERN: Final = re.compile(r"/student-accommodation/([^/.?#]+)")

_MONTHLY_MARKERS: Final = ("month", "pcm")
_YEARLY_MARKERS: Final = ("year", "annual", "annum")

_UNAVAILABLE_MARKERS: Final = ("let agreed", "let stc", "unavailable", "not available")

# Checked in order; first match wins ("studio flat" is a studio, "room in shared house" a room).
_PROPERTY_TYPE_RULES: Final = (
    (PropertyType.STUDIO, re.compile(r"\bstudio\b")),
    (PropertyType.ROOM, re.compile(r"\broom\b|\bhouse ?share\b|\bshared\b|\bhmo\b")),
    (PropertyType.FLAT, re.compile(r"\bflat\b|\bapartment\b|\bmaisonette\b|\bpenthouse\b")),
    (
        PropertyType.HOUSE,
        re.compile(
            r"\bhouse\b|\bterraced?\b|\bdetached\b|\bbungalow\b|\bcottage\b|\btown ?house\b"
        ),
    ),
)


def extract_price(text: str | None) -> float | None:
    """Extract the first numeric amount from price text.

    Currency symbols and thousands separators are stripped first, so
    "£2,400 pcm £554 pw" gives 2400.

    Returns:
        The amount, or None if the text has no number.
    """
    if not text:
        return None
    match = _NUMBER.search(_CURRENCY_CHARS.sub("", text))
    return float(match.group(0)) if match else None


def extract_price_type(text: str | None) -> PriceType:
    """Classify the billing period of price text.

    "month"/"pcm" means monthly, "year"/"annual" means yearly, and anything
    else is weekly, the usual period for UK student lets.
    """
    if not text:
        return PriceType.WEEKLY
    text_lower = text.lower()
    if any(marker in text_lower for marker in _MONTHLY_MARKERS):
        return PriceType.MONTHLY
    if any(marker in text_lower for marker in _YEARLY_MARKERS):
        return PriceType.YEARLY
    return PriceType.WEEKLY


def extract_postcode(address: str | None) -> str | None:
    """Extract the first full UK postcode from address text.

    Args:
        address: Address text (e.g. "Flat 2, 45 Oxford Road, Manchester, M1 5QA").

    Returns:
        Upper-cased postcode (e.g. "M1 5QA"), or None if no postcode is present.
    """
    if not address:
        return None
    match = POSTCODE_PATTERN.search(address)
    if not match:
        return None
    return " ".join(match.group(0).upper().split())


def location_from_address(address: str | None) -> str | None:
    """Return the town/city segment of a comma-separated UK address.

    UK addresses place the town second to last ("12 Main St, Leeds, LS1 1AA").
    Segments of two characters or fewer are rejected as noise.
    """
    if not address:
        return None
    parts = address.split(",")
    if len(parts) < 2:
        return None
    candidate = parts[-2].strip()
    return candidate if len(candidate) > 2 else None


def location_from_url(url: str | None) -> str | None:
    """Parse the location token out of a ``/student-accommodation/<place>`` URL.

    E.g. ".../student-accommodation/newcastle-upon-tyne" -> "Newcastle Upon Tyne"
    """
    if not url:
        return None
    match = _LOCATION_URL_PATTERN.search(url)
    if not match:
        return None
    token = match.group(1).replace("-", " ").replace("_", " ").strip()
    return token.title() if token else None


def extract_count(text: str | None) -> int | None:
    """Extract the first integer from a bedroom/bathroom text."""
    if not text:
        return None
    match = _INTEGER.search(text)
    return int(match.group(0)) if match else None


def classify_property_type(text: str | None) -> PropertyType | None:
    """Map free-text property descriptions onto the constrained PropertyType."""
    if not text:
        return None
    text_lower = text.lower()
    for property_type, pattern in _PROPERTY_TYPE_RULES:
        if pattern.search(text_lower):
            return property_type
    return None


def is_unfurnished(text: str | None) -> bool:
    """Whether the text explicitly says the property is unfurnished."""
    if not text:
        return False
    return "unfurnished" in text.lower()


def is_unavailable(text: str | None) -> bool:
    """Whether the text explicitly says the property is no longer available."""
    if not text:
        return False
    text_lower = text.lower()
    return any(marker in text_lower for marker in _UNAVAILABLE_MARKERS)


def clean_features(items: Iterable[str]) -> frozenset[str]:
    """Strip amenity strings and drop fragments of two characters or fewer."""
    return frozenset(s for s in (item.strip() for item in items) if len(s) > 2)
