"""Listing extraction from raw listing-page HTML."""

import json
import re
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any, Final
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from student_home.logging import get_logger
from student_home.models import RawListing
from student_home.scrapers.embedded_models import parse_listing_payload
from student_home.scrapers.providers import Provider

logger = get_logger(__name__)

_WINDOW_ASSIGNMENT: Final = re.compile(r"window\.(?:jsonModel|__INITIAL_STATE__|pageData)\s*=\s*")
# Decodes the first JSON value and ignores whatever statements follow it
_JSON_DECODER: Final = json.JSONDecoder()

_LINK_SELECTOR: Final = 'a[href*="/student-accommodation/"]'
_INDEX_PAGE_MARKER: Final = "list-of-uk-universities"


class ListingExtractor:
    """Turns a listing page into zero or more RawListings.

    Two strategies are tried in order: an embedded JSON blob validated against
    the declared listing schema, then the provider's CSS selectors for listing
    cards. A page that yields nothing under either returns an empty list.
    """

    def __init__(self, provider: Provider) -> None:
        self._provider = provider

    @property
    def provider(self) -> Provider:
        return self._provider

    def extract(
        self,
        html: str,
        source_url: str,
        *,
        location_hint: str | None = None,
        scraped_at: datetime | None = None,
    ) -> list[RawListing]:
        """Extract listings from page HTML.

        Args:
            html: Raw page content.
            source_url: URL the page was fetched from.
            location_hint: Seed location of the page, used when an address has no town.
            scraped_at: Fetch timestamp stamped onto every listing (default: now).

        Returns:
            Listings in page order; empty when the page has none.
        """
        if not html:
            return []
        scraped_at = scraped_at or datetime.now(UTC)
        soup = BeautifulSoup(html, "html.parser")

        listings = self._from_embedded(soup, source_url, location_hint, scraped_at)
        if listings:
            logger.debug("extracted_from_embedded_json", url=source_url, count=len(listings))
            return listings

        listings = self._from_cards(soup, source_url, location_hint, scraped_at)
        logger.debug("extracted_from_cards", url=source_url, count=len(listings))
        return listings

    def extract_dataset(
        self,
        data: Any,
        source_url: str,
        *,
        scraped_at: datetime | None = None,
    ) -> list[RawListing]:
        """Extract listings from an already-decoded JSON dataset.

        Accepts the same shapes as embedded page blobs, e.g. ``{"properties": [...]}``
        or a bare list. Returns an empty list when the data matches none of them.
        """
        scraped_at = scraped_at or datetime.now(UTC)
        return [
            item.to_raw_listing(
                source_url=source_url,
                base_url=self._provider.base_url,
                scraped_at=scraped_at,
            )
            for item in parse_listing_payload(data)
        ]

    def _from_embedded(
        self,
        soup: BeautifulSoup,
        source_url: str,
        location_hint: str | None,
        scraped_at: datetime,
    ) -> list[RawListing]:
        for blob in _embedded_blobs(soup):
            try:
                data, _ = _JSON_DECODER.raw_decode(blob.strip())
            except json.JSONDecodeError:
                logger.debug("embedded_json_malformed", url=source_url)
                continue
            embedded = parse_listing_payload(data)
            if embedded:
                return [
                    item.to_raw_listing(
                        source_url=source_url,
                        base_url=self._provider.base_url,
                        scraped_at=scraped_at,
                        location_hint=location_hint,
                    )
                    for item in embedded
                ]
        return []

    def _from_cards(
        self,
        soup: BeautifulSoup,
        source_url: str,
        location_hint: str | None,
        scraped_at: datetime,
    ) -> list[RawListing]:
        cards: list[Tag] = []
        for selector in self._provider.card_selectors:
            cards = soup.select(selector)
            if cards:
                break

        listings: list[RawListing] = []
        for card in cards:
            try:
                listing = self._parse_card(card, source_url, location_hint, scraped_at)
            except Exception as e:
                logger.warning("failed_to_parse_listing_card", url=source_url, error=str(e))
                continue
            if listing is not None:
                listings.append(listing)
        return listings

    def _parse_card(
        self,
        card: Tag,
        source_url: str,
        location_hint: str | None,
        scraped_at: datetime,
    ) -> RawListing | None:
        title = self._field_text(card, "title")
        price_text = self._field_text(card, "price")
        address = self._field_text(card, "address")
        if not (title or price_text or address):
            return None

        link = self._select_one(card, "link")
        href = link.get("href") if link is not None else None
        listing_url = (
            urljoin(self._provider.base_url, href.split("#")[0])
            if isinstance(href, str) and href
            else None
        )

        features_selector = self._provider.selector("features")
        features = (
            tuple(li.get_text(strip=True) for li in card.select(features_selector))
            if features_selector
            else ()
        )

        return RawListing(
            source_url=source_url,
            title=title,
            price_text=price_text,
            address_text=address,
            bedrooms_text=self._field_text(card, "bedrooms"),
            bathrooms_text=self._field_text(card, "bathrooms"),
            description_text=self._field_text(card, "description"),
            image_refs=tuple(_card_image_refs(card)),
            listing_url=listing_url,
            property_type_text=self._field_text(card, "property_type"),
            furnished_text=self._field_text(card, "furnished"),
            availability_text=self._field_text(card, "availability"),
            landlord_name=self._field_text(card, "landlord"),
            features=features,
            location_hint=location_hint,
            scraped_at=scraped_at,
        )

    def _select_one(self, card: Tag, field: str) -> Tag | None:
        selector = self._provider.selector(field)
        if not selector:
            return None
        return card.select_one(selector)

    def _field_text(self, card: Tag, field: str) -> str | None:
        elem = self._select_one(card, field)
        if elem is None:
            return None
        text = " ".join(elem.get_text(" ", strip=True).split())
        return text or None


def _embedded_blobs(soup: BeautifulSoup) -> Iterator[str]:
    """Yield candidate JSON texts from script tags, in document order.

    For a ``window.<name> = ...`` assignment the text starts at the assigned
    value and may run on past it.
    """
    for script in soup.find_all("script"):
        text = script.string
        if not text:
            continue
        if script.get("id") == "__NEXT_DATA__" or script.get("type") == "application/json":
            yield str(text)
            continue
        match = _WINDOW_ASSIGNMENT.search(str(text))
        if match:
            yield str(text)[match.end() :]


def _card_image_refs(card: Tag) -> Iterator[str]:
    """Yield image references within a card, preferring lazy-loaded sources."""
    for img in card.find_all("img"):
        for attr in ("data-src", "srcset", "src"):
            raw = img.get(attr)
            if isinstance(raw, str) and raw.strip():
                # srcset format: "url 1x, url2 2x" -- take first URL
                candidate = raw.split(",")[0].strip().split(" ")[0]
                if candidate and not candidate.startswith("data:"):
                    yield candidate
                    break


def extract_links(html: str, base_url: str) -> list[str]:
    """Extract absolute student-accommodation page links from an index page.

    Args:
        html: Index page content.
        base_url: URL of the index page, used to absolutize relative links.

    Returns:
        Unique links in page order, excluding the index page itself.
    """
    if not html:
        return []
    soup = BeautifulSoup(html, "html.parser")
    links: dict[str, None] = {}
    for anchor in soup.select(_LINK_SELECTOR):
        href = anchor.get("href")
        if not isinstance(href, str) or _INDEX_PAGE_MARKER in href:
            continue
        links[urljoin(base_url, href)] = None
    return list(links)
