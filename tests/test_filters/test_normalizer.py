"""Tests for RawListing -> Property normalization."""

from datetime import UTC, datetime

import pytest

from student_home.errors import NormalizationError
from student_home.filters.normalizer import normalize_listing, resolve_location
from student_home.models import PriceType, PropertyType, RawListing

LEEDS_URL = "https://www.rightmove.co.uk/student-accommodation/leeds"


def _raw(**overrides: object) -> RawListing:
    fields: dict[str, object] = {
        "source_url": LEEDS_URL,
        "title": "Studio Flat",
        "price_text": "£200 pw",
        "address_text": "12 Main St, Leeds, LS1 1AA",
        "bedrooms_text": "1",
        "image_refs": ("/img/1.jpg",),
        "scraped_at": datetime(2025, 9, 1, tzinfo=UTC),
    }
    fields.update(overrides)
    return RawListing.model_validate(fields)


class TestNormalizeListing:
    def test_studio_flat(self) -> None:
        prop = normalize_listing(_raw(), source="rightmove")

        assert prop.title == "Studio Flat"
        assert prop.price == 200
        assert prop.price_type == PriceType.WEEKLY
        assert prop.location == "Leeds"
        assert prop.postcode == "LS1 1AA"
        assert prop.full_address == "12 Main St, Leeds, LS1 1AA"
        assert prop.bedrooms == 1
        assert prop.bathrooms == 1
        assert prop.property_type == PropertyType.STUDIO
        assert prop.furnished is True
        assert prop.available is True
        assert prop.source == "rightmove"
        assert prop.source_url == LEEDS_URL
        assert prop.id is None

    @pytest.mark.parametrize(
        ("price_text", "price", "price_type"),
        [
            ("£2,400 pcm", 2400, PriceType.MONTHLY),
            ("£650 per month", 650, PriceType.MONTHLY),
            ("£7,800 per year", 7800, PriceType.YEARLY),
            ("£125.50 pw", 125.5, PriceType.WEEKLY),
            ("POA", 0, PriceType.WEEKLY),
            (None, 0, PriceType.WEEKLY),
        ],
    )
    def test_price(self, price_text: str | None, price: float, price_type: PriceType) -> None:
        prop = normalize_listing(_raw(price_text=price_text), source="rightmove")
        assert prop.price == price
        assert prop.price_type == price_type

    @pytest.mark.parametrize("text", [None, "Studio", "0 bedrooms"])
    def test_bedrooms_default_to_one(self, text: str | None) -> None:
        prop = normalize_listing(_raw(bedrooms_text=text), source="rightmove")
        assert prop.bedrooms == 1

    def test_counts(self) -> None:
        prop = normalize_listing(
            _raw(bedrooms_text="5 bedrooms", bathrooms_text="2 bathrooms"), source="rightmove"
        )
        assert (prop.bedrooms, prop.bathrooms) == (5, 2)

    def test_property_type_prefers_type_text(self) -> None:
        prop = normalize_listing(
            _raw(title="Great place near campus", property_type_text="Terraced"),
            source="rightmove",
        )
        assert prop.property_type == PropertyType.HOUSE

    def test_property_type_defaults_to_flat(self) -> None:
        prop = normalize_listing(_raw(title="Great place near campus"), source="rightmove")
        assert prop.property_type == PropertyType.FLAT

    def test_flags(self) -> None:
        prop = normalize_listing(
            _raw(furnished_text="Unfurnished", availability_text="Let agreed"),
            source="rightmove",
        )
        assert prop.furnished is False
        assert prop.available is False

    def test_features_cleaned(self) -> None:
        prop = normalize_listing(
            _raw(features=("  Bills included ", "TV", "", "Gym", "Gym")), source="rightmove"
        )
        assert prop.features == frozenset({"Bills included", "Gym"})

    def test_listing_url_preferred_for_source_url(self) -> None:
        prop = normalize_listing(
            _raw(listing_url="https://www.rightmove.co.uk/properties/111"), source="rightmove"
        )
        assert prop.source_url == "https://www.rightmove.co.uk/properties/111"

    def test_title_whitespace_collapsed(self) -> None:
        prop = normalize_listing(_raw(title="  2 bed\n  flat "), source="rightmove")
        assert prop.title == "2 bed flat"

    @pytest.mark.parametrize("title", [None, "", "   "])
    def test_missing_title_raises(self, title: str | None) -> None:
        with pytest.raises(NormalizationError, match="no title"):
            normalize_listing(_raw(title=title), source="rightmove")

    def test_empty_source_raises(self) -> None:
        with pytest.raises(NormalizationError):
            normalize_listing(_raw(), source="")

    def test_deterministic(self) -> None:
        raw = _raw(features=("Gym", "Bills included"))
        assert normalize_listing(raw, source="rightmove") == normalize_listing(
            raw, source="rightmove"
        )


class TestResolveLocation:
    def test_address_segment(self) -> None:
        assert resolve_location(_raw(location_hint="Bradford")) == "Leeds"

    def test_falls_back_to_hint(self) -> None:
        raw = _raw(address_text="Headingley", location_hint="Leeds")
        assert resolve_location(raw) == "Leeds"

    def test_short_segment_rejected(self) -> None:
        raw = _raw(address_text="Flat 1, NW, M1 5QA", location_hint="Manchester")
        assert resolve_location(raw) == "Manchester"

    def test_falls_back_to_url(self) -> None:
        raw = _raw(
            address_text=None,
            source_url="https://www.rightmove.co.uk/student-accommodation/newcastle-upon-tyne",
        )
        assert resolve_location(raw) == "Newcastle Upon Tyne"

    def test_unknown(self) -> None:
        raw = _raw(address_text=None, source_url="https://www.rightmove.co.uk/search")
        assert resolve_location(raw) == "Unknown"
