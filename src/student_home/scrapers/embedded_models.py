"""Pydantic models for listing data embedded in page JSON blobs and dataset files."""

from collections.abc import Iterator
from datetime import datetime
from typing import Any, Final
from urllib.parse import urljoin

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from student_home.logging import get_logger
from student_home.models import RawListing

logger = get_logger(__name__)

# Declared locations of the listing array inside a blob. Anything else is
# ignored rather than searched for.
LISTING_PATHS: Final[tuple[tuple[str, ...], ...]] = (
    (),
    ("properties",),
    ("listings",),
    ("props", "pageProps", "properties"),
    ("props", "pageProps", "searchResults", "properties"),
)


class EmbeddedImage(BaseModel):
    """One image entry; providers use several key names for the URL."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(
        default="",
        validation_alias=AliasChoices("srcUrl", "url", "src", "image_url", "href"),
    )
    caption: str | None = Field(
        default=None, validation_alias=AliasChoices("caption", "alt", "description")
    )


class EmbeddedImageSet(BaseModel):
    """Rightmove-style ``propertyImages`` container."""

    model_config = ConfigDict(extra="ignore")

    main_image_src: str | None = Field(default=None, validation_alias="mainImageSrc")
    images: list[EmbeddedImage | str] = Field(default_factory=list)


class EmbeddedDisplayPrice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    display_price: str = Field(default="", validation_alias="displayPrice")


class EmbeddedPrice(BaseModel):
    """Structured price object (``{"amount": 650, "frequency": "monthly"}``)."""

    model_config = ConfigDict(extra="ignore")

    amount: float | None = Field(default=None, validation_alias=AliasChoices("amount", "value"))
    frequency: str | None = Field(
        default=None, validation_alias=AliasChoices("frequency", "period")
    )
    display_prices: list[EmbeddedDisplayPrice] = Field(
        default_factory=list, validation_alias="displayPrices"
    )

    def to_text(self) -> str | None:
        for display in self.display_prices:
            if display.display_price:
                return display.display_price
        if self.amount is None:
            return None
        return f"£{_format_amount(self.amount)} {self.frequency or ''}".strip()


class EmbeddedCustomer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    branch_display_name: str | None = Field(default=None, validation_alias="branchDisplayName")


class EmbeddedFeature(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="", validation_alias=AliasChoices("name", "text", "label"))


class EmbeddedListing(BaseModel):
    """A listing-like object found in an embedded blob or dataset file.

    Duck-typed: only objects with both a price and a title count as listings
    (see :meth:`is_listing`).
    """

    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(
        default=None,
        validation_alias=AliasChoices("title", "propertyTypeFullDescription", "name"),
    )
    summary: str | None = Field(
        default=None, validation_alias=AliasChoices("summary", "description")
    )
    price: EmbeddedPrice | str | float | None = None
    price_type: str | None = Field(
        default=None, validation_alias=AliasChoices("price_type", "priceType")
    )
    display_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("displayAddress", "full_address", "fullAddress", "address"),
    )
    location: str | None = None
    bedrooms: int | str | None = Field(
        default=None, validation_alias=AliasChoices("bedrooms", "beds")
    )
    bathrooms: int | str | None = Field(
        default=None, validation_alias=AliasChoices("bathrooms", "baths")
    )
    property_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("propertySubType", "propertyType", "property_type", "type"),
    )
    main_image: EmbeddedImage | str | None = Field(
        default=None, validation_alias=AliasChoices("mainImage", "main_image", "image")
    )
    images: list[EmbeddedImage | str] = Field(default_factory=list)
    property_images: EmbeddedImageSet | None = Field(
        default=None, validation_alias="propertyImages"
    )
    property_url: str | None = Field(
        default=None, validation_alias=AliasChoices("propertyUrl", "source_url", "sourceUrl")
    )
    customer: EmbeddedCustomer | None = None
    landlord_name: str | None = Field(
        default=None, validation_alias=AliasChoices("landlord_name", "landlordName")
    )
    features: list[EmbeddedFeature | str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("features", "keyFeatures", "amenities"),
    )
    furnished: bool | str | None = Field(
        default=None, validation_alias=AliasChoices("furnished", "furnishType", "furnish_type")
    )
    available: bool | str | None = Field(
        default=None, validation_alias=AliasChoices("available", "availability")
    )

    def is_listing(self) -> bool:
        """Whether this object carries both a price and a title."""
        return bool(self.title) and self.price_text() is not None

    def price_text(self) -> str | None:
        """Render the price (string, number or object) as free text."""
        if isinstance(self.price, EmbeddedPrice):
            text = self.price.to_text()
        elif isinstance(self.price, str):
            text = self.price.strip() or None
        elif self.price is not None:
            text = f"£{_format_amount(self.price)}"
        else:
            text = None
        if text is not None and self.price_type and self.price_type.lower() not in text.lower():
            text = f"{text} {self.price_type}"
        return text

    def image_refs(self) -> tuple[str, ...]:
        """Image references in listing order (main image first). Not deduplicated."""
        refs: list[str] = []
        if self.main_image is not None:
            refs.append(_image_url(self.main_image))
        if self.property_images is not None:
            if self.property_images.main_image_src:
                refs.append(self.property_images.main_image_src)
            refs.extend(_image_url(img) for img in self.property_images.images)
        refs.extend(_image_url(img) for img in self.images)
        return tuple(ref for ref in (r.strip() for r in refs) if ref)

    def to_raw_listing(
        self,
        *,
        source_url: str,
        base_url: str,
        scraped_at: datetime,
        location_hint: str | None = None,
    ) -> RawListing:
        """Convert to the extractor's common RawListing shape."""
        landlord = self.landlord_name or (
            self.customer.branch_display_name if self.customer else None
        )
        return RawListing(
            source_url=source_url,
            title=self.title,
            price_text=self.price_text(),
            address_text=self.display_address,
            bedrooms_text=_as_text(self.bedrooms),
            bathrooms_text=_as_text(self.bathrooms),
            description_text=self.summary,
            image_refs=self.image_refs(),
            listing_url=urljoin(base_url, self.property_url) if self.property_url else None,
            property_type_text=self.property_type,
            furnished_text=_flag_text(self.furnished, negative="unfurnished"),
            availability_text=_flag_text(self.available, negative="unavailable"),
            landlord_name=landlord,
            features=tuple(f.name if isinstance(f, EmbeddedFeature) else f for f in self.features),
            location_hint=self.location or location_hint,
            scraped_at=scraped_at,
        )


def _format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


def _image_url(image: EmbeddedImage | str) -> str:
    return image.url if isinstance(image, EmbeddedImage) else image


def _as_text(value: int | str | None) -> str | None:
    return None if value is None else str(value)


def _flag_text(value: bool | str | None, *, negative: str) -> str | None:
    if isinstance(value, bool):
        return None if value else negative
    return value


def _follow(data: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _validate_items(items: list[Any]) -> Iterator[EmbeddedListing]:
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            listing = EmbeddedListing.model_validate(item)
        except ValidationError as e:
            logger.debug("embedded_listing_rejected", errors=e.error_count())
            continue
        if listing.is_listing():
            yield listing


def parse_listing_payload(data: Any) -> list[EmbeddedListing]:
    """Find listings at the declared paths of a decoded JSON blob.

    The first declared path holding at least one valid listing wins. Returns an
    empty list when the blob does not match any declared shape.
    """
    for path in LISTING_PATHS:
        items = _follow(data, path)
        if not isinstance(items, list):
            continue
        listings = list(_validate_items(items))
        if listings:
            return listings
    return []
