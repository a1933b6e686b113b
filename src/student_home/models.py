"""Pydantic models for listings, properties and their images."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PriceType(str, Enum):
    """Billing period of an advertised rent."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PropertyType(str, Enum):
    """Constrained property type stored on every row."""

    FLAT = "flat"
    HOUSE = "house"
    STUDIO = "studio"
    ROOM = "room"


class CleanupPolicy(str, Enum):
    """How aggressively the cleanup job repairs the image set."""

    FIX_URLS_ONLY = "fix_urls_only"
    DELETE_UNREACHABLE_IMAGES = "delete_unreachable_images"
    DELETE_IMAGELESS_PROPERTIES = "delete_imageless_properties"
    FULL_REBUILD = "full_rebuild"


class DiscoverySource(str, Enum):
    """Where a worklist URL was discovered."""

    INDEX = "index"
    LOCATION = "location"
    UNIVERSITY = "university"


class DiscoveredUrl(BaseModel):
    """A candidate listing-page URL gathered during discovery."""

    model_config = ConfigDict(frozen=True)

    url: str
    kind: DiscoverySource
    location: str | None = None
    name: str | None = None


class RawListing(BaseModel):
    """Free-text listing fields as scraped, before normalization.

    Ephemeral: has no identity beyond ``source_url`` and is discarded once
    normalized into a :class:`Property`.
    """

    model_config = ConfigDict(frozen=True)

    source_url: str
    title: str | None = None
    price_text: str | None = None
    address_text: str | None = None
    bedrooms_text: str | None = None
    bathrooms_text: str | None = None
    description_text: str | None = None
    image_refs: tuple[str, ...] = ()

    listing_url: str | None = None
    property_type_text: str | None = None
    furnished_text: str | None = None
    availability_text: str | None = None
    landlord_name: str | None = None
    features: tuple[str, ...] = ()
    location_hint: str | None = None
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Property(BaseModel):
    """A normalized accommodation listing as persisted in the store."""

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="Assigned by the store on insert")
    title: str = Field(min_length=1)
    price: float = Field(default=0, ge=0)
    price_type: PriceType = PriceType.WEEKLY
    location: str = "Unknown"
    full_address: str | None = None
    postcode: str | None = None
    bedrooms: int = Field(default=1, ge=1)
    bathrooms: int = Field(default=1, ge=1)
    property_type: PropertyType = PropertyType.FLAT
    furnished: bool = True
    available: bool = True
    description: str | None = None
    landlord_name: str | None = None
    source: str = Field(min_length=1, description="Provenance tag, e.g. 'rightmove'")
    source_url: str | None = None
    features: frozenset[str] = frozenset()
    scraped_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("postcode")
    @classmethod
    def normalize_postcode(cls, v: str | None) -> str | None:
        """Normalize postcode to uppercase with single space."""
        if v is None:
            return None
        return " ".join(v.upper().split()) or None


class PropertyImage(BaseModel):
    """A fully-qualified image URL belonging to a property."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    property_id: str | None = None
    image_url: str
    alt_text: str | None = None
    is_primary: bool = False
    image_order: int = Field(default=0, ge=0)
    created_at: datetime | None = None

    @field_validator("image_url")
    @classmethod
    def require_absolute_url(cls, v: str) -> str:
        """Only resolved http(s) URLs may be stored."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"image_url must be absolute http(s), got {v!r}")
        return v

    @property
    def is_resolved(self) -> bool:
        """False for legacy rows read back holding a bare media reference."""
        return self.image_url.startswith(("http://", "https://"))
