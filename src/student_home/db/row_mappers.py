"""Conversions between models and store rows."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import ValidationError

from student_home.logging import get_logger
from student_home.models import PriceType, Property, PropertyImage, PropertyType
from student_home.scrapers.parsing import classify_property_type, extract_price_type

logger = get_logger(__name__)

_UNRESOLVED_PLACEHOLDER = "https://unresolved.invalid/"

PROPERTY_COLUMNS = (
    "id",
    "title",
    "price",
    "price_type",
    "location",
    "full_address",
    "postcode",
    "bedrooms",
    "bathrooms",
    "property_type",
    "furnished",
    "available",
    "description",
    "landlord_name",
    "features",
    "source",
    "source_url",
    "scraped_at",
    "created_at",
    "updated_at",
)

IMAGE_COLUMNS = (
    "id",
    "property_id",
    "image_url",
    "alt_text",
    "is_primary",
    "image_order",
    "created_at",
)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def property_to_row(prop: Property) -> dict[str, Any]:
    """Serialize a Property for insertion.

    Features are stored as a sorted JSON list; timestamps as ISO-8601 text.
    ``id``, ``created_at`` and ``updated_at`` are left to the caller when unset.
    """
    return {
        "id": prop.id,
        "title": prop.title,
        "price": prop.price,
        "price_type": _enum_value(prop.price_type),
        "location": prop.location,
        "full_address": prop.full_address,
        "postcode": prop.postcode,
        "bedrooms": prop.bedrooms,
        "bathrooms": prop.bathrooms,
        "property_type": _enum_value(prop.property_type),
        "furnished": prop.furnished,
        "available": prop.available,
        "description": prop.description,
        "landlord_name": prop.landlord_name,
        "features": sorted(prop.features),
        "source": prop.source,
        "source_url": prop.source_url,
        "scraped_at": _isoformat(prop.scraped_at),
        "created_at": _isoformat(prop.created_at),
        "updated_at": _isoformat(prop.updated_at),
    }


def _coerce_enum(
    value: Any, enum: type[Enum], fallback: Enum, classify: Callable[[str], Enum | None]
) -> Any:
    if isinstance(value, enum):
        return value
    try:
        return enum(value)
    except ValueError:
        return (classify(value) if isinstance(value, str) else None) or fallback


def _at_least(value: Any, floor: int, default: int) -> Any:
    if value is None:
        return default
    return max(value, floor)


def row_to_property(row: Mapping[str, Any]) -> Property:
    """Build a Property from a store row (SQLite or PostgREST).

    The hosted schema enforces none of the model's constraints, so legacy
    values are coerced onto the documented defaults before validation:
    unknown property types are reclassified from their text (else flat),
    unknown price types are re-read from their text, counts below one become
    one and missing or negative prices become zero.
    """
    data = {k: v for k, v in dict(row).items() if k in PROPERTY_COLUMNS}
    features = data.get("features") or []
    if isinstance(features, str):
        features = json.loads(features)
    data["features"] = frozenset(features)
    for flag in ("furnished", "available"):
        if data.get(flag) is not None:
            data[flag] = bool(data[flag])

    data["property_type"] = _coerce_enum(
        data.get("property_type"), PropertyType, PropertyType.FLAT, classify_property_type
    )
    data["price_type"] = _coerce_enum(
        data.get("price_type"), PriceType, PriceType.WEEKLY, extract_price_type
    )
    data["bedrooms"] = _at_least(data.get("bedrooms"), 1, 1)
    data["bathrooms"] = _at_least(data.get("bathrooms"), 1, 1)
    if data.get("price") is None or data["price"] < 0:
        data["price"] = 0
    if not data.get("location"):
        data["location"] = "Unknown"
    return Property.model_validate(data)


def rows_to_properties(rows: Iterable[Mapping[str, Any]]) -> list[Property]:
    """Map property rows, skipping any that cannot be coerced into a Property."""
    properties = []
    for row in rows:
        data = dict(row)
        try:
            properties.append(row_to_property(data))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("invalid_property_row_skipped", property_id=data.get("id"), error=str(e))
    return properties


def image_to_row(image: PropertyImage) -> dict[str, Any]:
    return {
        "id": image.id,
        "property_id": image.property_id,
        "image_url": image.image_url,
        "alt_text": image.alt_text,
        "is_primary": image.is_primary,
        "image_order": image.image_order,
        "created_at": _isoformat(image.created_at),
    }


def row_to_image(row: Mapping[str, Any]) -> PropertyImage:
    """Build a PropertyImage from a store row.

    Rows written before URLs were resolved may hold a bare reference. Those are
    returned as-is, unvalidated, with ``is_resolved`` false so cleanup can
    repair or drop them.
    """
    data = {k: v for k, v in dict(row).items() if k in IMAGE_COLUMNS}
    data["is_primary"] = bool(data.get("is_primary"))
    data["image_order"] = _at_least(data.get("image_order"), 0, 0)
    url = data.get("image_url")
    if isinstance(url, str) and not url.startswith(("http://", "https://")):
        image = PropertyImage.model_validate({**data, "image_url": _UNRESOLVED_PLACEHOLDER})
        return image.model_copy(update={"image_url": url})
    return PropertyImage.model_validate(data)


def rows_to_images(rows: Iterable[Mapping[str, Any]]) -> list[PropertyImage]:
    """Map image rows, skipping any that no longer validate."""
    images = []
    for row in rows:
        data = dict(row)
        try:
            images.append(row_to_image(data))
        except (ValidationError, TypeError) as e:
            logger.warning("invalid_image_row_skipped", image_id=data.get("id"), error=str(e))
    return images
