"""Provider registry: markup selectors and media-host URL templates per listing site."""

from dataclasses import dataclass, field
from typing import Final

from student_home.errors import ConfigurationError


@dataclass(frozen=True)
class Provider:
    """Markup and URL conventions of one property-listing website.

    ``media_templates`` are tried in order when a scraped image reference is not
    already absolute; ``{ref}`` is replaced by the reference without its leading
    slash. Which template the CDN actually serves varies over time, so the
    image resolver probes them rather than trusting any single one.
    """

    name: str
    base_url: str
    media_templates: tuple[str, ...]
    card_selectors: tuple[str, ...]
    field_selectors: dict[str, str] = field(default_factory=dict)

    def selector(self, name: str) -> str | None:
        return self.field_selectors.get(name)


RIGHTMOVE: Final = Provider(
    name="rightmove",
    base_url="https://www.rightmove.co.uk",
    media_templates=(
        "https://media.rightmove.co.uk/{ref}",
        "https://media.rightmove.co.uk:443/{ref}",
        "https://media.rightmove.co.uk/dir/crop/10:9-16:9/{ref}",
        "https://media.rightmove.co.uk:443/dir/crop/10:9-16:9/{ref}",
        "https://images.rightmove.co.uk/{ref}",
    ),
    card_selectors=(
        '[data-testid^="propertyCard-"]',
        'div[data-test="propertyCard"]',
        ".l-searchResult.is-list",
        ".propertyCard",
    ),
    field_selectors={
        "title": '.propertyCard-title, h2, [data-testid="property-information"] a',
        "address": '[data-testid="property-address"], address, .propertyCard-address',
        "price": (
            '[data-testid="property-price"], .propertyCard-priceValue, '
            ".property-information--price"
        ),
        "bedrooms": '.bedrooms, [title="Bedrooms"], span[class*="bedroomsCount"]',
        "bathrooms": '.bathrooms, [title="Bathrooms"], span[class*="bathroomsCount"]',
        "description": '.propertyCard-description, [data-testid="property-description"]',
        "property_type": 'span[class*="propertyType"], .propertyCard-type',
        "availability": ".availability, .propertyCard-availability",
        "furnished": ".furnishing, .propertyCard-furnishing",
        "landlord": ".propertyCard-branchSummary-branchName, .propertyCard-contactsAddedOrReduced",
        "features": ".key-features li, .features li, .amenities li",
        "link": 'a[href*="/properties/"]',
    },
)

PROVIDERS: Final[dict[str, Provider]] = {RIGHTMOVE.name: RIGHTMOVE}


def get_provider(name: str) -> Provider:
    """Look up a provider by name.

    Raises:
        ConfigurationError: If the provider is unknown.
    """
    try:
        return PROVIDERS[name.lower()]
    except KeyError:
        known = ", ".join(sorted(PROVIDERS))
        raise ConfigurationError(f"Unknown provider {name!r} (known: {known})") from None
