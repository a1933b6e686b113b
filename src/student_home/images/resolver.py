"""Image URL resolution against a provider's media-host templates."""

from typing import Protocol

from student_home.logging import get_logger
from student_home.scrapers.providers import Provider

logger = get_logger(__name__)


class UrlChecker(Protocol):
    async def check(self, url: str) -> bool: ...


def is_absolute(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


class ImageUrlResolver:
    """Maps raw image references to fetchable URLs for one provider.

    Absolute references pass through unchanged. Anything else is expanded
    through the provider's template variants; the first variant that answers
    a liveness probe is remembered and tried first for every later image in
    the same run.
    """

    def __init__(self, provider: Provider) -> None:
        self._provider = provider
        self._preferred: int | None = None

    @property
    def provider(self) -> Provider:
        return self._provider

    @property
    def preferred_template(self) -> str | None:
        """Template selected by probing so far in this run, if any."""
        if self._preferred is None:
            return None
        return self._provider.media_templates[self._preferred]

    def _template_order(self) -> list[int]:
        order = list(range(len(self._provider.media_templates)))
        if self._preferred is not None:
            order.remove(self._preferred)
            order.insert(0, self._preferred)
        return order

    def _expand(self, ref: str) -> list[tuple[int | None, str]]:
        ref = ref.strip()
        if is_absolute(ref):
            return [(None, ref)]
        if ref.startswith("//"):
            return [(None, f"https:{ref}")]
        bare = ref.lstrip("/")
        return [
            (index, self._provider.media_templates[index].format(ref=bare))
            for index in self._template_order()
        ]

    def candidates(self, ref: str) -> list[str]:
        """Candidate URLs for a reference, in probing order."""
        return [url for _, url in self._expand(ref)]

    def resolve_unverified(self, ref: str) -> str:
        """Best guess without probing: the cached template, else the first one."""
        return self._expand(ref)[0][1]

    async def resolve(self, ref: str, checker: UrlChecker) -> str | None:
        """Probe candidates in order and return the first reachable URL.

        Returns:
            A reachable URL, or None if no candidate responds.
        """
        for index, url in self._expand(ref):
            if await checker.check(url):
                if index is not None and index != self._preferred:
                    self._preferred = index
                    logger.info(
                        "image_template_selected",
                        provider=self._provider.name,
                        template=self._provider.media_templates[index],
                    )
                return url
        return None

    def reference_from_url(self, url: str) -> str | None:
        """Recover the raw reference from a URL built by one of the templates.

        Longer template prefixes are matched first so crop-path variants are not
        mistaken for the plain host prefix.
        """
        prefixes = sorted(
            (template.split("{ref}", 1)[0] for template in self._provider.media_templates),
            key=len,
            reverse=True,
        )
        for prefix in prefixes:
            if url.startswith(prefix) and len(url) > len(prefix):
                return url[len(prefix) :]
        return None

    def alternatives(self, url: str) -> list[str]:
        """Other template variants of a stored URL, for in-place repair.

        A stored value that is not an absolute URL is treated as the raw
        reference itself and expanded through every template.
        """
        if not url.strip():
            return []
        ref = self.reference_from_url(url) if is_absolute(url.strip()) else url
        if ref is None:
            return []
        return [candidate for candidate in self.candidates(ref) if candidate != url]
