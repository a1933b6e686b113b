"""Import run: fetch, extract, normalize, resolve images, probe, persist."""

import asyncio
import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

from student_home.db.base import PropertyStore
from student_home.errors import NormalizationError, StoreError
from student_home.filters.deduplication import ListingDeduplicator
from student_home.filters.normalizer import normalize_listing
from student_home.images.resolver import ImageUrlResolver, UrlChecker
from student_home.logging import get_logger
from student_home.models import DiscoveredUrl, Property, PropertyImage, RawListing
from student_home.scrapers.extractor import ListingExtractor
from student_home.scrapers.fetcher import PageFetcher

logger = get_logger(__name__)


@dataclass
class ImportStats:
    """Counters reported after each page and printed at the end of a run."""

    pages_processed: int = 0
    pages_failed: int = 0
    listings_found: int = 0
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    images_saved: int = 0


@dataclass
class PreparedListing:
    """A normalized property with its resolved, live-checked image URLs."""

    property: Property
    images: list[PropertyImage]


class ImportPipeline:
    """Runs listings through normalization, image resolution and persistence.

    Pages are processed one at a time in worklist order with a fixed delay
    between fetches. Nothing that goes wrong with a single page, listing,
    image or row stops the run; it is counted and the run moves on.
    """

    def __init__(
        self,
        *,
        store: PropertyStore,
        extractor: ListingExtractor,
        resolver: ImageUrlResolver,
        checker: UrlChecker,
        fetcher: PageFetcher | None = None,
        request_delay: float = 2.0,
        image_probe_limit: int = 3,
    ) -> None:
        """Initialize the pipeline.

        Args:
            store: Destination for properties and images.
            extractor: Listing extractor for the provider being crawled.
            resolver: Image URL resolver for the same provider.
            checker: Liveness checker used to probe images.
            fetcher: Page fetcher; only needed for crawl runs.
            request_delay: Seconds to wait between page fetches.
            image_probe_limit: Leading images per listing that are probed.
        """
        self._store = store
        self._extractor = extractor
        self._resolver = resolver
        self._checker = checker
        self._fetcher = fetcher
        self._request_delay = request_delay
        self._image_probe_limit = image_probe_limit
        self._deduplicator = ListingDeduplicator()

    @property
    def source(self) -> str:
        return self._extractor.provider.name

    async def run(self, worklist: Sequence[DiscoveredUrl]) -> ImportStats:
        """Crawl every page in the worklist and persist what it yields."""
        if self._fetcher is None:
            raise ValueError("a page fetcher is required to crawl a worklist")

        stats = ImportStats()
        self._deduplicator = ListingDeduplicator()
        logger.info("import_started", pages=len(worklist), source=self.source)
        for position, entry in enumerate(worklist):
            if position > 0 and self._request_delay > 0:
                await asyncio.sleep(self._request_delay)

            page = await self._fetcher.fetch(entry.url)
            if page is None:
                stats.pages_failed += 1
                logger.warning("page_skipped", url=entry.url, kind=entry.kind.value)
                continue

            raws = self._extractor.extract(
                page.html,
                page.url,
                location_hint=entry.location,
                scraped_at=page.fetched_at,
            )
            if not raws:
                logger.info("no_listings_on_page", url=entry.url)
            await self.import_listings(raws, stats)
            stats.pages_processed += 1
            logger.info(
                "batch_progress",
                page=position + 1,
                pages=len(worklist),
                processed=stats.pages_processed,
                imported=stats.imported,
                skipped=stats.skipped,
                failed=stats.failed,
            )

        logger.info("import_complete", **asdict(stats))
        return stats

    async def import_file(self, path: Path) -> ImportStats:
        """Import a JSON dataset (``{"properties": [...]}`` or a bare list)."""
        data = json.loads(path.read_text(encoding="utf-8"))
        raws = self._extractor.extract_dataset(data, path.resolve().as_uri())
        self._deduplicator = ListingDeduplicator()
        logger.info("dataset_loaded", path=str(path), listings=len(raws))
        stats = await self.import_listings(raws)
        logger.info("import_complete", **asdict(stats))
        return stats

    async def import_listings(
        self, raws: Sequence[RawListing], stats: ImportStats | None = None
    ) -> ImportStats:
        """Normalize, probe and persist one batch of listings.

        Property rows are written first; images are written only for rows
        that were saved. Listings already seen earlier in the run count as
        skipped.
        """
        if stats is None:
            stats = ImportStats()
        stats.listings_found += len(raws)

        prepared: list[PreparedListing] = []
        for raw in raws:
            try:
                item = await self._prepare(raw)
            except NormalizationError as e:
                stats.failed += 1
                logger.warning("listing_dropped", url=raw.source_url, error=str(e))
                continue
            if item is None:
                stats.skipped += 1
                continue
            prepared.append(item)

        if not prepared:
            return stats

        result = await self._store.upsert_properties([item.property for item in prepared])
        stats.imported += result.inserted
        stats.failed += result.failed

        for index, saved in result.saved.items():
            assert saved.id is not None
            try:
                stats.images_saved += await self._store.upsert_images(
                    saved.id, prepared[index].images
                )
            except StoreError as e:
                logger.warning("property_images_failed", property_id=saved.id, error=str(e))
        return stats

    async def _prepare(self, raw: RawListing) -> PreparedListing | None:
        """Normalize a listing and resolve its images.

        Returns None when the listing was already seen earlier in the run, or
        when it has no image that passes the liveness probe, since a property
        without a working image is not kept.

        Raises:
            NormalizationError: If the listing cannot become a Property.
        """
        prop = normalize_listing(raw, source=self.source)
        if self._deduplicator.is_duplicate(raw, prop):
            logger.debug("duplicate_listing_skipped", title=prop.title, url=raw.source_url)
            return None
        urls = await self._resolve_images(raw.image_refs)
        if not urls:
            logger.debug("listing_without_live_image", title=prop.title, url=raw.source_url)
            return None
        images = [PropertyImage(image_url=url) for url in urls]
        return PreparedListing(property=prop, images=images)

    async def _resolve_images(self, refs: Sequence[str]) -> list[str]:
        """Resolve refs to URLs, probing the leading ones.

        Probed refs that answer on no template are dropped. Refs beyond the
        probe limit take the resolver's current best template unverified,
        and only when at least one probed image was live.
        """
        unique_refs = list(dict.fromkeys(refs))
        probed = unique_refs[: self._image_probe_limit]
        rest = unique_refs[self._image_probe_limit :]

        live: list[str] = []
        for ref in probed:
            url = await self._resolver.resolve(ref, self._checker)
            if url is not None:
                live.append(url)
        if not live:
            return []

        resolved = live + [self._resolver.resolve_unverified(ref) for ref in rest]
        return list(dict.fromkeys(resolved))
