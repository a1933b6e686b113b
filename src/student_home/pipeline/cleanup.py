"""Cleanup run: sweep stored images and repair or prune the store."""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Protocol

from student_home.db.base import PropertyStore
from student_home.errors import StoreError
from student_home.images.resolver import ImageUrlResolver, UrlChecker
from student_home.logging import get_logger
from student_home.models import CleanupPolicy, PropertyImage

logger = get_logger(__name__)


class BatchUrlChecker(UrlChecker, Protocol):
    async def check_many(self, urls: Sequence[str]) -> dict[str, bool]: ...


@dataclass
class CleanupReport:
    """Outcome of one cleanup run."""

    policy: CleanupPolicy
    checked: int = 0
    working: int = 0
    broken: int = 0
    updated: int = 0
    images_deleted: int = 0
    properties_deleted: int = 0
    orphans_deleted: int = 0
    failed: int = 0


class CleanupService:
    """Applies one CleanupPolicy to the whole store.

    Every policy starts with a liveness sweep over all stored images.
    ``delete_imageless_properties`` and ``full_rebuild`` leave every remaining
    property with at least one image that passed the sweep.
    """

    def __init__(
        self,
        *,
        store: PropertyStore,
        checker: BatchUrlChecker,
        resolver: ImageUrlResolver,
    ) -> None:
        self._store = store
        self._checker = checker
        self._resolver = resolver

    async def run(self, policy: CleanupPolicy) -> CleanupReport:
        """Run the cleanup under ``policy`` and return its report."""
        report = CleanupReport(policy=policy)
        logger.info("cleanup_started", policy=policy.value)

        if policy is CleanupPolicy.FULL_REBUILD:
            await self._rebuild(report)
        else:
            images = await self._store.list_images()
            _, broken = await self._sweep(images, report)
            if policy is CleanupPolicy.FIX_URLS_ONLY:
                await self._fix_urls(broken, report)
            else:
                await self._delete_images(broken, report)
                if policy is CleanupPolicy.DELETE_IMAGELESS_PROPERTIES:
                    await self._delete_imageless(report)

        counts = asdict(report)
        counts.pop("policy")
        logger.info("cleanup_complete", policy=policy.value, **counts)
        return report

    async def _sweep(
        self, images: Sequence[PropertyImage], report: CleanupReport
    ) -> tuple[list[PropertyImage], list[PropertyImage]]:
        # Bare references cannot be fetched; they count as broken without a request
        verdicts = await self._checker.check_many(
            [image.image_url for image in images if image.is_resolved]
        )
        working = [image for image in images if verdicts.get(image.image_url, False)]
        broken = [image for image in images if not verdicts.get(image.image_url, False)]
        report.checked += len(images)
        report.working += len(working)
        report.broken += len(broken)
        logger.info(
            "image_sweep_complete",
            checked=len(images),
            working=len(working),
            broken=len(broken),
        )
        return working, broken

    async def _fix_urls(self, broken: Sequence[PropertyImage], report: CleanupReport) -> None:
        updates: dict[str, str] = {}
        for image in broken:
            if image.id is None:
                continue
            for candidate in self._resolver.alternatives(image.image_url):
                if await self._checker.check(candidate):
                    updates[image.id] = candidate
                    break
        if not updates:
            logger.info("no_image_urls_repairable", broken=len(broken))
            return
        result = await self._store.update_image_urls(updates)
        report.updated += result.succeeded
        report.failed += result.failed

    async def _delete_images(self, broken: Sequence[PropertyImage], report: CleanupReport) -> None:
        ids = [image.id for image in broken if image.id is not None]
        if not ids:
            return
        result = await self._store.delete_images(ids)
        report.images_deleted += result.succeeded
        report.failed += result.failed

    async def _delete_imageless(self, report: CleanupReport) -> None:
        missing = await self._store.list_properties_missing_images()
        if missing:
            result = await self._store.delete_properties(missing)
            report.properties_deleted += result.succeeded
            report.failed += result.failed
        report.orphans_deleted += await self._store.delete_orphaned_images()

    async def _rebuild(self, report: CleanupReport) -> None:
        properties = await self._store.list_properties()
        images = await self._store.list_images()
        working, broken = await self._sweep(images, report)

        kept_images: dict[str, list[PropertyImage]] = defaultdict(list)
        for image in working:
            if image.property_id is not None:
                kept_images[image.property_id].append(image)
        survivors = [prop for prop in properties if prop.id in kept_images]

        logger.info(
            "rebuild_plan",
            properties=len(properties),
            survivors=len(survivors),
            images=len(working),
        )
        await self._store.clear_all()
        report.properties_deleted += len(properties) - len(survivors)
        report.images_deleted += len(broken)

        result = await self._store.upsert_properties(survivors)
        report.failed += result.failed
        for saved in result.saved.values():
            assert saved.id is not None
            try:
                await self._store.upsert_images(saved.id, kept_images[saved.id])
            except StoreError as e:
                report.failed += 1
                logger.warning("property_images_failed", property_id=saved.id, error=str(e))
