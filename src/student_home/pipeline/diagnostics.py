"""Read-only diagnostic report over the property store."""

from dataclasses import dataclass, field

from student_home.db.base import PropertyStore
from student_home.logging import get_logger
from student_home.models import Property
from student_home.pipeline.cleanup import BatchUrlChecker

logger = get_logger(__name__)


@dataclass
class DiagnosticReport:
    property_count: int
    image_count: int
    properties_with_images: int
    sample_properties: list[Property] = field(default_factory=list)
    sampled_image_urls: int = 0
    broken_urls: list[str] = field(default_factory=list)

    @property
    def image_coverage(self) -> float:
        """Percentage of properties with at least one image."""
        if self.property_count == 0:
            return 0.0
        return 100.0 * self.properties_with_images / self.property_count


async def run_diagnostics(
    store: PropertyStore, checker: BatchUrlChecker, *, sample_size: int = 5
) -> DiagnosticReport:
    """Collect row counts, image coverage, sample rows and sample broken URLs.

    Only reads from the store. The first ``sample_size`` image URLs are probed
    to report which of them are currently broken.
    """
    report = DiagnosticReport(
        property_count=await store.count_properties(),
        image_count=await store.count_images(),
        properties_with_images=await store.count_properties_with_images(),
        sample_properties=await store.sample_properties(sample_size),
    )

    images = await store.list_images()
    sample_urls = list(dict.fromkeys(image.image_url for image in images))[:sample_size]
    verdicts = await checker.check_many(sample_urls)
    report.sampled_image_urls = len(sample_urls)
    report.broken_urls = [url for url in sample_urls if not verdicts.get(url, False)]

    logger.info(
        "diagnostics_complete",
        properties=report.property_count,
        images=report.image_count,
        coverage=round(report.image_coverage, 1),
        broken_in_sample=len(report.broken_urls),
    )
    return report
