"""Image liveness checking via HEAD requests."""

import asyncio
from collections.abc import Sequence

import httpx

from student_home.logging import get_logger
from student_home.scrapers.constants import IMAGE_PROBE_HEADERS

logger = get_logger(__name__)


class LivenessChecker:
    """Probes image URLs with HEAD requests.

    A URL is reachable when the request completes with a 2xx status (after
    redirects). Timeouts, DNS failures, refused connections and error statuses
    all mean unreachable; nothing is retried and nothing is raised.
    """

    def __init__(
        self,
        *,
        timeout: float = 5.0,
        batch_size: int = 10,
        batch_delay: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the checker.

        Args:
            timeout: Per-request timeout in seconds.
            batch_size: Number of concurrent probes per batch in check_many.
            batch_delay: Seconds to pause between batches.
            client: Pre-built HTTP client (the checker then does not own it).
        """
        self._timeout = timeout
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers=IMAGE_PROBE_HEADERS,
            )
        return self._client

    async def check(self, url: str) -> bool:
        """Return True if the URL currently answers a HEAD request successfully."""
        client = await self._get_client()
        try:
            response = await client.head(url, timeout=self._timeout)
        except Exception as e:
            logger.debug("image_unreachable", url=url, error=type(e).__name__)
            return False
        if not response.is_success:
            logger.debug("image_unreachable", url=url, status=response.status_code)
            return False
        return True

    async def check_many(self, urls: Sequence[str]) -> dict[str, bool]:
        """Probe URLs in concurrent batches with a pause between batches.

        Returns:
            Verdict per distinct URL.
        """
        distinct = list(dict.fromkeys(urls))
        results: dict[str, bool] = {}
        total_batches = (len(distinct) + self._batch_size - 1) // self._batch_size

        for batch_no, start in enumerate(range(0, len(distinct), self._batch_size), start=1):
            batch = distinct[start : start + self._batch_size]
            verdicts = await asyncio.gather(*(self.check(url) for url in batch))
            results.update(zip(batch, verdicts, strict=True))
            logger.debug(
                "liveness_batch_checked",
                batch=batch_no,
                total_batches=total_batches,
                working=sum(verdicts),
            )
            if batch_no < total_batches and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

        return results

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
