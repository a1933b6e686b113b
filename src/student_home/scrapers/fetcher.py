"""Page fetchers: load a listing page and return its HTML."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from curl_cffi.requests import AsyncSession
from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from student_home.logging import get_logger
from student_home.scrapers.constants import BROWSER_HEADERS, USER_AGENT

logger = get_logger(__name__)


@dataclass
class FetchedPage:
    """A fetched listing page."""

    url: str
    html: str
    status_code: int
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class PageFetcher(ABC):
    """Fetches one URL at a time; failures are logged and reported as None."""

    @abstractmethod
    async def fetch(self, url: str) -> FetchedPage | None:
        """Fetch a page.

        Returns:
            The page, or None on timeout, network error or non-success status.
            Failures are never retried here; the next full run is the retry.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release sessions or browser processes."""


class HttpPageFetcher(PageFetcher):
    """Fetches pages over HTTP with curl_cffi browser impersonation."""

    def __init__(self, *, timeout: float = 30.0, proxy_url: str = "") -> None:
        self._timeout = timeout
        self._proxy_url = proxy_url
        self._session: AsyncSession | None = None  # type: ignore[type-arg]

    async def _get_session(self) -> AsyncSession:  # type: ignore[type-arg]
        if self._session is None:
            self._session = AsyncSession()
        return self._session

    async def fetch(self, url: str) -> FetchedPage | None:
        session = await self._get_session()
        kwargs: dict[str, object] = {
            "impersonate": "chrome",
            "headers": BROWSER_HEADERS,
            "timeout": self._timeout,
        }
        if self._proxy_url:
            kwargs["proxy"] = self._proxy_url
        try:
            response = await session.get(url, **kwargs)  # type: ignore[arg-type]
        except Exception as e:
            logger.warning("page_fetch_failed", url=url, error=str(e))
            return None

        if not 200 <= response.status_code < 300:
            logger.warning("page_fetch_bad_status", url=url, status=response.status_code)
            return None
        return FetchedPage(url=url, html=response.text, status_code=response.status_code)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class BrowserPageFetcher(PageFetcher):
    """Fetches fully rendered pages with a headless Chromium via Playwright."""

    def __init__(self, *, timeout: float = 30.0, settle_seconds: float = 2.0) -> None:
        self._timeout_ms = timeout * 1000
        self._settle_ms = settle_seconds * 1000
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def _get_browser(self) -> Browser:
        if self._browser is None:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=True)
        return self._browser

    async def fetch(self, url: str) -> FetchedPage | None:
        browser = await self._get_browser()
        context = await browser.new_context(user_agent=USER_AGENT)
        try:
            page = await context.new_page()
            response = await page.goto(url, wait_until="networkidle", timeout=self._timeout_ms)
            # Wait for client-side rendering to settle
            await page.wait_for_timeout(self._settle_ms)
            html = await page.content()
        except PlaywrightError as e:
            logger.warning("page_fetch_failed", url=url, error=str(e))
            return None
        finally:
            await context.close()

        status = response.status if response is not None else 200
        if not 200 <= status < 300:
            logger.warning("page_fetch_bad_status", url=url, status=status)
            return None
        return FetchedPage(url=url, html=html, status_code=status)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


def create_fetcher(kind: Literal["http", "browser"], *, timeout: float) -> PageFetcher:
    """Build the configured page fetcher."""
    if kind == "browser":
        return BrowserPageFetcher(timeout=timeout)
    return HttpPageFetcher(timeout=timeout)
