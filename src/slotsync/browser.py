"""Playwright browser provider.

BrowserProvider owns one Chromium process and hands out isolated pages, each
in its own BrowserContext (no shared cookies between concurrent weeks). The
page and its context are closed on every exit path of ``page()``.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from src.slotsync.errors import UpstreamUnavailable
from src.slotsync.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Playwright, Route

logger = get_logger(__name__)

BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset(
    {"image", "stylesheet", "font", "media"}
)


async def configure_page(
    page: "Page", *, timeout_ms: int = 30000, block_resources: bool = True
) -> None:
    """Set timeouts and optionally drop heavy resources.

    Args:
        page: Playwright Page instance.
        timeout_ms: Default timeout for navigations and selector waits.
        block_resources: Abort image, stylesheet, font and media requests.
    """

    async def _block_resources(route: "Route") -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    if block_resources:
        await page.route("**/*", _block_resources)
    page.set_default_timeout(timeout_ms)
    page.set_default_navigation_timeout(timeout_ms)


class BrowserProvider:
    """Launches Chromium lazily and supplies scoped pages.

    Usage:
        async with BrowserProvider(headless=True) as provider:
            async with provider.page() as page:
                await page.goto(url)
    """

    def __init__(
        self,
        headless: bool = True,
        timeout_ms: int = 30000,
        block_resources: bool = True,
    ) -> None:
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.block_resources = block_resources
        self._playwright: "Playwright | None" = None
        self._browser: "Browser | None" = None
        self._start_lock = asyncio.Lock()

    async def __aenter__(self) -> "BrowserProvider":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _ensure_browser(self) -> "Browser":
        async with self._start_lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless
                )
            except PlaywrightError as e:
                logger.error("browser_launch_failed", error=str(e))
                raise UpstreamUnavailable(f"Browser could not be launched: {e}") from e
            logger.info("browser_launched", headless=self.headless)
            return self._browser

    @asynccontextmanager
    async def page(self) -> AsyncIterator["Page"]:
        """Yield a fresh page in its own context, closing both afterwards.

        Raises:
            UpstreamUnavailable: If the browser or page cannot be provisioned.
        """
        browser = await self._ensure_browser()
        try:
            context = await browser.new_context()
        except PlaywrightError as e:
            logger.error("page_provision_failed", error=str(e))
            raise UpstreamUnavailable(f"Browser context could not be opened: {e}") from e

        try:
            try:
                page = await context.new_page()
            except PlaywrightError as e:
                logger.error("page_provision_failed", error=str(e))
                raise UpstreamUnavailable(f"Page could not be opened: {e}") from e
            await configure_page(
                page, timeout_ms=self.timeout_ms, block_resources=self.block_resources
            )
            yield page
        finally:
            await context.close()
            logger.debug("page_released")

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
            logger.info("browser_closed")
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
