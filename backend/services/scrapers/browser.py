"""Shared headless Chromium instance driven through Playwright.

The CTP website renders its line listings and timetables server-side but
exposes no API, so every scrape loads a real page. One browser process is
launched lazily and reused for the lifetime of the application; each load
gets its own page which is always closed, including on error paths.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Iterable, Optional

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    Route,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ...config import settings

logger = logging.getLogger("scraper")

DEFAULT_BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font"})


class PageLoadError(RuntimeError):
    """Raised when a page cannot be loaded or its expected content never shows up."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to load {url}: {reason}")
        self.url = url
        self.reason = reason


def should_block_resource(resource_type: str, blocked: Iterable[str] = DEFAULT_BLOCKED_RESOURCE_TYPES) -> bool:
    """Return True when a request of this resource type must be aborted."""
    return (resource_type or "").lower() in set(blocked)


class BrowserManager:
    """Owns the Playwright driver and the single Chromium browser."""

    def __init__(
        self,
        *,
        headless: Optional[bool] = None,
        timeout_seconds: Optional[float] = None,
        blocked_resource_types: Optional[Iterable[str]] = None,
    ) -> None:
        self.headless = settings.browser_headless if headless is None else headless
        self.timeout_seconds = settings.page_timeout_seconds if timeout_seconds is None else timeout_seconds
        self.blocked_resource_types = frozenset(
            blocked_resource_types if blocked_resource_types is not None else settings.blocked_resource_types
        )
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _get_browser(self) -> Browser:
        browser = self._browser
        if browser is not None and browser.is_connected():
            return browser
        async with self._launch_lock:
            if self._browser is not None and not self._browser.is_connected():
                logger.warning("Chromium disconnected; relaunching")
                await self._stop_driver()
            if self._browser is None:
                self._browser = await self._launch()
        return self._browser

    async def _launch(self) -> Browser:
        logger.info("Launching Chromium (headless=%s)", self.headless)
        self._playwright = await async_playwright().start()
        try:
            return await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    "--disable-gpu",
                    "--no-sandbox",
                    "--disable-dev-shm-usage",
                ],
            )
        except Exception:
            logger.error("Chromium failed to launch; stopping the Playwright driver")
            await self._stop_driver()
            raise

    async def _stop_driver(self) -> None:
        """Forget the browser and stop the driver without raising."""
        self._browser = None
        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            with contextlib.suppress(PlaywrightError):
                await playwright.stop()

    async def _filter_request(self, route: Route) -> None:
        if should_block_resource(route.request.resource_type, self.blocked_resource_types):
            await route.abort()
        else:
            await route.continue_()

    @contextlib.asynccontextmanager
    async def open_page(self, url: str, *, wait_for: Optional[str] = None) -> AsyncIterator[Page]:
        """Load ``url`` in a fresh page and yield it once ``wait_for`` is attached."""
        browser = await self._get_browser()
        try:
            page = await browser.new_page()
        except PlaywrightError as exc:
            raise PageLoadError(url, f"could not open a page: {exc}") from exc
        try:
            await page.route("**/*", self._filter_request)
            timeout_ms = self.timeout_seconds * 1000
            try:
                await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                if wait_for:
                    await page.wait_for_selector(wait_for, state="attached", timeout=timeout_ms)
            except PlaywrightTimeoutError as exc:
                raise PageLoadError(url, f"timed out waiting for {wait_for or 'navigation'}") from exc
            except PlaywrightError as exc:
                raise PageLoadError(url, str(exc)) from exc
            yield page
        finally:
            await page.close()

    async def fetch_html(self, url: str, *, wait_for: Optional[str] = None) -> str:
        """Return the rendered HTML of ``url``."""
        async with self.open_page(url, wait_for=wait_for) as page:
            try:
                return await page.content()
            except PlaywrightError as exc:
                raise PageLoadError(url, str(exc)) from exc

    async def evaluate(
        self,
        url: str,
        expression: str,
        *,
        wait_for: Optional[str] = None,
        arg: Any = None,
    ) -> Any:
        """Evaluate a JavaScript expression in the loaded page."""
        async with self.open_page(url, wait_for=wait_for) as page:
            try:
                return await page.evaluate(expression, arg)
            except PlaywrightError as exc:
                raise PageLoadError(url, f"evaluation failed: {exc}") from exc

    async def close(self) -> None:
        """Shut down the browser and the Playwright driver."""
        async with self._launch_lock:
            if self._browser is not None:
                if self._browser.is_connected():
                    await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None
                logger.info("Chromium stopped")
