from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from deep_web_research.config import DEFAULT_TABLES, HeuristicTables, settings
from deep_web_research.core.errors import (
    BotChallengeError,
    BrowserLaunchError,
    InputValidationError,
    PageFetchError,
)
from deep_web_research.core.interfaces import PageFetcher
from deep_web_research.utils import get_logger
from deep_web_research.utils.urls import is_http_url, is_processable_url

FETCH_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FETCH_VIEWPORT = {"width": 1280, "height": 800}


def looks_like_challenge(title: str, tables: HeuristicTables = DEFAULT_TABLES) -> bool:
    lowered = (title or "").lower()
    return any(phrase in lowered for phrase in tables.challenge_title_phrases)


class BrowserPageFetcher(PageFetcher):
    """Fetches rendered page markup through a single lazily started browser context."""

    def __init__(
        self,
        *,
        headless: bool | None = None,
        navigation_timeout_ms: int | None = None,
        delay_range_ms: tuple[int, int] | None = None,
        tables: HeuristicTables = DEFAULT_TABLES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        runtime = settings.runtime
        self.headless = runtime.browser_headless if headless is None else headless
        self.navigation_timeout_ms = navigation_timeout_ms or runtime.navigation_timeout_ms
        self.delay_range_ms = delay_range_ms or (runtime.page_delay_min_ms, runtime.page_delay_max_ms)
        self.tables = tables
        self._sleep = sleep
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._lock = asyncio.Lock()
        self.logger = get_logger(__name__)

    async def _ensure_context(self) -> BrowserContext:
        async with self._lock:
            if self._context is not None:
                return self._context
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=self.headless)
                self._context = await self._browser.new_context(
                    user_agent=FETCH_USER_AGENT,
                    viewport=FETCH_VIEWPORT,
                    device_scale_factor=1,
                    is_mobile=False,
                    has_touch=False,
                )
            except Exception as exc:
                self.logger.error("fetcher.launch_failed", error=str(exc))
                await self._teardown()
                raise BrowserLaunchError(f"Failed to start browser: {exc}") from exc
            return self._context

    async def fetch(self, url: str) -> str:
        if not is_processable_url(url, self.tables.skip_extensions):
            raise InputValidationError(f"Cannot process URL: {url}")

        context = await self._ensure_context()
        low, high = self.delay_range_ms
        if high > 0:
            await self._sleep(random.uniform(low, max(low, high)) / 1000)

        page = await context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
            await self._raise_on_challenge(page, url)
            return await page.content()
        except PlaywrightError as exc:
            self.logger.warning("fetcher.navigation_failed", url=url, error=str(exc))
            raise PageFetchError(f"Failed to fetch {url}: {exc}") from exc
        finally:
            await page.close()

    async def _raise_on_challenge(self, page: Page, url: str) -> None:
        for selector in self.tables.challenge_selectors:
            if await page.query_selector(selector) is not None:
                self.logger.warning("fetcher.bot_challenge", url=url, selector=selector)
                raise BotChallengeError(f"Bot challenge detected at {url}")
        title = await page.title()
        if looks_like_challenge(title, self.tables):
            self.logger.warning("fetcher.bot_challenge", url=url, title=title)
            raise BotChallengeError(f"Bot challenge detected at {url}: {title!r}")

    async def close(self) -> None:
        async with self._lock:
            await self._teardown()

    async def _teardown(self) -> None:
        if self._context is not None:
            try:
                await self._context.close()
            except PlaywrightError as exc:
                self.logger.warning("fetcher.context_close_failed", error=str(exc))
            self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                self.logger.warning("fetcher.browser_close_failed", error=str(exc))
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


async def visit_page(fetcher: PageFetcher, url: str) -> str:
    """Fetch a single page for direct inspection; only http(s) is accepted."""
    if not is_http_url(url):
        raise InputValidationError(f"Only http and https URLs are supported: {url}")
    return await fetcher.fetch(url)
