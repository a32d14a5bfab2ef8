from __future__ import annotations

import asyncio
import random
from typing import Any

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from deep_web_research.core.errors import BrowserLaunchError
from deep_web_research.utils import get_logger

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36 Edg/119.0.0.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
)

VIEWPORTS = (
    {"width": 1920, "height": 1080},
    {"width": 1366, "height": 768},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
    {"width": 1280, "height": 720},
)


def context_identity(slot: int, rng: random.Random | None = None) -> dict[str, Any]:
    """Browser-context options for one pool slot."""
    rng = rng or random
    return {
        "user_agent": USER_AGENTS[slot % len(USER_AGENTS)],
        "viewport": dict(VIEWPORTS[slot % len(VIEWPORTS)]),
        "device_scale_factor": 1 + rng.random() * 0.5,
        "has_touch": rng.random() > 0.5,
    }


class BrowserPool:
    """Exactly ``size`` isolated browser contexts over one lazily launched browser."""

    def __init__(self, size: int, *, headless: bool = True) -> None:
        if size < 1:
            raise ValueError("pool size must be >= 1")
        self.size = size
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._contexts: list[BrowserContext] = []
        self._lock = asyncio.Lock()
        self.logger = get_logger(__name__)

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        async with self._lock:
            if self._browser is not None:
                return
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(headless=self.headless)
                for slot in range(self.size):
                    context = await self._browser.new_context(**context_identity(slot))
                    self._contexts.append(context)
            except Exception as exc:
                self.logger.error("browser_pool.launch_failed", error=str(exc))
                await self._teardown()
                raise BrowserLaunchError(f"Failed to start browser: {exc}") from exc
            self.logger.info("browser_pool.started", size=self.size, headless=self.headless)

    async def context(self, slot: int) -> BrowserContext:
        """Context for ``slot``; slots are assigned round-robin over the pool."""
        await self.start()
        return self._contexts[slot % len(self._contexts)]

    async def close(self) -> None:
        async with self._lock:
            if self._browser is None and self._playwright is None:
                return
            await self._teardown()
            self.logger.info("browser_pool.closed")

    async def _teardown(self) -> None:
        for context in self._contexts:
            try:
                await context.close()
            except Exception as exc:
                self.logger.warning("browser_pool.context_close_failed", error=str(exc))
        self._contexts = []
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                self.logger.warning("browser_pool.browser_close_failed", error=str(exc))
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
