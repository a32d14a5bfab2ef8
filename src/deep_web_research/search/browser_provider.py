from __future__ import annotations

from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from deep_web_research.config import settings
from deep_web_research.core.errors import SearchQueryError
from deep_web_research.core.interfaces import SearchProvider
from deep_web_research.search.browser_pool import BrowserPool
from deep_web_research.utils import get_logger

CONSENT_SELECTOR = 'button:has-text("Accept all")'
QUERY_INPUT_SELECTORS = ('textarea[name="q"]', 'input[name="q"]', 'input[type="text"]')
RESULTS_SELECTOR = "div.g"

_EXTRACT_RESULTS_JS = """
(elements) => elements.map((el) => {
    const titleEl = el.querySelector('h3');
    const linkEl = el.querySelector('a');
    const snippetEl = el.querySelector('div.VwiC3b');
    if (!titleEl || !linkEl || !snippetEl) return null;
    return {
        title: titleEl.textContent || '',
        url: linkEl.href || '',
        snippet: snippetEl.textContent || '',
    };
}).filter((item) => item !== null && item.url)
"""


class BrowserSearchProvider(SearchProvider):
    """Runs queries against a search engine page inside pooled browser contexts."""

    def __init__(
        self,
        pool: BrowserPool,
        *,
        engine_url: str | None = None,
        navigation_timeout_ms: int | None = None,
        results_timeout_ms: int | None = None,
    ) -> None:
        runtime = settings.runtime
        self.pool = pool
        self.engine_url = engine_url or runtime.search_engine_url
        self.navigation_timeout_ms = navigation_timeout_ms or runtime.navigation_timeout_ms
        self.results_timeout_ms = results_timeout_ms or runtime.results_timeout_ms
        self.logger = get_logger(__name__)

    async def search(self, query: str, **kwargs: Any) -> list[dict[str, Any]]:
        slot = int(kwargs.get("slot", 0))
        context = await self.pool.context(slot)
        page = await context.new_page()
        try:
            await page.goto(self.engine_url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
            await self._dismiss_consent(page)

            search_input = None
            for selector in QUERY_INPUT_SELECTORS:
                search_input = await page.query_selector(selector)
                if search_input is not None:
                    break
            if search_input is None:
                raise SearchQueryError("Search input not found")

            await search_input.click()
            await search_input.fill(query)
            await page.keyboard.press("Enter")

            try:
                await page.wait_for_selector(RESULTS_SELECTOR, timeout=self.results_timeout_ms)
            except PlaywrightTimeoutError as exc:
                raise SearchQueryError("Timed out waiting for search results") from exc

            records = await page.eval_on_selector_all(RESULTS_SELECTOR, _EXTRACT_RESULTS_JS)
            if not records:
                raise SearchQueryError("No search results found")

            self.logger.debug("browser_search.success", query=query, slot=slot, results=len(records))
            return [
                {"title": item["title"], "url": item["url"], "snippet": item["snippet"]}
                for item in records
            ]
        except PlaywrightError as exc:
            raise SearchQueryError(f"Search navigation failed: {exc}") from exc
        finally:
            await page.close()

    async def _dismiss_consent(self, page) -> None:
        try:
            button = await page.query_selector(CONSENT_SELECTOR)
            if button is not None:
                await button.click()
                await page.wait_for_load_state("networkidle")
        except PlaywrightError as exc:
            self.logger.debug("browser_search.consent_skipped", error=str(exc))

    async def close(self) -> None:
        await self.pool.close()
