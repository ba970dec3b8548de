"""Headless-browser scraper with windowed batch scheduling.

One Chromium process is shared by every scrape of a run. Each page gets its
own short-lived browser context, which is always closed again whatever
happens during navigation or extraction.
"""

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import Browser, Page, Playwright, async_playwright

from .config import RAGConfig
from .extractor import extract_content
from .models import ScrapeResult, WebPageDocument

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]

EXTRA_HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Masks the most common headless-automation markers before any page script runs
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
window.chrome = window.chrome || { runtime: {} };
"""


class ScrapeError(Exception):
    """Navigation did not produce a usable page."""


class WebScraper:
    """Scrapes pages with Playwright and fans URL lists out in bounded windows."""

    def __init__(self, config: RAGConfig):
        self.config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._init_lock: asyncio.Lock | None = None

    async def __aenter__(self) -> "WebScraper":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def initialize(self):
        """Launch the shared browser if it is not running yet."""
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()
        async with self._init_lock:
            if self._browser is not None:
                return
            logger.info("[SCRAPER] Launching headless Chromium")
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=True, args=BROWSER_ARGS)

    async def close(self):
        """Shut down the shared browser. Safe to call more than once."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
            logger.info("[SCRAPER] Browser closed")
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self._init_lock = None

    @asynccontextmanager
    async def _page(self) -> AsyncIterator[Page]:
        """Yield a page in a fresh browsing context, closing the context on exit."""
        if self._browser is None:
            raise RuntimeError("Browser not initialized")

        context = await self._browser.new_context(
            user_agent=self.config.user_agent,
            extra_http_headers=EXTRA_HTTP_HEADERS,
            viewport={"width": 1366, "height": 768},
            locale="en-US",
        )
        try:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            page = await context.new_page()
            yield page
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"[SCRAPER] Failed to close browser context: {e}")

    async def scrape_page(self, url: str) -> ScrapeResult:
        """Load ``url`` in the browser and extract its content.

        Never raises: any failure is returned as an unsuccessful result
        carrying a failed document and the error message.
        """
        try:
            await self.initialize()

            async with self._page() as page:
                response = await page.goto(
                    url,
                    wait_until="domcontentloaded",
                    timeout=self.config.navigation_timeout * 1000,
                )
                if response is None or not response.ok:
                    status = response.status if response is not None else "no response"
                    raise ScrapeError(f"HTTP {status}: Failed to load page")

                # Let client-side rendering settle
                await page.wait_for_timeout(self.config.settle_delay * 1000)
                html = await page.content()

            extracted = extract_content(html, url)
            document = WebPageDocument.success(
                url=url,
                title=extracted.title,
                content=extracted.content,
                description=extracted.description,
            )
            logger.debug(f"[SCRAPER] Scraped {url} ({document.content_length} chars)")
            return ScrapeResult(success=True, document=document)

        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"[SCRAPER] Error scraping {url}: {error}")
            return ScrapeResult(success=False, document=WebPageDocument.failed(url, error), error=error)

    async def _scrape_with_delay(self, url: str) -> ScrapeResult:
        result = await self.scrape_page(url)
        if self.config.request_delay > 0:
            await asyncio.sleep(self.config.request_delay)
        return result

    async def scrape_multiple(self, urls: list[str]) -> list[ScrapeResult]:
        """Scrape ``urls`` in sequential windows of ``max_concurrent_requests``.

        Scrapes inside a window run concurrently, and each one waits
        ``request_delay`` after finishing. The next window starts only once
        every scrape of the current one has settled. A task that raises is
        recorded as a failed result without a document, so the batch always
        runs to the end.

        Returns:
            One ScrapeResult per URL, in input order
        """
        results: list[ScrapeResult] = []
        concurrency = self.config.max_concurrent_requests
        total_windows = math.ceil(len(urls) / concurrency)

        for start in range(0, len(urls), concurrency):
            window = urls[start : start + concurrency]
            logger.info(
                f"[SCRAPER] Processing window {start // concurrency + 1}/{total_windows} ({len(window)} URLs)"
            )

            outcomes = await asyncio.gather(
                *(self._scrape_with_delay(url) for url in window),
                return_exceptions=True,
            )

            for url, outcome in zip(window, outcomes):
                if isinstance(outcome, Exception):
                    error = str(outcome) or outcome.__class__.__name__
                    logger.error(f"[SCRAPER] Batch task for {url} failed: {error}")
                    results.append(ScrapeResult(success=False, error=error))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    results.append(outcome)

        return results
