"""Tests for the Playwright scraper and windowed batch scheduling."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from web_rag_server.rag import scraper as scraper_module
from web_rag_server.rag.models import ScrapeResult, WebPageDocument
from web_rag_server.rag.scraper import STEALTH_INIT_SCRIPT, WebScraper

PAGE_HTML = """
<html><head><title>Fake Page</title><meta name="description" content="A fake page"></head>
<body><main>Fake page content that is long enough to be indexed by the pipeline.</main></body></html>
"""


class FakeResponse:
    def __init__(self, status: int):
        self.status = status
        self.ok = 200 <= status < 300


class FakePage:
    def __init__(self, response=None, html: str = PAGE_HTML, goto_error: Exception | None = None):
        self.response = response
        self.html = html
        self.goto_error = goto_error
        self.goto_kwargs = None
        self.waited_ms = None

    async def goto(self, url, **kwargs):
        self.goto_kwargs = kwargs
        if self.goto_error:
            raise self.goto_error
        return self.response

    async def wait_for_timeout(self, ms):
        self.waited_ms = ms

    async def content(self):
        return self.html


class FakeContext:
    def __init__(self, page: FakePage, options: dict):
        self.page = page
        self.options = options
        self.init_scripts: list[str] = []
        self.closed = False

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page: FakePage):
        self.page = page
        self.contexts: list[FakeContext] = []
        self.closed = False

    async def new_context(self, **options):
        context = FakeContext(self.page, options)
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True


def make_scraper(rag_config, page: FakePage) -> tuple[WebScraper, FakeBrowser]:
    scraper = WebScraper(rag_config)
    browser = FakeBrowser(page)
    scraper._browser = browser
    return scraper, browser


@pytest.mark.unit
class TestScrapePage:
    """Test single-page scraping and context cleanup."""

    def test_success(self, rag_config):
        scraper, browser = make_scraper(rag_config, FakePage(response=FakeResponse(200)))

        result = asyncio.run(scraper.scrape_page("https://docs.test/page"))

        assert result.success is True
        assert result.error is None
        document = result.document
        assert document.status == "success"
        assert document.title == "Fake Page"
        assert document.description == "A fake page"
        assert document.domain == "docs.test"
        assert document.content_length == len(document.content)
        assert "long enough" in document.content

    def test_context_configured_and_closed(self, rag_config):
        page = FakePage(response=FakeResponse(200))
        scraper, browser = make_scraper(rag_config, page)

        asyncio.run(scraper.scrape_page("https://docs.test/page"))

        assert len(browser.contexts) == 1
        context = browser.contexts[0]
        assert context.closed is True
        assert context.options["user_agent"] == rag_config.user_agent
        assert "Accept-Language" in context.options["extra_http_headers"]
        assert context.init_scripts == [STEALTH_INIT_SCRIPT]
        assert page.goto_kwargs["timeout"] == rag_config.navigation_timeout * 1000

    def test_non_ok_response_is_failure(self, rag_config):
        scraper, browser = make_scraper(rag_config, FakePage(response=FakeResponse(404)))

        result = asyncio.run(scraper.scrape_page("https://docs.test/missing"))

        assert result.success is False
        assert "HTTP 404" in result.error
        assert result.document.status == "failed"
        assert result.document.error == result.error
        assert result.document.domain == "docs.test"
        assert result.document.title == ""
        assert result.document.content == ""
        assert browser.contexts[0].closed is True

    def test_missing_response_is_failure(self, rag_config):
        scraper, browser = make_scraper(rag_config, FakePage(response=None))

        result = asyncio.run(scraper.scrape_page("https://docs.test/"))

        assert result.success is False
        assert "no response" in result.error
        assert browser.contexts[0].closed is True

    def test_navigation_error_is_failure(self, rag_config):
        page = FakePage(goto_error=TimeoutError("Timeout 30000ms exceeded"))
        scraper, browser = make_scraper(rag_config, page)

        result = asyncio.run(scraper.scrape_page("https://slow.test/"))

        assert result.success is False
        assert "Timeout" in result.error
        assert result.document.domain == "slow.test"
        assert browser.contexts[0].closed is True

    def test_extraction_error_is_failure(self, rag_config, monkeypatch):
        def broken_extract(html, url):
            raise ValueError("parser exploded")

        monkeypatch.setattr(scraper_module, "extract_content", broken_extract)
        scraper, browser = make_scraper(rag_config, FakePage(response=FakeResponse(200)))

        result = asyncio.run(scraper.scrape_page("https://docs.test/page"))

        assert result.success is False
        assert result.error == "parser exploded"
        assert browser.contexts[0].closed is True

    def test_malformed_url_gets_unknown_domain(self, rag_config):
        page = FakePage(goto_error=ValueError("Protocol error: Cannot navigate to invalid URL"))
        scraper, _ = make_scraper(rag_config, page)

        result = asyncio.run(scraper.scrape_page("not a url"))

        assert result.success is False
        assert result.document.domain == "unknown"

    def test_close_releases_browser(self, rag_config):
        scraper, browser = make_scraper(rag_config, FakePage(response=FakeResponse(200)))

        asyncio.run(scraper.close())
        asyncio.run(scraper.close())

        assert browser.closed is True
        assert scraper._browser is None


class ScriptedScraper(WebScraper):
    """Scraper whose pages finish after scripted delays."""

    def __init__(self, config, delays: dict[str, float], failures: set[str] = frozenset()):
        super().__init__(config)
        self.delays = delays
        self.failures = failures
        self.active = 0
        self.max_active = 0
        self.events: list[tuple[str, str]] = []

    async def scrape_page(self, url: str) -> ScrapeResult:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(("start", url))
        try:
            await asyncio.sleep(self.delays.get(url, 0))
            if url in self.failures:
                raise RuntimeError(f"task crashed for {url}")
            return ScrapeResult(success=True, document=WebPageDocument.success(url, url, "content"))
        finally:
            self.active -= 1
            self.events.append(("end", url))


@pytest.mark.unit
class TestScrapeMultiple:
    """Test windowed scheduling."""

    def test_results_keep_input_order(self, rag_config):
        """Test that b failing fastest and c finishing last still yields [a, b, c]."""
        rag_config.max_concurrent_requests = 3
        scraper = ScriptedScraper(rag_config, delays={"a": 0.02, "b": 0.0, "c": 0.05}, failures={"b"})

        results = asyncio.run(scraper.scrape_multiple(["a", "b", "c"]))

        assert [r.success for r in results] == [True, False, True]
        assert results[0].document.url == "a"
        assert results[2].document.url == "c"
        assert results[1].document is None
        assert "task crashed for b" in results[1].error

    def test_task_failure_does_not_stop_later_windows(self, rag_config):
        rag_config.max_concurrent_requests = 2
        scraper = ScriptedScraper(rag_config, delays={}, failures={"u1"})

        results = asyncio.run(scraper.scrape_multiple(["u0", "u1", "u2", "u3", "u4"]))

        assert len(results) == 5
        assert [r.success for r in results] == [True, False, True, True, True]

    def test_windows_run_sequentially(self, rag_config):
        rag_config.max_concurrent_requests = 2
        scraper = ScriptedScraper(rag_config, delays={"u0": 0.03, "u1": 0.01, "u2": 0.0})

        asyncio.run(scraper.scrape_multiple(["u0", "u1", "u2"]))

        assert scraper.max_active == 2
        # The third URL only starts after both URLs of the first window ended
        assert scraper.events.index(("start", "u2")) > scraper.events.index(("end", "u0"))
        assert scraper.events.index(("start", "u2")) > scraper.events.index(("end", "u1"))

    def test_delay_applied_per_task(self, rag_config, monkeypatch):
        rag_config.request_delay = 1.5
        scraper = WebScraper(rag_config)
        scraper.scrape_page = AsyncMock(side_effect=lambda url: ScrapeResult(success=False, error=url))
        sleep = AsyncMock()
        monkeypatch.setattr(scraper_module.asyncio, "sleep", sleep)

        results = asyncio.run(scraper.scrape_multiple(["a", "b", "c"]))

        assert [r.error for r in results] == ["a", "b", "c"]
        assert sleep.await_count == 3
        sleep.assert_awaited_with(1.5)

    def test_empty_input(self, rag_config):
        scraper = ScriptedScraper(rag_config, delays={})

        assert asyncio.run(scraper.scrape_multiple([])) == []
