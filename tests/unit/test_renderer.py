"""Unit tests for page-rendering sessions."""

import asyncio

import httpx
import pytest
from pydantic import ValidationError

from feedpage.config import EnricherConfig
from feedpage.core.renderer import HttpPageSession, PlaywrightSession, create_session, is_valid_url
from feedpage.exceptions import ExtractionError

ARTICLE = """<html><body>
<header>Site</header>
<div itemprop="articleBody"><p>First paragraph.</p><p>Second.</p></div>
</body></html>"""

SELECTOR = '[itemprop="articleBody"]'


def extract(handler, url="https://example.com/article", selector=SELECTOR):
    async def run():
        async with HttpPageSession(transport=httpx.MockTransport(handler)) as session:
            return await session.extract(url, selector)

    return asyncio.run(run())


class TestIsValidUrl:
    """Tests for is_valid_url."""

    def test_valid_urls(self):
        assert is_valid_url("https://example.com/a")
        assert is_valid_url("http://example.com")

    def test_invalid_urls(self):
        assert not is_valid_url(None)
        assert not is_valid_url("")
        assert not is_valid_url("/relative/path")
        assert not is_valid_url("ftp://example.com/file")
        assert not is_valid_url("javascript:alert(1)")


class TestHttpPageSession:
    """Tests for HttpPageSession."""

    def test_extract_inner_html(self):
        result = extract(lambda request: httpx.Response(200, html=ARTICLE))
        assert result == "<p>First paragraph.</p><p>Second.</p>"

    def test_no_match_returns_none(self):
        result = extract(lambda request: httpx.Response(200, html="<html><body><p>x</p></body></html>"))
        assert result is None

    def test_custom_selector(self):
        result = extract(lambda request: httpx.Response(200, html=ARTICLE), selector="header")
        assert result == "Site"

    def test_error_status_raises(self):
        with pytest.raises(ExtractionError):
            extract(lambda request: httpx.Response(503))

    def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(ExtractionError):
            extract(handler)

    def test_close_is_idempotent(self):
        async def run():
            session = HttpPageSession(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
            await session.start()
            await session.close()
            await session.close()
            return session

        assert asyncio.run(run())._client is None


class TestPlaywrightSession:
    """Tests for PlaywrightSession that do not launch a browser."""

    def test_init(self):
        session = PlaywrightSession(navigation_timeout_seconds=12, browser_args=["--no-sandbox"])

        assert session.navigation_timeout_ms == 12000
        assert session.browser_args == ["--no-sandbox"]

    def test_close_without_start(self):
        session = PlaywrightSession()
        asyncio.run(session.close())
        assert session._browser is None

    def test_extract_uses_a_fresh_page(self):
        browser = FakeBrowser(result="<p>Rendered</p>")
        session = PlaywrightSession(navigation_timeout_seconds=3)
        session._browser = browser

        result = asyncio.run(session.extract("https://example.com/a", SELECTOR))

        assert result == "<p>Rendered</p>"
        page = browser.pages[0]
        assert page.visited == [("https://example.com/a", 3000)]
        assert page.evaluated_with == SELECTOR
        assert page.closed

    def test_page_is_closed_when_navigation_fails(self):
        browser = FakeBrowser(fail_goto=True)
        session = PlaywrightSession()
        session._browser = browser

        with pytest.raises(ExtractionError):
            asyncio.run(session.extract("https://example.com/a", SELECTOR))

        assert browser.pages[0].closed

    def test_close_releases_browser(self):
        browser = FakeBrowser()
        session = PlaywrightSession()
        session._browser = browser

        asyncio.run(session.close())

        assert browser.closed
        assert session._browser is None


class TestPlaywrightLaunchFailure:
    """A browser that cannot start is tried once per session."""

    def test_failed_launch_is_not_retried(self, monkeypatch):
        import playwright.async_api

        launches = []

        class FailingChromium:
            async def launch(self, headless, args):
                launches.append(args)
                raise RuntimeError("Executable doesn't exist")

        class FakePlaywright:
            chromium = FailingChromium()

            async def stop(self):
                pass

        class FakeContextManager:
            async def start(self):
                return FakePlaywright()

        monkeypatch.setattr(playwright.async_api, "async_playwright", FakeContextManager)

        async def run():
            session = PlaywrightSession()
            errors = []
            for n in range(3):
                try:
                    await session.extract(f"https://example.com/{n}", SELECTOR)
                except ExtractionError as e:
                    errors.append(e)
            return errors

        errors = asyncio.run(run())

        assert len(errors) == 3
        assert len(launches) == 1
        assert all("headless browser" in str(e) for e in errors)


class FakePage:
    def __init__(self, result, fail_goto):
        self.result = result
        self.fail_goto = fail_goto
        self.visited = []
        self.evaluated_with = None
        self.closed = False

    async def goto(self, url, timeout):
        self.visited.append((url, timeout))
        if self.fail_goto:
            raise RuntimeError("net::ERR_CONNECTION_REFUSED")

    async def evaluate(self, script, selector):
        self.evaluated_with = selector
        return self.result

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, result=None, fail_goto=False):
        self.result = result
        self.fail_goto = fail_goto
        self.pages = []
        self.closed = False

    async def new_page(self):
        page = FakePage(self.result, self.fail_goto)
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class TestCreateSession:
    """Tests for create_session."""

    def test_http_backend(self):
        session = create_session(EnricherConfig(backend="http", navigation_timeout_seconds=7))

        assert isinstance(session, HttpPageSession)
        assert session.timeout_seconds == 7

    def test_playwright_backend(self):
        session = create_session(EnricherConfig(backend="playwright"))
        assert isinstance(session, PlaywrightSession)

    def test_default_backend(self):
        assert isinstance(create_session(), PlaywrightSession)

    def test_invalid_backend(self):
        with pytest.raises(ValidationError):
            EnricherConfig(backend="netscape")
