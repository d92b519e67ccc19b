"""
Page-rendering sessions used to pull article bodies from their web pages.

Two backends share the PageSession interface:

- ``PlaywrightSession`` renders pages in headless Chromium, so bodies built
  by JavaScript are visible.
- ``HttpPageSession`` downloads the page with httpx and queries it with
  BeautifulSoup. Cheaper, but sees only the served HTML.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from feedpage.config import EnricherConfig, get_config
from feedpage.exceptions import ExtractionError
from feedpage.logger import get_logger

logger = get_logger(__name__)

_EXTRACT_SCRIPT = """(selector) => {
    const element = document.querySelector(selector)
    return element ? element.innerHTML : null
}"""


def is_valid_url(url: Optional[str]) -> bool:
    """Check if URL can be opened in a page.

    Args:
        url: URL to validate

    Returns:
        True if URL is an absolute http(s) URL
    """
    if not url:
        return False
    try:
        result = urlparse(url)
    except ValueError:
        return False
    return result.scheme in ("http", "https") and bool(result.netloc)


class PageSession(ABC):
    """A rendering session able to open pages and query their DOM."""

    async def __aenter__(self) -> "PageSession":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def start(self) -> None:
        """Acquire the session's resources. Called on first use."""

    @abstractmethod
    async def extract(self, url: str, selector: str) -> Optional[str]:
        """Open ``url`` and return the inner HTML of the first ``selector`` match.

        Args:
            url: Page to open
            selector: CSS selector of the element to read

        Returns:
            Inner HTML, or None when no element matches

        Raises:
            ExtractionError: When the page cannot be opened or queried
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the session. Safe to call more than once."""


class PlaywrightSession(PageSession):
    """Headless Chromium session; one fresh page per article."""

    def __init__(
        self,
        navigation_timeout_seconds: int = 30,
        browser_args: Optional[list[str]] = None,
    ) -> None:
        """Initialize the session.

        Args:
            navigation_timeout_seconds: Page load timeout
            browser_args: Extra Chromium launch arguments
        """
        self.navigation_timeout_ms = navigation_timeout_seconds * 1000
        self.browser_args = list(browser_args or [])
        self._playwright = None
        self._browser = None
        self._launch_error: Optional[ExtractionError] = None
        self._launch_lock = asyncio.Lock()

    async def start(self) -> None:
        """Launch the browser.

        Raises:
            ExtractionError: When Chromium cannot be started
        """
        async with self._launch_lock:
            if self._browser is not None:
                return
            # A failed launch is not retried within the session
            if self._launch_error is not None:
                raise ExtractionError(str(self._launch_error))

            try:
                await self._launch()
            except ExtractionError as e:
                self._launch_error = e
                raise
            logger.info("Headless browser launched")

    async def _launch(self) -> None:
        try:
            from playwright.async_api import async_playwright
        except ImportError as e:
            raise ExtractionError("playwright is not installed") from e

        try:
            self._playwright = await async_playwright().start()
        except Exception as e:
            raise ExtractionError(f"Could not start playwright: {e}") from e

        try:
            self._browser = await self._playwright.chromium.launch(
                headless=True, args=self.browser_args
            )
        except Exception as e:
            await self._playwright.stop()
            self._playwright = None
            raise ExtractionError(f"Could not launch headless browser: {e}") from e

    async def extract(self, url: str, selector: str) -> Optional[str]:
        if self._browser is None:
            await self.start()

        try:
            page = await self._browser.new_page()
        except Exception as e:
            raise ExtractionError(f"Could not open a page for {url}: {e}") from e

        try:
            await page.goto(url, timeout=self.navigation_timeout_ms)
            return await page.evaluate(_EXTRACT_SCRIPT, selector)
        except Exception as e:
            raise ExtractionError(f"Rendering {url} failed: {e}") from e
        finally:
            await page.close()

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


class HttpPageSession(PageSession):
    """Plain HTTP session querying the served HTML with BeautifulSoup."""

    def __init__(
        self,
        navigation_timeout_seconds: int = 30,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the session.

        Args:
            navigation_timeout_seconds: Request timeout
            user_agent: User-Agent header
            transport: Optional httpx transport
        """
        self.timeout_seconds = navigation_timeout_seconds
        self.user_agent = user_agent or get_config().enricher.user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                follow_redirects=True,
                max_redirects=5,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )

    async def extract(self, url: str, selector: str) -> Optional[str]:
        if self._client is None:
            await self.start()

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExtractionError(f"Fetching {url} failed: {e}") from e

        soup = BeautifulSoup(response.text, "lxml")
        element = soup.select_one(selector)
        if element is None:
            return None
        return element.decode_contents()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def create_session(config: Optional[EnricherConfig] = None) -> PageSession:
    """Factory function to create a rendering session.

    Args:
        config: Enricher configuration (global config if None)

    Returns:
        PageSession for the configured backend
    """
    config = config or get_config().enricher

    if config.backend == "http":
        return HttpPageSession(
            navigation_timeout_seconds=config.navigation_timeout_seconds,
            user_agent=config.user_agent,
        )
    if config.backend == "playwright":
        return PlaywrightSession(
            navigation_timeout_seconds=config.navigation_timeout_seconds,
            browser_args=config.browser_args,
        )
    raise ValueError(f"Unknown renderer backend: {config.backend}")
