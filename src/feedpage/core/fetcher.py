"""
RSS/Atom feed fetcher with isolated error handling.

Every failure (network, timeout, bad status, unparseable document) resolves
to an empty entry list so one broken feed never aborts a tree walk.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

import feedparser
import httpx

from feedpage.config import get_config
from feedpage.core.parser import EntryParser
from feedpage.exceptions import ParseError
from feedpage.logger import get_logger
from feedpage.models import FeedItem

logger = get_logger(__name__)


@dataclass
class FetchResult:
    """Result of a feed fetch operation."""

    success: bool
    feed_url: str
    entries: list[FeedItem] = field(default_factory=list)
    error: Optional[str] = None
    fetch_time_seconds: float = 0.0
    http_status: Optional[int] = None

    def __post_init__(self):
        """Validate fetch result."""
        if self.success and self.error:
            raise ValueError("Successful fetch cannot have an error")
        if not self.success and not self.error:
            self.error = "Unknown error"

    @property
    def entries_count(self) -> int:
        return len(self.entries)


@dataclass
class FetchStats:
    """Statistics for feed fetching operations."""

    total_feeds: int = 0
    successful_fetches: int = 0
    failed_fetches: int = 0
    total_entries: int = 0
    total_time_seconds: float = 0.0
    errors_by_type: dict = field(default_factory=dict)

    def add_result(self, result: FetchResult) -> None:
        """Add a fetch result to statistics.

        Args:
            result: FetchResult to add
        """
        self.total_feeds += 1
        self.total_time_seconds += result.fetch_time_seconds

        if result.success:
            self.successful_fetches += 1
            self.total_entries += result.entries_count
        else:
            self.failed_fetches += 1
            error_type = result.error.split(":")[0] if result.error else "unknown"
            self.errors_by_type[error_type] = self.errors_by_type.get(error_type, 0) + 1

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        if self.total_feeds == 0:
            return 0.0
        return self.successful_fetches / self.total_feeds


class FeedFetcher:
    """Asynchronous RSS/Atom feed fetcher sharing one connection pool.

    Use as an async context manager so the pool is closed after the cycle::

        async with FeedFetcher() as fetcher:
            items = await fetcher.fetch(url)
    """

    def __init__(
        self,
        timeout_seconds: Optional[int] = None,
        user_agent: Optional[str] = None,
        max_connections: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize feed fetcher.

        Args:
            timeout_seconds: Time allowed for one whole fetch
            user_agent: User-Agent header for HTTP requests
            max_connections: Size of the shared connection pool
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        config = get_config()

        self.timeout_seconds = (
            config.fetcher.timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.user_agent = user_agent or config.fetcher.user_agent
        self.max_connections = max_connections or config.fetcher.max_connections
        self.follow_redirects = config.fetcher.follow_redirects
        self.max_redirects = config.fetcher.max_redirects

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._parser = EntryParser()

        self.stats = FetchStats()

    async def __aenter__(self) -> "FeedFetcher":
        self._get_client()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=min(self.max_connections, 100),
                ),
                follow_redirects=self.follow_redirects,
                max_redirects=self.max_redirects,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    @property
    def client(self) -> httpx.AsyncClient:
        """The shared HTTP client (also used for the OPML download)."""
        return self._get_client()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> list[FeedItem]:
        """Fetch and parse a feed. Never raises.

        Args:
            url: Feed locator

        Returns:
            Parsed entries, empty on any failure
        """
        result = await self.fetch_feed(url)
        return result.entries

    async def fetch_feed(self, url: str) -> FetchResult:
        """Fetch a single feed and report how it went.

        Args:
            url: Feed locator

        Returns:
            FetchResult with entries or error
        """
        start_time = time.monotonic()
        logger.debug(f"Fetching feed: {url}")

        try:
            status, entries = await asyncio.wait_for(
                self._fetch_entries(url), timeout=self.timeout_seconds
            )
            if status != 200:
                logger.warning(f"Unexpected status {status} for {url}")
                result = FetchResult(
                    success=False,
                    feed_url=url,
                    error=f"HTTP {status}",
                    http_status=status,
                )
            else:
                logger.info(f"Done parsing {url}: {len(entries)} entries")
                result = FetchResult(
                    success=True, feed_url=url, entries=entries, http_status=status
                )

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"Timeout fetching {url}")
            result = FetchResult(success=False, feed_url=url, error=f"Timeout: {e}")

        except httpx.HTTPError as e:
            logger.warning(f"Network error fetching {url}: {e}")
            result = FetchResult(success=False, feed_url=url, error=f"Request error: {e}")

        except ParseError as e:
            logger.warning(f"Failed to parse {url}: {e}")
            result = FetchResult(success=False, feed_url=url, error=f"Parse error: {e}")

        except Exception as e:
            logger.exception(f"Unexpected error fetching {url}")
            result = FetchResult(
                success=False,
                feed_url=url,
                error=f"Unexpected error: {type(e).__name__}: {e}",
            )

        result.fetch_time_seconds = time.monotonic() - start_time
        self.stats.add_result(result)
        return result

    async def _fetch_entries(self, url: str) -> tuple[int, list[FeedItem]]:
        """Stream the feed body and parse it off the event loop.

        Returns:
            (HTTP status, entries); entries are empty unless the status is 200
        """
        client = self._get_client()
        async with client.stream("GET", url) as response:
            if response.status_code != 200:
                return response.status_code, []

            logger.debug(f"Parsing {url}")
            content = await response.aread()

        entries = await asyncio.to_thread(self._parse, content)
        return 200, entries

    def _parse(self, content: bytes) -> list[FeedItem]:
        """Parse a feed document.

        Raises:
            ParseError: When feedparser finds no feed at all in the document
        """
        parsed = feedparser.parse(content)
        if parsed.get("bozo") and not parsed.get("entries") and not parsed.get("version"):
            raise ParseError(str(parsed.get("bozo_exception") or "not a feed"))
        return self._parser.parse_feed(parsed)


def create_fetcher(transport: Optional[httpx.AsyncBaseTransport] = None) -> FeedFetcher:
    """Create a configured FeedFetcher instance.

    Args:
        transport: Optional httpx transport

    Returns:
        Configured FeedFetcher instance
    """
    return FeedFetcher(transport=transport)
