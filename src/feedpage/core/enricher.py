"""
Summary enricher: replaces short feed summaries with the article body
scraped from the article page, and builds the summary cache for the next
refresh cycle.
"""

import asyncio
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Optional, Sequence

from feedpage.config import get_config
from feedpage.core.renderer import PageSession, is_valid_url
from feedpage.exceptions import ExtractionError
from feedpage.logger import get_logger
from feedpage.models import EMPTY_CACHE, DigestItem, DigestNode, SummaryCache

logger = get_logger(__name__)


@dataclass
class EnrichStats:
    """Counters for one enrichment pass."""

    items: int = 0
    kept: int = 0
    reused: int = 0
    scraped: int = 0
    failed: int = 0


class SummaryEnricher:
    """Fills short summaries from article pages, one page at a time per node."""

    def __init__(
        self,
        min_summary_length: Optional[int] = None,
        content_selector: Optional[str] = None,
        timeout_seconds: Optional[int] = None,
        enabled: Optional[bool] = None,
    ):
        """Initialize the enricher.

        Args:
            min_summary_length: Summaries at least this long are kept as-is
            content_selector: CSS selector of the article body
            timeout_seconds: Upper bound for one article, navigation included
            enabled: When False no page is opened; only the cache is rebuilt
        """
        config = get_config().enricher

        self.min_summary_length = (
            config.min_summary_length if min_summary_length is None else min_summary_length
        )
        self.content_selector = content_selector or config.content_selector
        self.timeout_seconds = (
            config.navigation_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.enabled = config.enabled if enabled is None else enabled

        self.stats = EnrichStats()

    async def enrich(
        self,
        session: PageSession,
        digest: Sequence[DigestNode],
        previous: SummaryCache = EMPTY_CACHE,
    ) -> tuple[list[DigestNode], SummaryCache]:
        """Enrich every node of a digest.

        Nodes run concurrently; items inside a node run sequentially in rank
        order. The returned cache holds the resolved summary of every item
        of the digest, keeping a longer previous value when there is one.

        Args:
            session: Rendering session
            digest: Nodes produced by the aggregator
            previous: Cache of the last published cycle

        Returns:
            (enriched nodes, new summary cache)
        """
        self.stats = EnrichStats()

        results = await asyncio.gather(
            *(self._enrich_node(session, node, previous) for node in digest)
        )

        nodes = []
        merged: dict[str, str] = {}
        for node, partial in results:
            nodes.append(node)
            for link, summary in partial.items():
                if len(summary) >= len(merged.get(link, "")):
                    merged[link] = summary

        logger.info(
            f"Summaries: {self.stats.items} items, {self.stats.kept} kept, "
            f"{self.stats.reused} reused, {self.stats.scraped} scraped, "
            f"{self.stats.failed} failed"
        )
        return nodes, MappingProxyType(merged)

    async def _enrich_node(
        self,
        session: PageSession,
        node: DigestNode,
        previous: SummaryCache,
    ) -> tuple[DigestNode, dict[str, str]]:
        items = []
        partial: dict[str, str] = {}

        for item in node.items:
            summary = await self.resolve(session, item, previous)
            if item.link:
                cached = previous.get(item.link, "")
                partial[item.link] = cached if len(cached) > len(summary) else summary
            items.append(item if summary == item.summary else replace(item, summary=summary))

        return replace(node, items=tuple(items)), partial

    async def resolve(
        self,
        session: PageSession,
        item: DigestItem,
        previous: SummaryCache = EMPTY_CACHE,
    ) -> str:
        """Best summary for one item.

        Long summaries and summaries already resolved by an earlier cycle
        are returned without opening a page. Any scraping failure keeps the
        current summary.
        """
        self.stats.items += 1
        summary = item.summary or ""

        if len(summary) >= self.min_summary_length:
            self.stats.kept += 1
            return summary

        if item.link and item.link in previous and previous[item.link] == summary:
            self.stats.reused += 1
            return summary

        if not self.enabled or not is_valid_url(item.link):
            self.stats.kept += 1
            return summary

        try:
            body = await asyncio.wait_for(
                session.extract(item.link, self.content_selector), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out scraping {item.link}")
            body = None
        except ExtractionError as e:
            logger.warning(str(e))
            body = None
        except Exception:
            logger.exception(f"Unexpected error scraping {item.link}")
            body = None

        if body and body.strip():
            self.stats.scraped += 1
            return body

        self.stats.failed += 1
        return summary


def create_enricher() -> SummaryEnricher:
    """Create a SummaryEnricher from the global configuration."""
    return SummaryEnricher()
