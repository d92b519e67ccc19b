"""
Tree aggregator: walks the feed tree, fetches every feed leaf concurrently
and turns each top-level folder into a ranked, deduplicated DigestNode.
"""

import asyncio
from datetime import datetime, tzinfo
from typing import Callable, Optional, Sequence
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

from feedpage.config import get_config
from feedpage.core.fetcher import FeedFetcher
from feedpage.exceptions import CycleError
from feedpage.logger import get_logger
from feedpage.models import (
    DigestItem,
    DigestNode,
    FeedItem,
    FeedNode,
    Folder,
    Leaf,
    SummaryCache,
)

logger = get_logger(__name__)


def dedup_items(items: Sequence[FeedItem]) -> list[FeedItem]:
    """Drop undated items and later duplicates.

    An item is a duplicate when any strictly earlier item of ``items``
    (dated or not, kept or not) has the same link or the same guid. Empty
    links and guids never match.

    Args:
        items: Items in collection order

    Returns:
        Surviving items in collection order
    """
    seen_links: set[str] = set()
    seen_guids: set[str] = set()
    unique = []

    for item in items:
        duplicate = (item.link and item.link in seen_links) or (
            item.guid and item.guid in seen_guids
        )
        if item.link:
            seen_links.add(item.link)
        if item.guid:
            seen_guids.add(item.guid)

        if item.published is None or duplicate:
            continue
        unique.append(item)

    return unique


def rank_items(items: Sequence[FeedItem], max_items: int) -> list[FeedItem]:
    """Newest first, ties keep their relative order, capped at ``max_items``."""
    ranked = sorted(items, key=lambda item: item.published, reverse=True)
    return ranked[:max_items]


def resolve_summary(cache: SummaryCache, item: FeedItem) -> str:
    """Pick the summary of an item.

    Precedence: cached summary, ``content:encoded``, ``atom:content``,
    ``atom:summary``, ``description``, then the empty string.
    """
    if item.link and cache.get(item.link):
        return cache[item.link]

    for body in (item.content_encoded, item.atom_content, item.atom_summary, item.description):
        if body:
            return body
    return ""


def format_time(dt: datetime) -> str:
    """Time of day as ``3:04:05 PM``."""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d}:{dt.second:02d} {suffix}"


def format_date(dt: datetime) -> str:
    """Calendar date as ``10/17/2026``."""
    return f"{dt.month}/{dt.day}/{dt.year}"


def build_subheads(
    item: FeedItem,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> tuple[str, ...]:
    """Author, source hostname and publish time, without empty values.

    The time is shown as time of day when the item was published today,
    as a date otherwise. Both are evaluated in ``tz`` (local time if None).
    """
    published = item.published.astimezone(tz) if item.published else None
    now = (now or datetime.now(tz)).astimezone(tz)

    when = None
    if published is not None:
        when = format_time(published) if published.date() == now.date() else format_date(published)

    return tuple(s for s in (item.author, link_hostname(item.link), when) if s)


def link_hostname(link: Optional[str]) -> Optional[str]:
    """Hostname of a link, or None when the link cannot be parsed."""
    if not link:
        return None
    try:
        return urlparse(link).hostname
    except ValueError:
        return None


def to_digest_item(
    cache: SummaryCache,
    item: FeedItem,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> DigestItem:
    """Project a FeedItem for display."""
    return DigestItem(
        title=item.title,
        link=item.link,
        summary=resolve_summary(cache, item),
        image=item.image,
        subheads=build_subheads(item, now=now, tz=tz),
    )


class TreeAggregator:
    """Builds one DigestNode per top-level folder of a feed tree."""

    def __init__(
        self,
        fetcher: FeedFetcher,
        max_items: Optional[int] = None,
        timezone: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize tree aggregator.

        Args:
            fetcher: Feed fetcher used at the leaves
            max_items: Maximum items per digest node
            timezone: Timezone name for subhead dates (local time if None)
            clock: Returns the current time; tests pin it
        """
        config = get_config()

        self.fetcher = fetcher
        self.max_items = config.digest.max_items if max_items is None else max_items
        timezone = timezone or config.digest.timezone
        self.tz = ZoneInfo(timezone) if timezone else None
        self._clock = clock or (lambda: datetime.now(self.tz))

    async def aggregate(self, cache: SummaryCache, tree: FeedNode) -> list[DigestNode]:
        """Aggregate every top-level folder of ``tree`` concurrently.

        Args:
            cache: Summaries resolved in earlier cycles
            tree: Root of the feed tree

        Returns:
            DigestNodes in document order

        Raises:
            CycleError: When the root is not a folder
        """
        if not isinstance(tree, Folder):
            raise CycleError("Feed tree root is not a folder", stage="aggregate")

        folders = []
        for child in tree.children:
            if isinstance(child, Folder):
                folders.append(child)
            else:
                logger.debug(f"Skipping top-level outline outside any folder: {child.title!r}")

        results = await asyncio.gather(
            *(self._collect(folder) for folder in folders), return_exceptions=True
        )

        now = self._clock()
        nodes = []
        for folder, result in zip(folders, results):
            if isinstance(result, BaseException):
                logger.error(f"Aggregating {folder.title!r} failed: {result!r}")
                result = []
            nodes.append(self.build_node(cache, folder.title, result, now=now))

        return nodes

    def build_node(
        self,
        cache: SummaryCache,
        title: str,
        items: Sequence[FeedItem],
        now: Optional[datetime] = None,
    ) -> DigestNode:
        """Deduplicate, rank, cap and project the collected items of a folder."""
        now = now or self._clock()
        ranked = rank_items(dedup_items(items), self.max_items)
        logger.debug(f"{title!r}: {len(items)} collected, {len(ranked)} kept")

        return DigestNode(
            title=title,
            items=tuple(to_digest_item(cache, item, now=now, tz=self.tz) for item in ranked),
        )

    async def _collect(self, node: FeedNode) -> list[FeedItem]:
        """Items of every feed leaf under ``node``, in document order.

        Children are fetched concurrently; their results are concatenated in
        child order so deduplication does not depend on completion order.
        """
        if isinstance(node, Folder):
            logger.info(f"Loading {node.title}")
            results = await asyncio.gather(
                *(self._collect(child) for child in node.children), return_exceptions=True
            )

            collected: list[FeedItem] = []
            for child, result in zip(node.children, results):
                if isinstance(result, BaseException):
                    logger.error(f"Branch {getattr(child, 'title', child)!r} failed: {result!r}")
                    continue
                collected.extend(result)

            logger.info(f"Done loading {node.title}")
            return collected

        if isinstance(node, Leaf):
            if node.is_feed:
                return await self.fetcher.fetch(node.xml_url)
            return []

        logger.warning(f"Ignoring malformed tree node: {node!r}")
        return []
