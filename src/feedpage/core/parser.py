"""
Entry parser turning feedparser results into FeedItem values.

Handles field standardization, date parsing and image lookup. Bodies are
kept as HTML; the digest renders them as-is.
"""

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from html import unescape
from typing import Any, Optional

from feedpage.logger import get_logger
from feedpage.models import FeedItem

logger = get_logger(__name__)


class EntryParser:
    """Parser for normalizing feedparser entries."""

    def parse_feed(self, parsed: Any) -> list[FeedItem]:
        """Parse every entry of a feedparser result.

        Args:
            parsed: Result of ``feedparser.parse``

        Returns:
            List of FeedItem in document order
        """
        version = parsed.get("version") or ""
        is_atom = version.startswith("atom")

        items = []
        for raw_entry in parsed.get("entries", []):
            try:
                items.append(self.parse_entry(raw_entry, is_atom=is_atom))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed entry: {e}")
        return items

    def parse_entry(self, raw_entry: dict, is_atom: bool = False) -> FeedItem:
        """Parse and normalize a raw feed entry.

        feedparser folds ``content:encoded`` and ``atom:content`` into
        ``content``, and ``description`` and ``atom:summary`` into
        ``summary``; the feed flavour tells them apart again.

        Args:
            raw_entry: Raw entry from feedparser
            is_atom: Whether the entry comes from an Atom feed

        Returns:
            FeedItem
        """
        content = self._first_content(raw_entry)
        summary = raw_entry.get("summary") or None

        return FeedItem(
            title=self._normalize_title(raw_entry.get("title")),
            link=self._normalize_link(raw_entry.get("link")),
            guid=raw_entry.get("id") or None,
            published=self._entry_date(raw_entry),
            author=self._normalize_author(raw_entry.get("author")),
            image=self._extract_image(raw_entry),
            content_encoded=None if is_atom else content,
            atom_content=content if is_atom else None,
            atom_summary=summary if is_atom else None,
            description=None if is_atom else summary,
        )

    def _first_content(self, raw_entry: dict) -> Optional[str]:
        """Return the first non-empty content body."""
        for content in raw_entry.get("content") or []:
            value = content.get("value") if isinstance(content, dict) else None
            if value:
                return value
        return None

    def _normalize_title(self, title: Optional[str]) -> Optional[str]:
        """Normalize entry title.

        Args:
            title: Raw title

        Returns:
            Normalized title
        """
        if not title:
            return None

        title = unescape(title)
        title = re.sub(r"\s+", " ", title.strip())

        return title if title else None

    def _normalize_link(self, link: Optional[str]) -> Optional[str]:
        """Normalize entry link."""
        if not link:
            return None

        link = link.strip()
        return link if link else None

    def _normalize_author(self, author: Optional[str]) -> Optional[str]:
        """Normalize entry author.

        Args:
            author: Raw author

        Returns:
            Normalized author
        """
        if not author:
            return None

        # Handle dict format (some feeds)
        if isinstance(author, dict):
            author = author.get("name") or author.get("email")
            if not author:
                return None

        author = unescape(str(author)).strip()
        return author if author else None

    def _entry_date(self, raw_entry: dict) -> Optional[datetime]:
        """Publish time of an entry as an aware UTC datetime.

        Args:
            raw_entry: Raw entry from feedparser

        Returns:
            datetime or None when the entry carries no usable date
        """
        for key in ("published", "updated", "created"):
            parsed = raw_entry.get(f"{key}_parsed")
            if parsed:
                return datetime(*parsed[:6], tzinfo=timezone.utc)

        for key in ("published", "updated", "created"):
            value = raw_entry.get(key)
            if value:
                return self._parse_date(value)

        return None

    def _parse_date(self, date_str: str) -> Optional[datetime]:
        """Parse an RFC 2822 or ISO 8601 date string.

        Args:
            date_str: Date string

        Returns:
            Aware datetime or None
        """
        try:
            dt = parsedate_to_datetime(date_str)
        except (TypeError, ValueError, IndexError):
            try:
                dt = datetime.fromisoformat(date_str.strip().replace("Z", "+00:00"))
            except ValueError:
                logger.warning(f"Failed to parse date: {date_str}")
                return None

        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    def _extract_image(self, raw_entry: dict) -> Optional[str]:
        """Find an image URL for the entry.

        Looks at ``itunes:image``, ``media:thumbnail``, ``media:content`` and
        image enclosures, in that order.
        """
        image = raw_entry.get("image")
        if isinstance(image, dict):
            href = image.get("href") or image.get("url")
            if href:
                return href

        for thumbnail in raw_entry.get("media_thumbnail") or []:
            if thumbnail.get("url"):
                return thumbnail["url"]

        for media in raw_entry.get("media_content") or []:
            medium = media.get("medium") or ""
            media_type = media.get("type") or ""
            if media.get("url") and (medium == "image" or media_type.startswith("image/")):
                return media["url"]

        for enclosure in raw_entry.get("enclosures") or []:
            if (enclosure.get("type") or "").startswith("image/") and enclosure.get("href"):
                return enclosure["href"]

        return None


def create_parser() -> EntryParser:
    """Create an EntryParser instance."""
    return EntryParser()
