"""
Feed tree nodes produced from an OPML outline.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

RSS_TYPE = "rss"


@dataclass(frozen=True)
class Folder:
    """An outline element grouping other outlines."""

    title: str
    children: tuple["FeedNode", ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Leaf:
    """An outline element pointing at a single feed."""

    title: str = ""
    type: Optional[str] = None
    xml_url: Optional[str] = None

    @property
    def is_feed(self) -> bool:
        """True when the leaf is an RSS/Atom subscription with a locator."""
        return bool(self.xml_url) and (self.type or "").lower() == RSS_TYPE


FeedNode = Union[Folder, Leaf]
