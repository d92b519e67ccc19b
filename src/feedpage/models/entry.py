"""
Feed entries and their digest projection.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class FeedItem:
    """One entry of a parsed feed.

    The four body fields keep the source element they came from so the
    digest can apply its summary precedence.
    """

    title: Optional[str] = None
    link: Optional[str] = None
    guid: Optional[str] = None
    published: Optional[datetime] = None
    author: Optional[str] = None
    image: Optional[str] = None

    content_encoded: Optional[str] = None
    atom_content: Optional[str] = None
    atom_summary: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class DigestItem:
    """User-facing projection of a FeedItem."""

    title: Optional[str]
    link: Optional[str]
    summary: str = ""
    image: Optional[str] = None
    subheads: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DigestNode:
    """Ranked items of one top-level folder."""

    title: str
    items: tuple[DigestItem, ...] = field(default_factory=tuple)
