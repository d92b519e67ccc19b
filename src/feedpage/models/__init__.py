"""Data models for FeedPage."""

from feedpage.models.entry import DigestItem, DigestNode, FeedItem
from feedpage.models.feed import RSS_TYPE, FeedNode, Folder, Leaf
from feedpage.models.state import EMPTY_CACHE, RunState, RunStatus, SummaryCache

__all__ = [
    "RSS_TYPE",
    "FeedNode",
    "Folder",
    "Leaf",
    "FeedItem",
    "DigestItem",
    "DigestNode",
    "SummaryCache",
    "EMPTY_CACHE",
    "RunState",
    "RunStatus",
]
