"""
Serializer functions for converting digest models to dictionaries.

The keys follow the JSON contract of the ``/data`` endpoint consumed by the
front end (camelCase where the front end expects it).
"""

from datetime import datetime
from typing import Any, Optional

from feedpage.models import DigestItem, DigestNode, RunState


def serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO format string.

    Args:
        dt: Datetime object or None

    Returns:
        ISO format string or None
    """
    return dt.isoformat() if dt else None


def error_to_dict(error: Optional[BaseException]) -> Optional[dict]:
    """Convert an exception to a dictionary, or None."""
    if error is None:
        return None
    return {
        "type": type(error).__name__,
        "message": str(error),
    }


def digest_item_to_dict(item: DigestItem) -> dict:
    """Convert a DigestItem to a dictionary."""
    return {
        "title": item.title,
        "link": item.link,
        "summary": item.summary,
        "image": item.image,
        "subheads": list(item.subheads),
    }


def digest_node_to_dict(node: DigestNode) -> dict:
    """Convert a DigestNode to a dictionary."""
    return {
        "title": node.title,
        "items": [digest_item_to_dict(item) for item in node.items],
    }


def state_to_dict(state: RunState, name: str) -> dict[str, Any]:
    """Payload of the data endpoint.

    Args:
        state: Snapshot to serialize
        name: Configured display name

    Returns:
        ``{feeds, lastUpdated, lastError, name}``
    """
    return {
        "feeds": [digest_node_to_dict(node) for node in state.feeds],
        "lastUpdated": serialize_datetime(state.last_updated),
        "lastError": error_to_dict(state.last_error),
        "name": name,
    }
