"""
OPML retrieval and parsing into a feed tree.
"""

from typing import Optional

import httpx
from bs4 import BeautifulSoup, Tag

from feedpage.exceptions import ParseError, TransportError
from feedpage.logger import get_logger
from feedpage.models import Folder, FeedNode, Leaf

logger = get_logger(__name__)


async def fetch_opml(url: str, client: httpx.AsyncClient) -> str:
    """Download an OPML document.

    Args:
        url: OPML address
        client: HTTP client to use

    Returns:
        Document text

    Raises:
        TransportError: On network failure or non-success status
    """
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TransportError(f"OPML request failed with HTTP {e.response.status_code}: {url}") from e
    except httpx.HTTPError as e:
        raise TransportError(f"OPML request failed: {url}: {e}") from e

    return response.text


def parse_opml(text: str) -> Folder:
    """Parse an OPML document into a tree.

    Outlines with child outlines become Folders, all others Leaves.
    Attribute names are matched case-insensitively (``xmlUrl``/``xmlurl``).

    Args:
        text: OPML document

    Returns:
        Root Folder titled after ``<head><title>``

    Raises:
        ParseError: When the document has no ``<opml>`` root or ``<body>``
    """
    soup = BeautifulSoup(text, "xml")
    root = soup.find("opml")
    if root is None:
        raise ParseError("Document is not OPML: missing <opml> element")

    body = root.find("body", recursive=False)
    if body is None:
        raise ParseError("OPML document has no <body>")

    title_tag = root.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    children = tuple(_parse_outline(o) for o in body.find_all("outline", recursive=False))
    logger.debug(f"Parsed OPML '{title}' with {len(children)} top-level outlines")
    return Folder(title=title, children=children)


def _parse_outline(outline: Tag) -> FeedNode:
    attrs = {k.lower(): v for k, v in outline.attrs.items()}
    title = attrs.get("title") or attrs.get("text") or ""

    children = outline.find_all("outline", recursive=False)
    if children:
        return Folder(title=title, children=tuple(_parse_outline(c) for c in children))

    return Leaf(title=title, type=attrs.get("type"), xml_url=_attr(attrs, "xmlurl"))


def _attr(attrs: dict, name: str) -> Optional[str]:
    value = attrs.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


async def load_tree(url: Optional[str], client: httpx.AsyncClient) -> Folder:
    """Fetch and parse the configured OPML outline.

    Raises:
        TransportError: When no address is configured or the download fails
        ParseError: When the document cannot be parsed
    """
    if not url:
        raise TransportError("No OPML address configured")

    logger.info(f"Loading OPML from {url}")
    return parse_opml(await fetch_opml(url, client))
