"""
FeedPage - a single-page digest of an OPML feed collection.

This package fetches every feed of an OPML outline, ranks and deduplicates
entries per top-level folder, fills short summaries from the article pages,
and serves the latest digest over HTTP.
"""

__version__ = "0.1.0"
