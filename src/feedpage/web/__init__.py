"""HTTP layer for FeedPage."""

from feedpage.web.app import create_app

__all__ = ["create_app"]
