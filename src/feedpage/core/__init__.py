"""Digest pipeline: fetch, aggregate, enrich, publish."""

from feedpage.core.aggregator import (
    TreeAggregator,
    build_subheads,
    dedup_items,
    rank_items,
    resolve_summary,
)
from feedpage.core.enricher import SummaryEnricher
from feedpage.core.fetcher import FeedFetcher, FetchResult, FetchStats
from feedpage.core.opml import load_tree, parse_opml
from feedpage.core.renderer import HttpPageSession, PageSession, PlaywrightSession, create_session
from feedpage.core.scheduler import RefreshScheduler, SchedulerStats, create_scheduler
from feedpage.core.state import StateStore

__all__ = [
    "FeedFetcher",
    "FetchResult",
    "FetchStats",
    "TreeAggregator",
    "dedup_items",
    "rank_items",
    "resolve_summary",
    "build_subheads",
    "SummaryEnricher",
    "PageSession",
    "PlaywrightSession",
    "HttpPageSession",
    "create_session",
    "load_tree",
    "parse_opml",
    "StateStore",
    "RefreshScheduler",
    "SchedulerStats",
    "create_scheduler",
]
