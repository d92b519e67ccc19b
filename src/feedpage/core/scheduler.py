"""
Refresh scheduler running the digest pipeline on a fixed interval.

Uses APScheduler to trigger one cycle at startup and then every
``scheduler.refresh_minutes``. A cycle is OPML fetch, tree aggregation and
summary enrichment; only a fully successful cycle is published.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, JobEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feedpage.config import Config, get_config
from feedpage.core.aggregator import TreeAggregator
from feedpage.core.enricher import SummaryEnricher
from feedpage.core.fetcher import FeedFetcher
from feedpage.core.opml import load_tree
from feedpage.core.renderer import PageSession, create_session
from feedpage.core.state import StateStore
from feedpage.exceptions import CycleError, FeedPageError
from feedpage.logger import get_logger
from feedpage.models import FeedNode, RunState

logger = get_logger(__name__)

TreeLoader = Callable[[httpx.AsyncClient], Awaitable[FeedNode]]


@dataclass
class SchedulerStats:
    """Statistics for refresh cycles."""

    total_cycles: int = 0
    successful_cycles: int = 0
    failed_cycles: int = 0
    skipped_cycles: int = 0
    last_cycle_seconds: float = 0.0
    last_run_time: Optional[datetime] = None


class RefreshScheduler:
    """Runs refresh cycles and publishes their results to a StateStore."""

    JOB_ID = "refresh"

    def __init__(
        self,
        store: Optional[StateStore] = None,
        config: Optional[Config] = None,
        tree_loader: Optional[TreeLoader] = None,
        session_factory: Optional[Callable[[], PageSession]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize refresh scheduler.

        Args:
            store: Where results are published (a new one if None)
            config: Configuration (global config if None)
            tree_loader: Returns the feed tree; defaults to downloading the
                configured OPML document
            session_factory: Creates the rendering session of a cycle
            transport: Optional httpx transport shared by OPML and feed fetches
        """
        self.config = config or get_config()
        self.store = store or StateStore()

        self._tree_loader = tree_loader or (
            lambda client: load_tree(self.config.opml_url, client)
        )
        self._session_factory = session_factory or (lambda: create_session(self.config.enricher))
        self._transport = transport

        self.refresh_minutes = self.config.scheduler.refresh_minutes
        self.scheduler = BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            timezone=self.config.scheduler.timezone,
        )
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._on_job_skipped, EVENT_JOB_MAX_INSTANCES)

        # Serializes run_once() calls made outside the scheduler
        self._cycle_lock = threading.Lock()

        self.stats = SchedulerStats()
        self.start_time: Optional[datetime] = None

    def start(self) -> None:
        """Start the scheduler; the first cycle runs immediately."""
        if self.scheduler.running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler.add_job(
            func=self.run_once,
            trigger=IntervalTrigger(minutes=self.refresh_minutes),
            id=self.JOB_ID,
            name="Refresh digest",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        self.start_time = datetime.now()
        logger.info(f"Scheduler started (refresh every {self.refresh_minutes} minutes)")

    def stop(self, wait: bool = True) -> None:
        """Stop the scheduler.

        Args:
            wait: Whether to wait for a running cycle to complete
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")
        else:
            logger.warning("Scheduler is not running")

    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self.scheduler.running

    def next_run_time(self) -> Optional[datetime]:
        """When the next cycle is due, if scheduled."""
        job = self.scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job else None

    def run_once(self) -> RunState:
        """Run one cycle on a fresh event loop and return the resulting state."""
        with self._cycle_lock:
            return asyncio.run(self.run_cycle())

    async def run_cycle(self) -> RunState:
        """Run one refresh cycle.

        Never raises: failures are recorded in the store and the previously
        published digest stays in place.
        """
        previous = self.store.snapshot()
        self.store.mark_running()
        self.stats.total_cycles += 1
        self.stats.last_run_time = datetime.now(timezone.utc)
        start = time.monotonic()

        try:
            feeds, summaries = await self._build_digest(previous)
        except Exception as e:
            if isinstance(e, CycleError):
                error = e
            else:
                error = CycleError(f"{type(e).__name__}: {e}")
                error.__cause__ = e
            logger.opt(exception=e).error(f"Refresh cycle failed: {error}")
            self.stats.failed_cycles += 1
            self.stats.last_cycle_seconds = time.monotonic() - start
            return self.store.record_failure(error)

        state = self.store.publish(feeds, summaries)
        self.stats.successful_cycles += 1
        self.stats.last_cycle_seconds = time.monotonic() - start
        logger.info(
            f"Feed summaries updated: {len(state.feeds)} sections "
            f"in {self.stats.last_cycle_seconds:.1f}s"
        )
        return state

    async def _build_digest(self, previous: RunState):
        """OPML fetch, aggregation and enrichment; raises on cycle failure."""
        fetcher_config = self.config.fetcher
        async with FeedFetcher(
            timeout_seconds=fetcher_config.timeout_seconds,
            user_agent=fetcher_config.user_agent,
            max_connections=fetcher_config.max_connections,
            transport=self._transport,
        ) as fetcher:
            try:
                tree = await self._tree_loader(fetcher.client)
            except FeedPageError as e:
                raise CycleError(f"Loading OPML failed: {e}", stage="opml") from e

            aggregator = TreeAggregator(
                fetcher,
                max_items=self.config.digest.max_items,
                timezone=self.config.digest.timezone,
            )
            digest = await aggregator.aggregate(previous.summaries, tree)
            logger.info(
                f"Feed updated: {fetcher.stats.successful_fetches}/{fetcher.stats.total_feeds} "
                f"feeds fetched, {fetcher.stats.total_entries} entries"
            )

        enricher = SummaryEnricher(
            min_summary_length=self.config.enricher.min_summary_length,
            content_selector=self.config.enricher.content_selector,
            timeout_seconds=self.config.enricher.navigation_timeout_seconds,
            enabled=self.config.enricher.enabled,
        )
        async with self._session_factory() as session:
            return await enricher.enrich(session, digest, previous.summaries)

    def _on_job_error(self, event: JobEvent) -> None:
        """Handle job error event."""
        if event.exception:
            logger.error(f"Job {event.job_id} failed: {type(event.exception).__name__}: {event.exception}")

    def _on_job_skipped(self, event: JobEvent) -> None:
        """A tick fired while the previous cycle was still running."""
        self.stats.skipped_cycles += 1
        logger.warning("Previous refresh still running, skipping this tick")


def create_scheduler(
    store: Optional[StateStore] = None,
    config: Optional[Config] = None,
) -> RefreshScheduler:
    """Create a configured RefreshScheduler instance.

    Args:
        store: Optional state store shared with the web layer
        config: Optional configuration

    Returns:
        Configured RefreshScheduler instance
    """
    return RefreshScheduler(store=store, config=config)
