"""
Holder of the published RunState.

Only the scheduler writes; every write swaps in a new frozen snapshot, so
readers take ``snapshot()`` without locking and never observe a partial
update.
"""

import threading
from dataclasses import replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from feedpage.models import DigestNode, RunState, RunStatus


class StateStore:
    """Single-writer, multi-reader store of the latest RunState."""

    def __init__(self, initial: Optional[RunState] = None) -> None:
        self._state = initial or RunState()
        self._write_lock = threading.Lock()

    def snapshot(self) -> RunState:
        """Current state. The returned object never changes."""
        return self._state

    def mark_running(self) -> RunState:
        """Flag a cycle in flight; published data stays as it is."""
        with self._write_lock:
            self._state = replace(self._state, status=RunStatus.RUNNING)
            return self._state

    def publish(
        self,
        feeds: Sequence[DigestNode],
        summaries: Mapping[str, str],
        when: Optional[datetime] = None,
    ) -> RunState:
        """Publish the result of a successful cycle and clear the last error."""
        state = RunState(
            feeds=tuple(feeds),
            last_updated=when or datetime.now(timezone.utc),
            last_error=None,
            summaries=MappingProxyType(dict(summaries)),
            status=RunStatus.PUBLISHED,
        )
        with self._write_lock:
            self._state = state
        return state

    def record_failure(self, error: Exception) -> RunState:
        """Record a failed cycle, keeping the previously published data."""
        with self._write_lock:
            self._state = replace(self._state, last_error=error, status=RunStatus.FAILED)
            return self._state
