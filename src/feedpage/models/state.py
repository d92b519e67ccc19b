"""
Published state of the refresh pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from feedpage.models.entry import DigestNode

# Link -> resolved summary
SummaryCache = Mapping[str, str]

EMPTY_CACHE: SummaryCache = MappingProxyType({})


class RunStatus(str, Enum):
    """Scheduler state."""

    IDLE = "idle"
    RUNNING = "running"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass(frozen=True)
class RunState:
    """Snapshot read by the web layer. Replaced wholesale, never edited."""

    feeds: tuple[DigestNode, ...] = field(default_factory=tuple)
    last_updated: Optional[datetime] = None
    last_error: Optional[Exception] = None
    summaries: SummaryCache = field(default_factory=lambda: EMPTY_CACHE)
    status: RunStatus = RunStatus.IDLE
