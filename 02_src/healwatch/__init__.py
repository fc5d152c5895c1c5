"""HealWatch live dashboard core."""

from .buffer import EventBuffer, IEventBuffer, merge_events
from .channel import ConnectionManager, Frame, IConnectionManager
from .config import DashboardConfig
from .diff import compute_diff, diff_file_change, summarize
from .models import (
    Category,
    ConnectionState,
    DiffLine,
    DiffType,
    Event,
    FileChange,
    FixPlan,
)
from .poller import IPollScheduler, PollScheduler
from .router import ITopicRouter, ResourceStream, TopicRouter
from .session import DashboardSession, IDashboardSession
from .snapshots import ISnapshotClient, SnapshotClient

__all__ = [
    # Session
    "DashboardSession",
    "IDashboardSession",
    "DashboardConfig",
    # Models
    "Category",
    "ConnectionState",
    "Event",
    "DiffLine",
    "DiffType",
    "FileChange",
    "FixPlan",
    # Components
    "compute_diff",
    "diff_file_change",
    "summarize",
    "EventBuffer",
    "IEventBuffer",
    "merge_events",
    "TopicRouter",
    "ITopicRouter",
    "ResourceStream",
    "ConnectionManager",
    "IConnectionManager",
    "Frame",
    "PollScheduler",
    "IPollScheduler",
    "SnapshotClient",
    "ISnapshotClient",
]
