"""Core data models for HealWatch."""

from .diff import DiffLine, DiffSummary, DiffType, FileAction, FileChange, FixPlan
from .events import (
    Category,
    ConnectionState,
    Event,
    EventPayload,
    HealingPayload,
    PipelinePayload,
    SecurityPayload,
    event_from_dict,
    event_id_for,
)
from .stats import DashboardStats, FailurePattern, KnowledgeBaseStats, SecurityStats

__all__ = [
    # Events
    "Category",
    "ConnectionState",
    "Event",
    "EventPayload",
    "PipelinePayload",
    "HealingPayload",
    "SecurityPayload",
    "event_from_dict",
    "event_id_for",
    # Diff
    "DiffLine",
    "DiffSummary",
    "DiffType",
    "FileAction",
    "FileChange",
    "FixPlan",
    # Stats
    "DashboardStats",
    "FailurePattern",
    "KnowledgeBaseStats",
    "SecurityStats",
]
