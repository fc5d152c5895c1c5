"""EventBuffer module."""

from .event_buffer import (
    EventBuffer,
    IEventBuffer,
    matches_resource,
    matches_scope,
    merge_events,
)

__all__ = ["EventBuffer", "IEventBuffer", "matches_resource", "matches_scope", "merge_events"]
