"""EventBuffer implementation."""

from collections import OrderedDict
from typing import Iterable, Protocol, Sequence

from ..models import Category, Event


def merge_events(
    live: Iterable[Event],
    historical: Iterable[Event],
    capacity: int,
) -> list[Event]:
    """
    Merge live and historical events into one newest-first list.

    Live entries come first and win on id collision; the result holds each id
    once and at most ``capacity`` entries.
    """
    merged: list[Event] = []
    seen: set[str] = set()
    for source in (live, historical):
        for event in source:
            if len(merged) >= capacity:
                return merged
            if event.id in seen:
                continue
            seen.add(event.id)
            merged.append(event)
    return merged


def matches_resource(event: Event, resource_key: str) -> bool:
    """True if the event belongs to ``resource_key`` ("org/repo" or bare "repo")."""
    if not event.resource_key:
        return False
    short_name = resource_key.rsplit("/", 1)[-1]
    return event.resource_key in (resource_key, short_name)


def matches_scope(event: Event, resource_key: str | None, branch: str | None) -> bool:
    """True if the event passes the repo and branch filters that are set."""
    if resource_key and not matches_resource(event, resource_key):
        return False
    if branch and event.branch != branch:
        return False
    return True


class IEventBuffer(Protocol):
    """Bounded, deduplicated, newest-first store for one category."""

    def prepend(self, event: Event) -> bool:
        """Insert a live event at the head; False if it is out of scope."""
        ...

    def apply_snapshot(self, historical: Sequence[Event]) -> None:
        """Replace the historical part with a fresh REST snapshot."""
        ...

    def snapshot(self) -> tuple[Event, ...]:
        """Current merged view."""
        ...


class EventBuffer:
    """Live events merged with the latest REST snapshot for one category.

    Live events are kept oldest-to-newest in an ordered id map, so storing
    one costs O(1); the newest-first merged view is built on first read after
    a change and handed out as an immutable tuple.
    """

    def __init__(self, category: Category, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.category = category
        self.capacity = capacity
        self._live: OrderedDict[str, Event] = OrderedDict()
        self._historical: list[Event] = []
        self._view: tuple[Event, ...] | None = ()
        self._scope: tuple[str | None, str | None] = (None, None)

    @property
    def scope(self) -> tuple[str | None, str | None]:
        return self._scope

    def set_scope(self, resource_key: str | None, branch: str | None = None) -> None:
        """Only store live events for ``resource_key``/``branch`` from now on.

        Live entries outside the new scope are dropped.
        """
        self._scope = (resource_key or None, branch or None)
        for event_id, event in list(self._live.items()):
            if not matches_scope(event, *self._scope):
                del self._live[event_id]
        self._view = None

    def prepend(self, event: Event) -> bool:
        """
        Insert a push-delivered event at the head.

        An id that is already live keeps its first-seen position and takes
        the newer payload, so redelivery of the same frame is a no-op.
        Returns False when the event is outside the buffer's scope.
        """
        if not matches_scope(event, *self._scope):
            return False
        # Assigning an existing key keeps its position
        self._live[event.id] = event
        if len(self._live) > self.capacity:
            self._live.popitem(last=False)
        self._view = None
        return True

    def merge(self, live: Iterable[Event], historical: Iterable[Event]) -> list[Event]:
        """Merge two lists using this buffer's capacity."""
        return merge_events(live, historical, self.capacity)

    def apply_snapshot(self, historical: Sequence[Event]) -> None:
        """Reconcile a REST snapshot with the live entries in one step."""
        self._historical = list(historical)
        self._view = None

    def snapshot(self) -> tuple[Event, ...]:
        if self._view is None:
            self._view = tuple(self.merge(self._newest_live(), self._historical))
        return self._view

    def live(self) -> tuple[Event, ...]:
        return tuple(self._newest_live())

    def filter(
        self,
        resource_key: str | None = None,
        branch: str | None = None,
    ) -> tuple[Event, ...]:
        """Per-resource and/or per-branch view.

        Both sides are filtered before merging, so the result holds up to
        ``capacity`` matching events no matter how busy other repositories are.
        """
        live = (e for e in self._newest_live() if matches_scope(e, resource_key, branch))
        historical = (e for e in self._historical if matches_scope(e, resource_key, branch))
        return tuple(self.merge(live, historical))

    def reset(self) -> None:
        """Drop every entry (e.g. after a filter change)."""
        self._live.clear()
        self._historical = []
        self._view = None

    def __len__(self) -> int:
        return len(self.snapshot())

    def _newest_live(self) -> Iterable[Event]:
        return reversed(self._live.values())
