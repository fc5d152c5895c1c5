"""PollScheduler implementation."""

import asyncio
from typing import Awaitable, Callable, Generic, Protocol, TypeVar

from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class IPollScheduler(Protocol):
    """Periodic REST snapshot fetcher."""

    async def start(self, interval_s: float) -> None:
        """Start ticking every ``interval_s`` seconds."""
        ...

    async def stop(self) -> None:
        """Stop ticking; in-flight results are discarded."""
        ...


class PollScheduler(Generic[T]):
    """Runs ``fetch`` on a fixed interval and hands results to ``apply``.

    Every fetch captures the epoch at dispatch. ``stop()`` and
    ``invalidate()`` bump the epoch, so a fetch that resolves afterwards is
    dropped instead of being applied.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
    ):
        self.name = name
        self._fetch = fetch
        self._apply = apply
        self._epoch = 0
        self._timer: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._inflight_epoch = 0
        # Strong refs for dispatched fetches, stale ones included
        self._tasks: set[asyncio.Task] = set()
        self.ticks = 0
        self.failures = 0
        self.discarded = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def pending(self) -> int:
        """Fetches dispatched and not yet finished."""
        return len(self._tasks)

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def start(self, interval_s: float) -> None:
        """Start the timer; the first tick fires immediately."""
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if self.running:
            return
        self._timer = asyncio.create_task(self._run(interval_s))

    async def stop(self) -> None:
        self._epoch += 1
        timer, self._timer = self._timer, None
        if timer and not timer.done():
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass

    def invalidate(self) -> None:
        """Discard whatever is in flight without stopping the timer."""
        self._epoch += 1

    def trigger(self) -> asyncio.Task | None:
        """Dispatch one fetch now.

        Skipped while a fetch of the current epoch is in flight; a stale one
        is left to finish and be discarded.
        """
        if (
            self._inflight
            and not self._inflight.done()
            and self._inflight_epoch == self._epoch
        ):
            logger.debug("Poll %s still in flight, skipping tick", self.name)
            return None
        self._inflight_epoch = self._epoch
        task = asyncio.create_task(self._tick(self._epoch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._inflight = task
        return task

    async def _run(self, interval_s: float) -> None:
        while True:
            self.trigger()
            await asyncio.sleep(interval_s)

    async def _tick(self, epoch: int) -> None:
        self.ticks += 1
        try:
            result = await self._fetch()
        except Exception as e:
            self.failures += 1
            logger.error("Poll %s failed: %s", self.name, e, exc_info=True)
            return

        if epoch != self._epoch:
            self.discarded += 1
            logger.debug(
                "Discarding stale %s result", self.name, extra={"epoch": epoch}
            )
            return

        try:
            self._apply(result)
        except Exception as e:
            self.failures += 1
            logger.error("Applying %s result failed: %s", self.name, e, exc_info=True)
