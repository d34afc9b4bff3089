"""
Backlog of pending document paths and its adaptive tick scheduler.

The backlog is a deduplicated, insertion-ordered set of paths awaiting
measurement. The scheduler drains it on a timer whose period follows the
backlog size: short under load, long when idle.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator

logger = logging.getLogger(__name__)

BUSY_INTERVAL_MS = 500
DEFAULT_INTERVAL_MS = 2000
IDLE_INTERVAL_MS = 5000


def compute_interval_ms(backlog_size: int) -> int:
    """
    Tick interval for a backlog of the given size.

    More than 100 pending paths ticks every 500ms, fewer than 10 every
    5000ms, anything in between every 2000ms.
    """
    if backlog_size > 100:
        return BUSY_INTERVAL_MS
    if backlog_size < 10:
        return IDLE_INTERVAL_MS
    return DEFAULT_INTERVAL_MS


class Backlog:
    """
    Set of pending paths in insertion order.

    Adding a pending path keeps its position but restamps it, so a drain that
    took the path before the restamp leaves it pending instead of dropping a
    notification that arrived while the path was being processed.
    """

    def __init__(self) -> None:
        self._pending: dict[str, int] = {}
        self._sequence = 0

    def add(self, path: str) -> bool:
        """
        Add a path to the backlog.

        Returns:
            True if the path was not pending before
        """
        self._sequence += 1
        is_new = path not in self._pending
        self._pending[path] = self._sequence
        return is_new

    def peek(self, count: int) -> list[tuple[str, int]]:
        """Return up to *count* pending paths with their stamps, oldest first."""
        batch: list[tuple[str, int]] = []
        for path, stamp in self._pending.items():
            if len(batch) >= count:
                break
            batch.append((path, stamp))
        return batch

    def complete(self, path: str, stamp: int) -> bool:
        """
        Remove a processed path unless it was re-added since *stamp*.

        Returns:
            True if the path was removed
        """
        if self._pending.get(path) == stamp:
            del self._pending[path]
            return True
        return False

    def discard(self, path: str) -> None:
        self._pending.pop(path, None)

    def clear(self) -> None:
        self._pending.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._pending

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._pending))

    def __len__(self) -> int:
        return len(self._pending)


class BacklogScheduler:
    """
    Async timer that runs a tick callback at an interval adapted to the backlog.

    The interval is recomputed whenever reschedule() is called (after every
    enqueue and every tick). When it changes, the running wait is abandoned
    and a fresh wait of the new length starts. A tick always runs to
    completion; stop() waits for an in-flight tick instead of cancelling it.

    Attributes:
        interval_ms: Current tick interval in milliseconds
    """

    def __init__(
        self,
        backlog: Backlog,
        on_tick: Callable[[], Awaitable[None]],
        interval_fn: Callable[[int], int] = compute_interval_ms,
    ):
        """
        Initialize the scheduler.

        Args:
            backlog: Backlog whose size drives the interval
            on_tick: Async callback invoked once per tick
            interval_fn: Maps a backlog size to an interval in milliseconds
        """
        self._backlog = backlog
        self._on_tick = on_tick
        self._interval_fn = interval_fn
        self._interval_ms = interval_fn(len(backlog))
        self._reset = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._stopping = False
        self.timer_resets = 0

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """
        Start ticking. Must be called from within a running event loop.

        Raises:
            RuntimeError: If the scheduler is already running
        """
        if self.is_running():
            raise RuntimeError("Backlog scheduler is already running")
        self._stopping = False
        self._reset = asyncio.Event()
        self._interval_ms = self._interval_fn(len(self._backlog))
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop ticking, letting an in-flight tick finish first."""
        if self._task is None:
            return
        self._stopping = True
        self._reset.set()
        try:
            await self._task
        finally:
            self._task = None

    def reschedule(self) -> int:
        """
        Recompute the interval from the current backlog size.

        Returns:
            The interval now in effect, in milliseconds
        """
        interval_ms = self._interval_fn(len(self._backlog))
        if interval_ms != self._interval_ms:
            logger.debug(
                "Backlog interval changed from %dms to %dms",
                self._interval_ms,
                interval_ms,
                extra={"backlog_size": len(self._backlog), "interval_ms": interval_ms},
            )
            self._interval_ms = interval_ms
            self.timer_resets += 1
            self._reset.set()
        return self._interval_ms

    async def _run(self) -> None:
        while not self._stopping:
            self._reset.clear()
            try:
                await asyncio.wait_for(self._reset.wait(), timeout=self._interval_ms / 1000.0)
                # Interval changed or stop requested; start a fresh wait.
                continue
            except asyncio.TimeoutError:
                pass

            try:
                await self._on_tick()
            except Exception as e:
                logger.error(f"Error in backlog tick: {e}", exc_info=True)
            self.reschedule()
