"""
Per-document metrics cache keyed by path and modification time.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from vaultstats.core.metrics import VaultMetrics


@dataclass
class CacheEntry:
    """Last computed metrics for a path, with the mtime they were computed at."""

    mtime: float
    metrics: VaultMetrics


class MetricsCache:
    """
    Cache that skips recomputation for documents whose mtime is unchanged.

    Modification time equality is used as a proxy for content equality. A
    touch without a content change only costs a redundant recompute. Entries
    are overwritten on recompute and never evicted on their own; callers use
    discard() when a document is gone.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    async def get_or_compute(
        self,
        path: str,
        mtime: float,
        compute: Callable[[], Awaitable[VaultMetrics | None]],
    ) -> VaultMetrics | None:
        """
        Return cached metrics for *path* or compute and store them.

        Args:
            path: Document path used as the cache key
            mtime: The document's current modification time
            compute: Coroutine factory producing fresh metrics, or None when
                they cannot be computed yet

        Returns:
            The cached or freshly computed metrics. None is returned as-is
            and never cached.
        """
        entry = self._entries.get(path)
        if entry is not None and entry.mtime == mtime:
            self.hits += 1
            return entry.metrics

        self.misses += 1
        metrics = await compute()
        if metrics is not None:
            self._entries[path] = CacheEntry(mtime=mtime, metrics=metrics)
        return metrics

    def get(self, path: str) -> CacheEntry | None:
        return self._entries.get(path)

    def discard(self, path: str) -> None:
        self._entries.pop(path, None)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)
