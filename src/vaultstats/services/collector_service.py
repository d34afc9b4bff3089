"""
Metrics Collector Service for incremental vault statistics.

Coordinates the backlog, the per-document cache and the extractors, and keeps
the aggregate totals equal to the sum of the latest record of every known
document. All state is owned by the service's event loop: change
notifications only enqueue paths, and the scheduled drain is the only place
that touches the cache, the last-known records and the aggregate.
"""

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from vaultstats.core.classifier import FileType, classify
from vaultstats.core.config import CollectorConfig, parse_exclude_directories
from vaultstats.core.documents import Document, MetadataSourceInterface, VaultInterface
from vaultstats.core.file_events import FileEvent
from vaultstats.core.metrics import AggregateMetrics, VaultMetrics
from vaultstats.core.metrics_cache import MetricsCache
from vaultstats.services.backlog import Backlog, BacklogScheduler
from vaultstats.services.extractors import AttachmentMetricsExtractor, NoteMetricsExtractor

logger = logging.getLogger(__name__)


@dataclass
class CollectorStats:
    """
    Statistics for the collector service.

    Tracks ticks, per-document outcomes and timing information for
    monitoring and debugging.
    """

    started_at: datetime = field(default_factory=datetime.now)
    ticks: int = 0
    documents_updated: int = 0
    documents_deleted: int = 0
    documents_skipped: int = 0
    documents_excluded: int = 0
    errors: int = 0
    last_tick_at: datetime | None = None
    last_tick_duration_ms: float = 0.0

    def to_dict(self) -> dict:
        """Serialize stats to dictionary for JSON reporting."""
        return {
            "started_at": self.started_at.isoformat(),
            "ticks": self.ticks,
            "documents_updated": self.documents_updated,
            "documents_deleted": self.documents_deleted,
            "documents_skipped": self.documents_skipped,
            "documents_excluded": self.documents_excluded,
            "errors": self.errors,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_tick_duration_ms": self.last_tick_duration_ms,
        }


class MetricsCollectorService:
    """
    Incremental metrics collector for a vault.

    Paths are enqueued by change notifications and drained in bounded
    batches on an adaptive timer. Each drained path is measured (or served
    from the cache), and its previous contribution to the aggregate is
    replaced by the new one. A path that no longer exists is treated as a
    deletion.
    """

    def __init__(
        self,
        vault: VaultInterface,
        metadata_source: MetadataSourceInterface,
        aggregate: AggregateMetrics | None = None,
        config: CollectorConfig | None = None,
        cache: MetricsCache | None = None,
    ):
        """
        Initialize the collector service.

        Args:
            vault: Document listing, stat and content reader
            metadata_source: Structural metadata extractor for notes
            aggregate: Totals to maintain (a new one is created if omitted)
            config: Collector configuration
            cache: Per-document cache (a new one is created if omitted)
        """
        config = config or CollectorConfig()
        self._vault = vault
        self._metadata_source = metadata_source
        self._aggregate = aggregate if aggregate is not None else AggregateMetrics()
        self._cache = cache if cache is not None else MetricsCache()
        self._data: dict[str, VaultMetrics] = {}
        self._backlog = Backlog()
        self._scheduler = BacklogScheduler(self._backlog, self.process_backlog)
        self._drain_lock = asyncio.Lock()
        self._excluded: set[str] = config.excluded
        # Paths drained while excluded; they have no record in _data
        self._excluded_paths: set[str] = set()
        self.max_file_size = config.max_file_size
        self.batch_size = config.batch_size
        self.concurrency = config.concurrency
        self._attachment_extractor = AttachmentMetricsExtractor()
        self._stats = CollectorStats()
        self._running = False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def aggregate(self) -> AggregateMetrics:
        return self._aggregate

    @property
    def cache(self) -> MetricsCache:
        return self._cache

    @property
    def backlog(self) -> Backlog:
        return self._backlog

    @property
    def scheduler(self) -> BacklogScheduler:
        return self._scheduler

    @property
    def stats(self) -> CollectorStats:
        return self._stats

    @property
    def excluded_directories(self) -> frozenset[str]:
        return frozenset(self._excluded)

    @property
    def max_file_size(self) -> int:
        return self._max_file_size

    @max_file_size.setter
    def max_file_size(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"max_file_size must not be negative, got {value}")
        self._max_file_size = value

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @batch_size.setter
    def batch_size(self, value: int) -> None:
        if value < 1:
            raise ValueError(f"batch_size must be at least 1, got {value}")
        self._batch_size = value

    @property
    def concurrency(self) -> int:
        """Documents measured at once; defaults to the batch size."""
        return self._concurrency or self._batch_size

    @concurrency.setter
    def concurrency(self, value: int | None) -> None:
        if value is not None and value < 1:
            raise ValueError(f"concurrency must be at least 1, got {value}")
        self._concurrency = value

    def set_exclude_directories(self, exclude_directories: str) -> "MetricsCollectorService":
        """
        Replace the set of excluded top-level directories.

        Args:
            exclude_directories: Comma-separated directory names

        Returns:
            Self, for chaining
        """
        previous = self._excluded
        self._excluded = parse_exclude_directories(exclude_directories)
        if self._running and previous != self._excluded:
            self._requeue_after_exclusion_change(previous)
        return self

    def is_excluded(self, path: str) -> bool:
        """Check whether the first segment of *path* is an excluded directory."""
        return path.split("/", 1)[0] in self._excluded

    def _requeue_after_exclusion_change(self, previous: set[str]) -> None:
        """
        Re-measure paths whose exclusion status changed.

        Every vault path has been through the backlog since the last restart,
        so the counted paths plus the ones drained while excluded cover the
        vault without listing it again. Paths still pending are judged
        against the new set when drained.
        """
        changed = previous ^ self._excluded
        requeued = 0
        for path in list(self._data) + sorted(self._excluded_paths):
            if path.split("/", 1)[0] in changed:
                self.enqueue(path)
                requeued += 1
        logger.info(
            "Exclusion list changed, re-queued %d paths",
            requeued,
            extra={"excluded": sorted(self._excluded), "requeued": requeued},
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """
        Start the collector: enqueue the full vault listing and begin ticking.

        Raises:
            RuntimeError: If the service is already running
        """
        if self._running:
            raise RuntimeError("Metrics collector is already running")
        self._stats = CollectorStats()
        self.restart()
        self._scheduler.start()
        self._running = True
        logger.info(
            "Metrics collector started",
            extra={
                "backlog_size": len(self._backlog),
                "batch_size": self._batch_size,
                "excluded": sorted(self._excluded),
            },
        )

    async def stop(self) -> None:
        """Stop ticking; an in-flight batch is allowed to finish."""
        if not self._running:
            logger.debug("Metrics collector is not running, nothing to stop")
            return
        await self._scheduler.stop()
        self._running = False
        logger.info("Metrics collector stopped", extra={"stats": self._stats.to_dict()})

    def restart(self) -> None:
        """
        Recompute everything from scratch.

        Resets the aggregate, clears the backlog, the cache and the
        last-known records, then enqueues every document in the vault.
        """
        self._data.clear()
        self._excluded_paths.clear()
        self._backlog.clear()
        self._cache.clear()
        self._aggregate.reset()
        for document in self._vault.list_files():
            self.enqueue(document.path)
        logger.info(
            "Enqueued %d documents for measurement",
            len(self._backlog),
            extra={"backlog_size": len(self._backlog)},
        )

    # ------------------------------------------------------------------
    # Event intake
    # ------------------------------------------------------------------

    def enqueue(self, path: str) -> None:
        """Add a path to the backlog. Must be called on the service's loop."""
        if not path:
            return
        self._backlog.add(path)
        self._scheduler.reschedule()

    def enqueue_many(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.enqueue(path)

    def handle_event(self, event: FileEvent) -> None:
        """Enqueue every path affected by a change notification."""
        logger.debug(
            "File change detected: %s - %s",
            event.event_type.value,
            event.file_path,
            extra={"event_type": event.event_type.value, "path": event.file_path},
        )
        self.enqueue_many(event.affected_paths())

    # ------------------------------------------------------------------
    # Draining
    # ------------------------------------------------------------------

    async def process_backlog(self) -> int:
        """
        Drain one batch from the backlog.

        Up to batch_size paths are processed with bounded concurrency. Every
        path is removed from the backlog once processed, whether or not it
        produced an update.

        Returns:
            Number of paths taken from the backlog
        """
        async with self._drain_lock:
            if not self._backlog:
                return 0

            start_time = time.time()
            batch = self._backlog.peek(self._batch_size)
            semaphore = asyncio.Semaphore(self.concurrency)
            await asyncio.gather(
                *(self._process_path(path, stamp, semaphore) for path, stamp in batch),
                return_exceptions=True,
            )

            duration_ms = (time.time() - start_time) * 1000
            self._stats.ticks += 1
            self._stats.last_tick_at = datetime.now()
            self._stats.last_tick_duration_ms = duration_ms
            self._scheduler.reschedule()

            logger.debug(
                "Processed %d paths in %.2fms",
                len(batch),
                duration_ms,
                extra={
                    "batch_size": len(batch),
                    "duration_ms": duration_ms,
                    "backlog_size": len(self._backlog),
                    "interval_ms": self._scheduler.interval_ms,
                },
            )
            return len(batch)

    async def drain_all(self) -> int:
        """
        Process batches until the backlog is empty.

        Returns:
            Total number of paths processed
        """
        total = 0
        while self._backlog:
            total += await self.process_backlog()
        return total

    async def _process_path(self, path: str, stamp: int, semaphore: asyncio.Semaphore) -> None:
        async with semaphore:
            try:
                if self.is_excluded(path):
                    self._stats.documents_excluded += 1
                    self._excluded_paths.add(path)
                    if path in self._data:
                        self.update(path, None)
                    return
                self._excluded_paths.discard(path)

                document = self._vault.get_file(path)
                if document is None:
                    if path in self._data:
                        self._stats.documents_deleted += 1
                    self.update(path, None)
                    self._cache.discard(path)
                    return

                metrics = await self.collect(document)
                if metrics is None:
                    self._stats.documents_skipped += 1
                    return
                self.update(path, metrics)
                self._stats.documents_updated += 1
            except Exception as e:
                self._stats.errors += 1
                logger.error(
                    "Error processing %s: %s",
                    path,
                    e,
                    extra={"path": path, "error_type": type(e).__name__},
                    exc_info=True,
                )
            finally:
                self._backlog.complete(path, stamp)

    # ------------------------------------------------------------------
    # Measurement
    # ------------------------------------------------------------------

    async def collect(self, document: Document) -> VaultMetrics | None:
        """
        Measure a document, reusing the cached record if its mtime is unchanged.

        Args:
            document: The document to measure

        Returns:
            The document's metrics, or None when its metadata is not
            available yet
        """
        if classify(document) == FileType.NOTE:

            async def compute() -> VaultMetrics | None:
                metadata = await asyncio.to_thread(self._metadata_source.get_metadata, document)
                if metadata is None:
                    logger.debug(
                        "No metadata yet for %s", document.path, extra={"path": document.path}
                    )
                    return None
                extractor = NoteMetricsExtractor(self._vault, self._max_file_size)
                return await extractor.collect(document, metadata)

        else:

            async def compute() -> VaultMetrics | None:
                return await self._attachment_extractor.collect(document)

        return await self._cache.get_or_compute(document.path, document.mtime, compute)

    def update(self, path: str, metrics: VaultMetrics | None) -> None:
        """
        Replace the contribution of *path* in the aggregate.

        The last record applied for the path is subtracted first. A new
        record is then added and remembered; None removes the path instead.

        Args:
            path: Document path
            metrics: New record, or None if the document was deleted
        """
        previous = self._data.get(path)
        if previous is not None:
            self._aggregate.decrement(previous)

        if metrics is None:
            self._data.pop(path, None)
            return

        self._data[path] = metrics
        self._aggregate.increment(metrics)

    def last_known(self, path: str) -> VaultMetrics | None:
        """Return the record last applied for *path*, if any."""
        return self._data.get(path)

    def known_paths(self) -> list[str]:
        return list(self._data)
