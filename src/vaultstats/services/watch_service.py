"""
Watch Service for live vault statistics.

Connects a file watcher to the metrics collector: watcher callbacks only hand
affected paths to the collector's event loop, and aggregate updates are
debounced into snapshot reports once the totals have settled.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from vaultstats.core.config import WatchConfig
from vaultstats.core.file_events import FileEvent
from vaultstats.core.metrics import AggregateMetrics, VaultMetrics
from vaultstats.infrastructure.file_watcher import FileWatcherInterface
from vaultstats.services.collector_service import MetricsCollectorService

logger = logging.getLogger(__name__)


@dataclass
class WatchStats:
    """
    Statistics for the watch service.

    Tracks events received, snapshots reported and timing information for
    monitoring and debugging.
    """

    started_at: datetime = field(default_factory=datetime.now)
    events_received: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)
    snapshots_reported: int = 0
    last_event_at: datetime | None = None

    def to_dict(self) -> dict:
        """Serialize stats to dictionary for JSON reporting."""
        return {
            "started_at": self.started_at.isoformat(),
            "events_received": self.events_received,
            "events_by_type": dict(self.events_by_type),
            "snapshots_reported": self.snapshots_reported,
            "last_event_at": self.last_event_at.isoformat() if self.last_event_at else None,
        }


class WatchServiceError(Exception):
    """Base exception for watch service errors."""

    pass


class PathValidationError(WatchServiceError):
    """Raised when path validation fails."""

    pass


SnapshotCallback = Callable[[VaultMetrics], None]


class WatchService:
    """
    Service that keeps vault statistics live while the vault changes.

    Attributes:
        watch_path: Vault root directory watched for changes
        config: Watch configuration (refresh delay)
    """

    def __init__(
        self,
        collector: MetricsCollectorService,
        file_watcher: FileWatcherInterface,
        watch_path: Path,
        config: WatchConfig | None = None,
        on_snapshot: SnapshotCallback | None = None,
    ):
        """
        Initialize the watch service.

        Args:
            collector: Collector that owns the backlog and the aggregate
            file_watcher: File system watcher implementation
            watch_path: Vault root directory to watch
            config: Watch configuration (defaults from defaults.yaml)
            on_snapshot: Called with settled totals after each burst of updates
        """
        self._collector = collector
        self._file_watcher = file_watcher
        self._watch_path = Path(watch_path)
        self._config = config if config is not None else WatchConfig()
        self._on_snapshot = on_snapshot
        self._stats = WatchStats()
        self._running = False
        self._event_loop: asyncio.AbstractEventLoop | None = None
        self._refresh_handle: asyncio.TimerHandle | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def watch_path(self) -> Path:
        return self._watch_path

    @property
    def config(self) -> WatchConfig:
        """Get the watch configuration."""
        return self._config

    async def start(self) -> None:
        """
        Start the watch service.

        Validates the path, starts the collector (which enqueues the full
        vault listing) and begins file system monitoring.

        Raises:
            PathValidationError: If the path doesn't exist or isn't a directory
            WatchServiceError: If the service is already running
        """
        if self._running:
            raise WatchServiceError("Watch service is already running")

        watch_path = self._watch_path.resolve()
        self._validate_path(watch_path)

        logger.info(
            f"Starting watch service for: {watch_path}",
            extra={"watch_path": str(watch_path), "refresh_ms": self._config.refresh_ms},
        )

        self._event_loop = asyncio.get_running_loop()
        self._stats = WatchStats()
        self._unsubscribe = self._collector.aggregate.subscribe(self._on_metrics_updated)

        await self._collector.start()
        self._running = True
        try:
            self._file_watcher.start(watch_path, self._on_file_event_sync)
        except Exception:
            self._running = False
            await self._collector.stop()
            raise

        logger.info(
            "Watch service started",
            extra={"watch_path": str(watch_path), "refresh_ms": self._config.refresh_ms},
        )

    async def stop(self) -> None:
        """
        Stop the watch service gracefully.

        Releases the file watcher first so no new events arrive, then lets
        the collector finish its in-flight batch.
        """
        if not self._running:
            logger.debug("Watch service is not running, nothing to stop")
            return

        logger.info("Stopping watch service...")

        self._file_watcher.stop()
        await self._collector.stop()

        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        self._running = False
        self._event_loop = None

        logger.info("Watch service stopped", extra={"stats": self._stats.to_dict()})

    def is_running(self) -> bool:
        """Check if the watch service is currently running."""
        return self._running

    def get_stats(self) -> WatchStats:
        """Get current watch statistics."""
        return self._stats

    def get_pending_count(self) -> int:
        """Get the number of paths waiting to be measured."""
        return len(self._collector.backlog)

    def _validate_path(self, path: Path) -> None:
        """
        Validate that the path exists and is a directory.

        Raises:
            PathValidationError: If validation fails
        """
        if not path.exists():
            raise PathValidationError(f"Path does not exist: {path}")

        if not path.is_dir():
            raise PathValidationError(f"Path is not a directory: {path}")

    def _on_file_event_sync(self, event: FileEvent) -> None:
        """
        Synchronous callback for file events from the watchdog thread.

        Hands the event to the event loop; nothing else is touched here.
        """
        if self._event_loop is None:
            return
        self._event_loop.call_soon_threadsafe(self._on_file_event, event)

    def _on_file_event(self, event: FileEvent) -> None:
        """Record an event and enqueue its paths. Runs on the event loop."""
        if not self._running:
            return

        self._stats.events_received += 1
        kind = event.event_type.value
        self._stats.events_by_type[kind] = self._stats.events_by_type.get(kind, 0) + 1
        self._stats.last_event_at = datetime.now()

        self._collector.handle_event(event)

    def _on_metrics_updated(self, aggregate: AggregateMetrics) -> None:
        """Restart the refresh timer; a snapshot is reported once updates pause."""
        if self._on_snapshot is None or self._event_loop is None:
            return
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
        self._refresh_handle = self._event_loop.call_later(
            self._config.refresh_ms / 1000.0, self._report_snapshot
        )

    def _report_snapshot(self) -> None:
        self._refresh_handle = None
        if self._on_snapshot is None:
            return
        self._stats.snapshots_reported += 1
        try:
            self._on_snapshot(self._collector.aggregate.snapshot())
        except Exception as e:
            logger.error(f"Error in snapshot callback: {e}", exc_info=True)
