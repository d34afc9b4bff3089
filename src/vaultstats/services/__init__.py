"""
Service Layer - MetricsCollectorService, WatchService and ServicesContainer.
"""

from vaultstats.services.backlog import (
    BUSY_INTERVAL_MS,
    DEFAULT_INTERVAL_MS,
    IDLE_INTERVAL_MS,
    Backlog,
    BacklogScheduler,
    compute_interval_ms,
)
from vaultstats.services.collector_service import CollectorStats, MetricsCollectorService
from vaultstats.services.container import ServicesContainer, create_services
from vaultstats.services.extractors import (
    AttachmentMetricsExtractor,
    NoteMetricsExtractor,
)
from vaultstats.services.watch_service import (
    PathValidationError,
    WatchService,
    WatchServiceError,
    WatchStats,
)

__all__ = [
    # Container and factory
    "ServicesContainer",
    "create_services",
    # Collector
    "MetricsCollectorService",
    "CollectorStats",
    "NoteMetricsExtractor",
    "AttachmentMetricsExtractor",
    # Backlog scheduling
    "Backlog",
    "BacklogScheduler",
    "compute_interval_ms",
    "BUSY_INTERVAL_MS",
    "DEFAULT_INTERVAL_MS",
    "IDLE_INTERVAL_MS",
    # Watch service
    "WatchService",
    "WatchServiceError",
    "PathValidationError",
    "WatchStats",
]
