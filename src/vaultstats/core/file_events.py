"""
File event models for the collector.

Provides data structures for representing vault change notifications.
Every event kind maps to one or more backlog enqueues.
"""

import time
from dataclasses import dataclass, field
from enum import Enum


class FileEventType(Enum):
    """Types of vault change notifications."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    MOVED = "moved"
    METADATA_RESOLVED = "metadata_resolved"
    METADATA_CHANGED = "metadata_changed"


@dataclass
class FileEvent:
    """
    Represents a single change notification.

    Attributes:
        event_type: Type of the event
        file_path: Vault-relative path of the affected document
        old_path: Previous path for MOVED events, None otherwise
        timestamp: Unix timestamp when the event occurred
    """

    event_type: FileEventType
    file_path: str
    old_path: str | None = None
    timestamp: float = field(default_factory=time.time)

    def affected_paths(self) -> list[str]:
        """
        Paths that need re-measuring because of this event.

        A move affects both its destination and its source; the source no
        longer exists and is therefore processed as a deletion.
        """
        paths = [self.file_path]
        if self.event_type == FileEventType.MOVED and self.old_path:
            paths.append(self.old_path)
        return paths
