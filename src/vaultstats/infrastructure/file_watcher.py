"""
File watcher infrastructure component.

Provides vault change notifications using the watchdog library with support for:
- File creation, modification, deletion, and move events
- Ignore pattern filtering
- Vault-relative, POSIX-style event paths
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from vaultstats.core.file_events import FileEvent, FileEventType
from vaultstats.infrastructure.filesystem_vault import should_ignore

logger = logging.getLogger(__name__)


class FileWatcherInterface(Protocol):
    """Protocol for file watcher implementations."""

    def start(self, path: Path, callback: Callable[[FileEvent], None]) -> None:
        """
        Start watching the specified directory.

        Args:
            path: Directory path to watch
            callback: Function to call when file events occur
        """
        ...

    def stop(self) -> None:
        """Stop watching and release resources."""
        ...

    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        ...


class FileWatcher(FileWatcherInterface):
    """
    File system watcher implementation using watchdog.

    Monitors a vault directory for file changes and emits FileEvent objects
    through a callback. The callback runs on the watchdog observer thread.
    """

    def __init__(self, ignore_patterns: list[str] | None = None):
        """
        Initialize the file watcher.

        Args:
            ignore_patterns: Patterns of files and directories to ignore
        """
        self._ignore_patterns = ignore_patterns or []
        self._observer: Observer | None = None
        self._callback: Callable[[FileEvent], None] | None = None
        self._watch_path: Path | None = None
        self._lock = threading.Lock()

    def start(self, path: Path, callback: Callable[[FileEvent], None]) -> None:
        """
        Start watching the specified directory.

        Args:
            path: Directory path to watch (must exist and be a directory)
            callback: Function to call when file events occur

        Raises:
            ValueError: If path doesn't exist or isn't a directory
            RuntimeError: If watcher is already running
        """
        with self._lock:
            if self._observer is not None and self._observer.is_alive():
                raise RuntimeError("File watcher is already running")

            path = Path(path).resolve()
            if not path.exists():
                raise ValueError(f"Path does not exist: {path}")
            if not path.is_dir():
                raise ValueError(f"Path is not a directory: {path}")

            self._watch_path = path
            self._callback = callback

            handler = _WatchdogEventHandler(
                callback=self._handle_event,
                ignore_patterns=self._ignore_patterns,
                root_path=path,
            )

            self._observer = Observer()
            self._observer.schedule(handler, str(path), recursive=True)
            self._observer.start()

            logger.info(f"Started watching: {path}")

    def stop(self) -> None:
        """Stop watching and release resources."""
        with self._lock:
            if self._observer is not None:
                self._observer.stop()
                self._observer.join(timeout=5.0)
                self._observer = None
                logger.info(f"Stopped watching: {self._watch_path}")
            self._callback = None
            self._watch_path = None

    def is_running(self) -> bool:
        """Check if the watcher is currently running."""
        with self._lock:
            return self._observer is not None and self._observer.is_alive()

    def _handle_event(self, event: FileEvent) -> None:
        """Internal handler that forwards events to the callback."""
        if self._callback is not None:
            try:
                self._callback(event)
            except Exception as e:
                logger.error(f"Error in file event callback: {e}")


class _WatchdogEventHandler(FileSystemEventHandler):
    """
    Internal watchdog event handler.

    Converts watchdog events to FileEvent objects with vault-relative paths
    and applies ignore filtering.
    """

    def __init__(
        self,
        callback: Callable[[FileEvent], None],
        ignore_patterns: list[str],
        root_path: Path,
    ):
        """
        Initialize the event handler.

        Args:
            callback: Function to call with FileEvent objects
            ignore_patterns: List of patterns to ignore
            root_path: Root path being watched (for relative path calculation)
        """
        super().__init__()
        self._callback = callback
        self._ignore_patterns = ignore_patterns
        self._root_path = root_path

    def _to_vault_path(self, raw_path: str | bytes) -> str | None:
        """
        Convert a watchdog path to a vault-relative path.

        Returns:
            The POSIX-style relative path, or None if the path is outside
            the root or ignored
        """
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode("utf-8", errors="replace")
        try:
            relative = Path(raw_path).relative_to(self._root_path).as_posix()
        except ValueError:
            return None
        if relative in ("", "."):
            return None
        if should_ignore(relative, self._ignore_patterns):
            logger.debug(f"Ignoring event for: {relative}")
            return None
        return relative

    def _emit_event(
        self,
        event_type: FileEventType,
        file_path: str,
        old_path: str | None = None,
    ) -> None:
        event = FileEvent(event_type=event_type, file_path=file_path, old_path=old_path)
        logger.debug(f"Emitting event: {event_type.value} - {file_path}")
        self._callback(event)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file/directory creation events."""
        if isinstance(event, DirCreatedEvent):
            return

        path = self._to_vault_path(event.src_path)
        if path is not None:
            self._emit_event(FileEventType.CREATED, path)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file/directory modification events."""
        if isinstance(event, DirModifiedEvent):
            return

        path = self._to_vault_path(event.src_path)
        if path is not None:
            self._emit_event(FileEventType.MODIFIED, path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file/directory deletion events."""
        if isinstance(event, DirDeletedEvent):
            return

        path = self._to_vault_path(event.src_path)
        if path is not None:
            self._emit_event(FileEventType.DELETED, path)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file/directory move events."""
        if isinstance(event, DirMovedEvent):
            return

        src_path = self._to_vault_path(event.src_path)
        dest_path = self._to_vault_path(event.dest_path)

        if dest_path is not None:
            self._emit_event(FileEventType.MOVED, dest_path, old_path=src_path)
        elif src_path is not None:
            # Moved out of the vault or into an ignored location.
            self._emit_event(FileEventType.DELETED, src_path)
