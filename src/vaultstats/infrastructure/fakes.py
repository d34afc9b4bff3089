"""
Fake implementations for testing.

Provides in-memory implementations of the vault, metadata source and file
watcher interfaces for use in unit and integration tests without touching
the filesystem.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING

from vaultstats.core.documents import Document, DocumentMetadata
from vaultstats.infrastructure.markdown_metadata import parse_markdown

if TYPE_CHECKING:
    from vaultstats.core.file_events import FileEvent


@dataclass
class _StoredFile:
    content: str
    size: int
    mtime: float


class InMemoryVault:
    """
    In-memory vault for testing.

    Implements VaultInterface. Every write bumps a logical clock used as the
    modification time unless an explicit mtime is given.
    """

    def __init__(self) -> None:
        self._files: dict[str, _StoredFile] = {}
        self._clock = 0.0
        self._read_failures: set[str] = set()
        self.read_calls: list[str] = []

    def write(
        self,
        path: str,
        content: str = "",
        *,
        size: int | None = None,
        mtime: float | None = None,
    ) -> Document:
        """
        Create or replace a file.

        Args:
            path: Vault path
            content: File content
            size: Byte length to report (default: UTF-8 length of content)
            mtime: Modification time (default: next tick of the logical clock)

        Returns:
            The stored document
        """
        self._clock += 1
        self._files[path] = _StoredFile(
            content=content,
            size=size if size is not None else len(content.encode("utf-8")),
            mtime=mtime if mtime is not None else self._clock,
        )
        document = self.get_file(path)
        assert document is not None
        return document

    def touch(self, path: str) -> Document:
        """Bump the modification time of a file without changing its content."""
        stored = self._files[path]
        return self.write(path, stored.content, size=stored.size)

    def delete(self, path: str) -> None:
        self._files.pop(path, None)

    def rename(self, old_path: str, new_path: str) -> None:
        self._files[new_path] = self._files.pop(old_path)

    def fail_reads(self, path: str) -> None:
        """Make every read of *path* raise OSError."""
        self._read_failures.add(path)

    def content_of(self, path: str) -> str:
        return self._files[path].content

    def list_files(self) -> list[Document]:
        return [doc for doc in (self.get_file(path) for path in sorted(self._files)) if doc]

    def get_file(self, path: str) -> Document | None:
        stored = self._files.get(path)
        if stored is None:
            return None
        return Document(path=path, size=stored.size, mtime=stored.mtime)

    async def read(self, document: Document) -> str:
        self.read_calls.append(document.path)
        if document.path in self._read_failures:
            raise OSError(f"Simulated read failure: {document.path}")
        stored = self._files.get(document.path)
        if stored is None:
            raise FileNotFoundError(document.path)
        return stored.content


class InMemoryMetadataSource:
    """
    In-memory metadata source for testing.

    Returns explicitly registered metadata when present, otherwise parses the
    note content held by the vault without handing the text over, so note
    words are still read through the vault. Paths marked unavailable return
    None, as a metadata extractor that has not indexed a note yet would.
    """

    def __init__(self, vault: InMemoryVault | None = None):
        self._vault = vault
        self._metadata: dict[str, DocumentMetadata] = {}
        self._unavailable: set[str] = set()
        self.calls: list[str] = []

    def set_metadata(self, path: str, metadata: DocumentMetadata) -> None:
        self._metadata[path] = metadata
        self._unavailable.discard(path)

    def mark_unavailable(self, path: str) -> None:
        self._unavailable.add(path)

    def mark_available(self, path: str) -> None:
        self._unavailable.discard(path)

    def get_metadata(self, document: Document) -> DocumentMetadata | None:
        self.calls.append(document.path)
        if document.path in self._unavailable:
            return None
        if document.path in self._metadata:
            return self._metadata[document.path]
        if self._vault is None or self._vault.get_file(document.path) is None:
            return None
        return replace(parse_markdown(self._vault.content_of(document.path)), content=None)


class FakeFileWatcher:
    """
    Fake file watcher for testing.

    Allows manual triggering of file events without actual file system monitoring.
    Implements the same interface as FileWatcher for use in tests.
    """

    def __init__(self, ignore_patterns: list[str] | None = None):
        """
        Initialize the fake file watcher.

        Args:
            ignore_patterns: List of patterns to ignore (ignored in fake)
        """
        self._ignore_patterns = ignore_patterns or []
        self._callback: Callable[[FileEvent], None] | None = None
        self._watch_path: Path | None = None
        self._running = False
        self._events: list[FileEvent] = []

    @property
    def watch_path(self) -> Path | None:
        return self._watch_path

    def start(self, path: Path, callback: Callable[[FileEvent], None]) -> None:
        """
        Start the fake watcher.

        Args:
            path: Directory path to watch
            callback: Function to call when events are triggered
        """
        if self._running:
            raise RuntimeError("File watcher is already running")

        self._watch_path = Path(path).resolve()
        self._callback = callback
        self._running = True

    def stop(self) -> None:
        """Stop the fake watcher."""
        self._running = False
        self._callback = None
        self._watch_path = None

    def is_running(self) -> bool:
        """Check if the fake watcher is running."""
        return self._running

    def trigger_event(self, event: FileEvent) -> None:
        """
        Manually trigger a file event.

        This is the main testing interface - allows tests to simulate
        file system events without actual file operations.

        Args:
            event: The FileEvent to trigger
        """
        if not self._running:
            raise RuntimeError("File watcher is not running")

        self._events.append(event)
        if self._callback is not None:
            self._callback(event)

    def get_triggered_events(self) -> list[FileEvent]:
        """Get all events that have been triggered."""
        return list(self._events)
