"""
Infrastructure Layer - Filesystem vault, markdown metadata and file watching.
"""

from vaultstats.infrastructure.fakes import (
    FakeFileWatcher,
    InMemoryMetadataSource,
    InMemoryVault,
)
from vaultstats.infrastructure.file_watcher import FileWatcher, FileWatcherInterface
from vaultstats.infrastructure.filesystem_vault import FileSystemVault, should_ignore
from vaultstats.infrastructure.markdown_metadata import (
    MarkdownMetadataSource,
    MarkdownSectionScanner,
    parse_markdown,
)

__all__ = [
    "FileSystemVault",
    "should_ignore",
    "MarkdownMetadataSource",
    "MarkdownSectionScanner",
    "parse_markdown",
    "FileWatcherInterface",
    "FileWatcher",
    # Fakes for testing
    "InMemoryVault",
    "InMemoryMetadataSource",
    "FakeFileWatcher",
]
