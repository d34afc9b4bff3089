"""
Directory-backed vault.

Exposes every regular file under a root directory as a Document with a
POSIX-style path relative to the root. Content is read on demand in a worker
thread so the collector's event loop never blocks on disk I/O.
"""

import asyncio
import fnmatch
import logging
import os
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from vaultstats.core.documents import Document

logger = logging.getLogger(__name__)


def should_ignore(relative_path: str, ignore_patterns: Iterable[str]) -> bool:
    """
    Check if a vault-relative path matches any ignore pattern.

    A pattern matches the file name, the full relative path, or any single
    path component, so ".git" ignores everything below a .git directory.

    Args:
        relative_path: POSIX-style path relative to the vault root
        ignore_patterns: fnmatch-style patterns

    Returns:
        True if the path should be ignored
    """
    parts = PurePosixPath(relative_path).parts
    for pattern in ignore_patterns:
        if fnmatch.fnmatch(relative_path, pattern):
            return True
        for part in parts:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False


class FileSystemVault:
    """Vault implementation over a directory on disk."""

    def __init__(self, root: Path | str, ignore_patterns: list[str] | None = None):
        """
        Initialize the vault.

        Args:
            root: Vault root directory
            ignore_patterns: Patterns of files and directories to leave out
        """
        self._root = Path(root).resolve()
        self._ignore_patterns = list(ignore_patterns or [])

    @property
    def root(self) -> Path:
        return self._root

    @property
    def ignore_patterns(self) -> list[str]:
        return list(self._ignore_patterns)

    def relative_path(self, path: Path | str) -> str | None:
        """
        Convert an absolute or root-relative path to a vault path.

        Returns:
            The POSIX-style vault path, or None if *path* is outside the
            root or ignored
        """
        path = Path(path)
        if path.is_absolute():
            try:
                path = path.relative_to(self._root)
            except ValueError:
                return None
        relative = path.as_posix()
        if relative in ("", ".") or relative.startswith("../"):
            return None
        if should_ignore(relative, self._ignore_patterns):
            return None
        return relative

    def list_files(self) -> list[Document]:
        """Return every non-ignored regular file under the root, sorted by path."""
        documents: list[Document] = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            base = Path(dirpath).relative_to(self._root)
            dirnames[:] = [
                name
                for name in dirnames
                if not should_ignore((base / name).as_posix(), self._ignore_patterns)
            ]
            for name in filenames:
                relative = (base / name).as_posix()
                if should_ignore(relative, self._ignore_patterns):
                    continue
                document = self.get_file(relative)
                if document is not None:
                    documents.append(document)
        documents.sort(key=lambda d: d.path)
        logger.debug("Listed %d files under %s", len(documents), self._root)
        return documents

    def get_file(self, path: str) -> Document | None:
        """Return the document at *path*, or None if it is not a regular file."""
        absolute = self._root / path
        try:
            stat = absolute.stat()
        except OSError:
            return None
        if not absolute.is_file():
            return None
        return Document(path=path, size=stat.st_size, mtime=stat.st_mtime_ns)

    def read_text(self, path: str) -> str:
        """
        Read a file as UTF-8, replacing undecodable bytes.

        Raises:
            OSError: If the file cannot be read
        """
        return (self._root / path).read_text(encoding="utf-8", errors="replace")

    async def read(self, document: Document) -> str:
        return await asyncio.to_thread(self.read_text, document.path)
