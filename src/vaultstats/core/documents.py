"""
Document models and collaborator interfaces.

The collector never talks to the filesystem directly. It consumes a vault
(document listing, stat and raw content) and a metadata source (structural
sections plus link and tag counts) through the protocols defined here, so it
can run against in-memory fakes as well as a real directory.
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class Document:
    """
    A single addressable file in the vault.

    Attributes:
        path: POSIX-style path relative to the vault root (e.g. "notes/a.md")
        size: Byte length of the file
        mtime: Last modification time, as reported by the vault
    """

    path: str
    size: int = 0
    mtime: float = 0

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        """File extension without the leading dot, or "" if there is none."""
        name = self.name
        if "." not in name.lstrip("."):
            return ""
        return name.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class Section:
    """
    A typed block of a note, delimited by character offsets into its content.

    Attributes:
        type: Section kind (e.g. "paragraph", "code", "yaml")
        start_offset: Offset of the first character of the section
        end_offset: Offset one past the last character of the section
    """

    type: str
    start_offset: int
    end_offset: int


@dataclass
class DocumentMetadata:
    """
    Structural metadata for a note.

    Attributes:
        sections: Typed blocks of the note, in order
        links: Number of internal links
        tags: Number of unique tags
        content: The text the sections were parsed from, when the source
            read it; word counting then uses the same version of the note
    """

    sections: list[Section] = field(default_factory=list)
    links: int = 0
    tags: int = 0
    content: str | None = field(default=None, repr=False)


class VaultInterface(Protocol):
    """Protocol for the document collection the collector measures."""

    def list_files(self) -> list[Document]:
        """Return every document currently in the vault."""
        ...

    def get_file(self, path: str) -> Document | None:
        """Return the document at *path*, or None if it no longer exists."""
        ...

    async def read(self, document: Document) -> str:
        """Read the raw content of a document."""
        ...


class MetadataSourceInterface(Protocol):
    """Protocol for the structural metadata extractor."""

    def get_metadata(self, document: Document) -> DocumentMetadata | None:
        """
        Return structural metadata for a document.

        None means the metadata is not available yet; callers treat that as
        "skip this round", not as an error.
        """
        ...
