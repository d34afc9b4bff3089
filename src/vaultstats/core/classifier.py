"""
Document classification by file extension.
"""

from enum import Enum

from vaultstats.core.documents import Document

NOTE_EXTENSIONS = frozenset({"md"})


class FileType(Enum):
    """Kinds of documents, each measured by its own extractor."""

    NOTE = "note"
    ATTACHMENT = "attachment"


def classify(document: Document) -> FileType:
    """Classify a document as a note (``.md``, any case) or an attachment."""
    if document.extension.lower() in NOTE_EXTENSIONS:
        return FileType.NOTE
    return FileType.ATTACHMENT
