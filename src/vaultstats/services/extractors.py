"""
Per-document metrics extractors.

NoteMetricsExtractor tokenizes the sections of a markdown note;
AttachmentMetricsExtractor only records file count and size.
"""

import logging

from vaultstats.core.documents import Document, DocumentMetadata, VaultInterface
from vaultstats.core.metrics import VaultMetrics
from vaultstats.core.tokenizer import MARKDOWN_TOKENIZER, UNIT_TOKENIZER, TokenizerInterface

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 512 * 1024

# Section types whose words count use the markdown tokenizer; the rest are
# visited with the unit tokenizer and contribute nothing.
SECTION_TOKENIZERS: dict[str, TokenizerInterface] = {
    "paragraph": MARKDOWN_TOKENIZER,
    "heading": MARKDOWN_TOKENIZER,
    "list": MARKDOWN_TOKENIZER,
    "table": UNIT_TOKENIZER,
    "yaml": UNIT_TOKENIZER,
    "code": UNIT_TOKENIZER,
    "blockquote": MARKDOWN_TOKENIZER,
    "math": UNIT_TOKENIZER,
    "thematicBreak": UNIT_TOKENIZER,
    "html": UNIT_TOKENIZER,
    "text": UNIT_TOKENIZER,
    "element": UNIT_TOKENIZER,
    "footnoteDefinition": UNIT_TOKENIZER,
    "definition": UNIT_TOKENIZER,
    "callout": MARKDOWN_TOKENIZER,
    "comment": UNIT_TOKENIZER,
}


class NoteMetricsExtractor:
    """
    Measures a markdown note.

    Content is truncated to max_file_size characters before tokenizing, so
    words beyond the limit are not counted. The text the metadata was parsed
    from is reused when the source provides it, so links, tags and words all
    describe one version of the note; otherwise the note is read from the
    vault. Read or tokenization failures degrade the record to zero words
    instead of failing it.
    """

    def __init__(
        self,
        vault: VaultInterface,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        tokenizers: dict[str, TokenizerInterface] | None = None,
    ):
        """
        Initialize the extractor.

        Args:
            vault: Vault used to read note content
            max_file_size: Maximum number of characters analysed per note
            tokenizers: Section type to tokenizer mapping (default: SECTION_TOKENIZERS)
        """
        self._vault = vault
        self._max_file_size = max_file_size
        self._tokenizers = tokenizers if tokenizers is not None else SECTION_TOKENIZERS

    async def collect(self, document: Document, metadata: DocumentMetadata) -> VaultMetrics:
        metrics = VaultMetrics(
            files=1,
            notes=1,
            attachments=0,
            size=document.size,
            links=metadata.links,
            tags=metadata.tags,
        )

        try:
            content = metadata.content
            if content is None:
                content = await self._vault.read(document)
            metrics.words = self.count_words(document, content, metadata)
        except Exception as e:
            logger.warning(
                "Could not count words in %s: %s",
                document.path,
                e,
                extra={"path": document.path, "error_type": type(e).__name__},
            )
            metrics.words = 0

        metrics.quality = metrics.links / metrics.notes if metrics.notes else 0.0
        return metrics

    def count_words(self, document: Document, content: str, metadata: DocumentMetadata) -> int:
        """
        Sum the token counts of every section of a note.

        Args:
            document: The note being measured (used for logging)
            content: Raw note content
            metadata: Sections of the note

        Returns:
            Total number of word tokens
        """
        if len(content) > self._max_file_size:
            content = content[: self._max_file_size]

        words = 0
        for section in metadata.sections:
            tokenizer = self._tokenizers.get(section.type)
            if tokenizer is None:
                logger.debug(
                    f"{document.path}: no tokenizer, section.type={section.type}",
                    extra={"path": document.path, "section_type": section.type},
                )
                continue
            words += len(tokenizer.tokenize(content[section.start_offset : section.end_offset]))
        return words


class AttachmentMetricsExtractor:
    """Measures a non-note document; its content is never read."""

    async def collect(self, document: Document, metadata: DocumentMetadata | None = None) -> VaultMetrics:
        return VaultMetrics(files=1, notes=0, attachments=1, size=document.size)
