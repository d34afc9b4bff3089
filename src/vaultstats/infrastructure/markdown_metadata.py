"""
Structural metadata extraction from markdown notes.

Splits a note into typed sections with character offsets (front matter,
headings, paragraphs, lists, quotes, callouts, code, math, tables, html,
comments, footnotes) and counts its links and tags. This is a line-oriented
block scanner, not a markdown parser: it only needs to tell apart the section
kinds that are counted as words from those that are not.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import yaml

from vaultstats.core.classifier import FileType, classify
from vaultstats.core.documents import Document, DocumentMetadata, Section
from vaultstats.core.tokenizer import extract_tags
from vaultstats.infrastructure.filesystem_vault import FileSystemVault

logger = logging.getLogger(__name__)

# --- Block patterns -----------------------------------------------------------

_FRONTMATTER_OPEN_RE = re.compile(r"---\s*")
_FRONTMATTER_CLOSE_RE = re.compile(r"(---|\.\.\.)\s*")
_FENCE_RE = re.compile(r" {0,3}(`{3,}|~{3,})")
_HEADING_RE = re.compile(r" {0,3}#{1,6}(?:\s|$)")
_THEMATIC_BREAK_RE = re.compile(r" {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_BLOCKQUOTE_RE = re.compile(r" {0,3}>")
_CALLOUT_RE = re.compile(r" {0,3}>\s*\[![^\]]+\]")
_LIST_ITEM_RE = re.compile(r"\s*(?:[-+*]|\d{1,9}[.)])(?:\s|$)")
_TABLE_DELIMITER_RE = re.compile(r"\s*\|?\s*:?-+:?\s*(?:\|\s*:?-+:?\s*)*\|?\s*$")
_FOOTNOTE_RE = re.compile(r"\[\^[^\]]+\]:")
_DEFINITION_RE = re.compile(r" {0,3}\[[^\]^][^\]]*\]:\s*\S")
_HTML_RE = re.compile(r" {0,3}<[A-Za-z!/]")
_MATH_OPEN = "$$"
_COMMENT_OPEN = "%%"

# --- Inline patterns ----------------------------------------------------------

_WIKILINK_RE = re.compile(r"(?<!!)\[\[([^\]\n]+)\]\]")
_MD_LINK_RE = re.compile(r"(?<!!)\[[^\]\n]*\]\(\s*<?([^)\s>]+)>?[^)\n]*\)")
_URL_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*:")
_INLINE_CODE_RE = re.compile(r"`[^`\n]*`")

# Sections whose text never contains links or tags.
_OPAQUE_SECTIONS = frozenset({"yaml", "code", "math", "comment", "html"})


def _split_lines(content: str) -> list[tuple[int, str]]:
    """Split content into (offset, line) pairs; lines keep no line terminator."""
    lines: list[tuple[int, str]] = []
    offset = 0
    for raw in content.splitlines(keepends=True):
        lines.append((offset, raw.rstrip("\r\n")))
        offset += len(raw)
    return lines


def _is_blank(line: str) -> bool:
    return not line.strip()


def _starts_block(line: str) -> bool:
    """True if *line* opens a block that interrupts a paragraph."""
    stripped = line.lstrip()
    return bool(
        _HEADING_RE.match(line)
        or _FENCE_RE.match(line)
        or _BLOCKQUOTE_RE.match(line)
        or _THEMATIC_BREAK_RE.match(line)
        or stripped.startswith(_MATH_OPEN)
        or stripped.startswith(_COMMENT_OPEN)
    )


class MarkdownSectionScanner:
    """
    Line-oriented scanner producing the ordered sections of a note.

    Each scan method consumes lines starting at an index and returns the
    index of the first line after the block.
    """

    def __init__(self, content: str):
        self._content = content
        self._lines = _split_lines(content)
        self._sections: list[Section] = []

    def scan(self) -> list[Section]:
        index = self._scan_frontmatter()
        while index < len(self._lines):
            line = self._lines[index][1]
            if _is_blank(line):
                index += 1
                continue
            index = self._scan_block(index, line)
        return self._sections

    # ------------------------------------------------------------------
    # Block dispatch
    # ------------------------------------------------------------------

    def _scan_block(self, index: int, line: str) -> int:
        stripped = line.lstrip()
        fence = _FENCE_RE.match(line)
        if fence:
            return self._scan_fenced(index, fence.group(1))
        if stripped.startswith(_MATH_OPEN):
            return self._scan_delimited(index, _MATH_OPEN, "math")
        if stripped.startswith(_COMMENT_OPEN):
            return self._scan_delimited(index, _COMMENT_OPEN, "comment")
        if _HEADING_RE.match(line):
            return self._emit(index, index, "heading")
        if _THEMATIC_BREAK_RE.match(line):
            return self._emit(index, index, "thematicBreak")
        if _BLOCKQUOTE_RE.match(line):
            kind = "callout" if _CALLOUT_RE.match(line) else "blockquote"
            return self._scan_while(index, lambda text: bool(_BLOCKQUOTE_RE.match(text)), kind)
        if self._is_table_start(index):
            return self._scan_while(index, lambda text: "|" in text and not _is_blank(text), "table")
        if _FOOTNOTE_RE.match(line):
            return self._scan_while(index, lambda text: not _is_blank(text), "footnoteDefinition")
        if _DEFINITION_RE.match(line):
            return self._emit(index, index, "definition")
        if _HTML_RE.match(line):
            return self._scan_while(index, lambda text: not _is_blank(text), "html")
        if _LIST_ITEM_RE.match(line):
            return self._scan_list(index)
        return self._scan_paragraph(index)

    # ------------------------------------------------------------------
    # Block scanners
    # ------------------------------------------------------------------

    def _scan_frontmatter(self) -> int:
        if not self._lines or not _FRONTMATTER_OPEN_RE.fullmatch(self._lines[0][1]):
            return 0
        for index in range(1, len(self._lines)):
            if _FRONTMATTER_CLOSE_RE.fullmatch(self._lines[index][1]):
                return self._emit(0, index, "yaml")
        return 0

    def _scan_fenced(self, index: int, marker: str) -> int:
        fence_char = marker[0]
        last = len(self._lines) - 1
        for end in range(index + 1, len(self._lines)):
            text = self._lines[end][1].strip()
            if text.startswith(fence_char * len(marker)) and not text.strip(fence_char):
                last = end
                break
        return self._emit(index, last, "code")

    def _scan_delimited(self, index: int, delimiter: str, kind: str) -> int:
        opening = self._lines[index][1].strip()
        if len(opening) > len(delimiter) and opening.endswith(delimiter) and opening.count(delimiter) >= 2:
            return self._emit(index, index, kind)
        last = len(self._lines) - 1
        for end in range(index + 1, len(self._lines)):
            if delimiter in self._lines[end][1]:
                last = end
                break
        return self._emit(index, last, kind)

    def _scan_while(self, index: int, predicate, kind: str) -> int:
        end = index
        while end + 1 < len(self._lines) and predicate(self._lines[end + 1][1]):
            end += 1
        return self._emit(index, end, kind)

    def _scan_list(self, index: int) -> int:
        end = index
        cursor = index + 1
        while cursor < len(self._lines):
            text = self._lines[cursor][1]
            if _is_blank(text):
                following = self._next_non_blank(cursor)
                if following is None:
                    break
                next_text = self._lines[following][1]
                if not (_LIST_ITEM_RE.match(next_text) or next_text.startswith(("  ", "\t"))):
                    break
                cursor = following
                continue
            if not (_LIST_ITEM_RE.match(text) or text.startswith((" ", "\t"))) and _starts_block(text):
                break
            end = cursor
            cursor += 1
        return self._emit(index, end, "list")

    def _scan_paragraph(self, index: int) -> int:
        end = index
        while end + 1 < len(self._lines):
            text = self._lines[end + 1][1]
            if _is_blank(text) or _starts_block(text):
                break
            end += 1
        return self._emit(index, end, "paragraph")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_table_start(self, index: int) -> bool:
        if "|" not in self._lines[index][1] or index + 1 >= len(self._lines):
            return False
        delimiter = self._lines[index + 1][1]
        return "-" in delimiter and bool(_TABLE_DELIMITER_RE.match(delimiter))

    def _next_non_blank(self, index: int) -> int | None:
        for cursor in range(index, len(self._lines)):
            if not _is_blank(self._lines[cursor][1]):
                return cursor
        return None

    def _emit(self, first: int, last: int, kind: str) -> int:
        start_offset = self._lines[first][0]
        end_offset = self._lines[last][0] + len(self._lines[last][1])
        self._sections.append(Section(type=kind, start_offset=start_offset, end_offset=end_offset))
        return last + 1


def _frontmatter_tags(raw: str) -> list[str]:
    """Read the ``tags``/``tag`` entry of YAML front matter as #-prefixed tags."""
    body = "\n".join(raw.splitlines()[1:-1])
    try:
        data: Any = yaml.safe_load(body)
    except yaml.YAMLError:
        logger.debug("Ignoring unparsable front matter")
        return []
    if not isinstance(data, dict):
        return []

    value = data.get("tags", data.get("tag"))
    if value is None:
        return []
    if isinstance(value, str):
        values = re.split(r"[,\s]+", value)
    elif isinstance(value, list):
        values = [str(v) for v in value if v is not None]
    else:
        values = [str(value)]

    return ["#" + v.strip().lstrip("#") for v in values if v.strip().lstrip("#")]


def _is_internal_link(target: str) -> bool:
    return not _URL_SCHEME_RE.match(target)


def parse_markdown(content: str) -> DocumentMetadata:
    """
    Extract sections, link count and tag count from note content.

    Links are wiki links and markdown links to non-URL targets; embeds
    (``![[...]]``, ``![...](...)``) are not links. Tags are the unique inline
    tags outside code, math, comments, html and front matter, together with
    the front matter ``tags`` entry.

    Args:
        content: Raw note content

    Returns:
        DocumentMetadata for the note
    """
    sections = MarkdownSectionScanner(content).scan()
    links = 0
    tags: dict[str, None] = {}

    for section in sections:
        text = content[section.start_offset : section.end_offset]
        if section.type == "yaml":
            for tag in _frontmatter_tags(text):
                tags.setdefault(tag, None)
            continue
        if section.type in _OPAQUE_SECTIONS:
            continue

        links += len(_WIKILINK_RE.findall(text))
        links += sum(1 for target in _MD_LINK_RE.findall(text) if _is_internal_link(target))
        for tag in extract_tags(_INLINE_CODE_RE.sub(" ", text)):
            tags.setdefault(tag, None)

    return DocumentMetadata(sections=sections, links=links, tags=len(tags), content=content)


class MarkdownMetadataSource:
    """
    Metadata source that parses notes straight from a filesystem vault.

    Returns None for documents that no longer exist or cannot be read, which
    the collector treats as "not available this round".
    """

    def __init__(self, vault: FileSystemVault):
        self._vault = vault

    def get_metadata(self, document: Document) -> DocumentMetadata | None:
        if classify(document) != FileType.NOTE:
            return DocumentMetadata()
        try:
            content = self._vault.read_text(document.path)
        except OSError as e:
            logger.debug(
                "Metadata unavailable for %s: %s",
                document.path,
                e,
                extra={"path": document.path, "error_type": type(e).__name__},
            )
            return None
        return parse_markdown(content)
