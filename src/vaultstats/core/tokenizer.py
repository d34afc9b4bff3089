"""
Tokenizer module for word counting over markdown content.

Provides two interchangeable tokenizers selected per section type:
a constant unit tokenizer for content that never counts toward word totals
(code, tables, front matter, ...) and a markdown-aware word tokenizer.
Also provides inline tag extraction.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Callable


class TokenizerInterface(ABC):
    """Abstract interface for tokenization operations."""

    @abstractmethod
    def tokenize(self, content: str) -> list[str]:
        """
        Split content into word tokens.

        Args:
            content: The text to tokenize.

        Returns:
            Tokens in order of appearance, duplicates retained.
        """
        pass


class UnitTokenizer(TokenizerInterface):
    """Constant tokenizer that always returns an empty list."""

    def tokenize(self, content: str) -> list[str]:
        return []


# Runs of these characters separate candidate tokens.
_WORD_BOUNDARY_RE = re.compile(r"[ \n\r\t\"|,()\[\]/]+")

# \w is restricted to ASCII so that only Latin and Cyrillic letters count as words.
_NON_WORD_RE = re.compile(r"[^\wа-яА-ЯёЁ]+", re.ASCII)
_NUMBER_RE = re.compile(r"\d+(\.\d+)?", re.ASCII)
_CODE_BLOCK_HEADER_RE = re.compile(r"```\w+", re.ASCII)

_HIGHLIGHT_RE = re.compile(r"(==)?(.*?)(==)?", re.DOTALL)
_FORMATTING_RE = re.compile(r"(_+|\*+)?(.*?)(_+|\*+)?", re.DOTALL)
_PUNCTUATION_RE = re.compile(r"([`.:\",!?])?(.*?)([`.:\",!?])?", re.DOTALL)
_WIKI_LINK_RE = re.compile(r"(\[\[)?(.*?)(\]\])?", re.DOTALL)


def _strip_with(pattern: re.Pattern[str]) -> Callable[[str], str]:
    """Build a transform that removes the optional edge groups of *pattern*."""

    def strip(token: str) -> str:
        match = pattern.fullmatch(token)
        if match is None:
            return token
        return match.group(2)

    return strip


strip_highlights = _strip_with(_HIGHLIGHT_RE)
strip_formatting = _strip_with(_FORMATTING_RE)
strip_punctuation = _strip_with(_PUNCTUATION_RE)
strip_wiki_links = _strip_with(_WIKI_LINK_RE)


class MarkdownTokenizer(TokenizerInterface):
    """
    Tokenizer that understands how to split markdown text into word tokens.

    Candidate tokens are filtered (symbols, numbers, fenced code headers) and
    then stripped of markup at both edges until a pass leaves them unchanged,
    so nested markers such as ``_**foo**_`` or ``[[foo]]:`` reduce to ``foo``.
    """

    # Applied in order on every pass.
    STRIP_TRANSFORMS: tuple[Callable[[str], str], ...] = (
        strip_highlights,
        strip_formatting,
        strip_punctuation,
        strip_wiki_links,
    )

    # Every transform only ever shortens a token, so this is never reached
    # for the shipped transforms; it bounds the loop if that ever changes.
    MAX_STRIP_PASSES = 64

    @staticmethod
    def is_non_word(token: str) -> bool:
        return _NON_WORD_RE.fullmatch(token) is not None

    @staticmethod
    def is_number(token: str) -> bool:
        return _NUMBER_RE.fullmatch(token) is not None

    @staticmethod
    def is_code_block_header(token: str) -> bool:
        return _CODE_BLOCK_HEADER_RE.fullmatch(token) is not None

    def strip_all(self, token: str) -> str:
        """
        Strip markup from both edges of a token until a fixed point is reached.

        Args:
            token: Candidate token.

        Returns:
            The stripped token, possibly empty.
        """
        for _ in range(self.MAX_STRIP_PASSES):
            if not token:
                break
            previous = token
            for transform in self.STRIP_TRANSFORMS:
                token = transform(token)
            if token == previous:
                break
        return token

    def tokenize(self, content: str) -> list[str]:
        if not content.strip():
            return []

        words: list[str] = []
        for token in _WORD_BOUNDARY_RE.split(content):
            if self.is_non_word(token) or self.is_number(token):
                continue
            if self.is_code_block_header(token):
                continue
            token = self.strip_all(token)
            if token:
                words.append(token)
        return words


UNIT_TOKENIZER = UnitTokenizer()
MARKDOWN_TOKENIZER = MarkdownTokenizer()


def unit_tokenize(content: str) -> list[str]:
    return UNIT_TOKENIZER.tokenize(content)


def markdown_tokenize(content: str) -> list[str]:
    return MARKDOWN_TOKENIZER.tokenize(content)


# Characters that may precede a tag and that terminate one. '#' terminates a
# tag but does not open one, so "##heading" and "a#b" are never tags.
_TAG_TERMINATORS = r"\s!\"#$%&'()*+,.:;<=>?@\[\\\]^`{|}~"
_TAG_RE = re.compile(
    rf"(?:^|(?<=[{_TAG_TERMINATORS}]))(?<!#)#([^{_TAG_TERMINATORS}]+)"
)


def extract_tags(content: str) -> list[str]:
    """
    Extract inline ``#tags`` from text.

    A tag starts with ``#`` at the start of the text or after whitespace or
    punctuation, and runs until the next whitespace or punctuation character.
    Letters, digits, ``_``, ``-``, ``/`` (nested tags such as
    ``#project/2024``) and symbol or emoji code points are all part of a tag.
    A ``#`` directly preceded by a word character (``foo#bar``) is not a tag.

    Args:
        content: The text to scan.

    Returns:
        Unique tags, including the leading ``#``, in first-seen order.
    """
    seen: dict[str, None] = {}
    for match in _TAG_RE.finditer(content):
        seen.setdefault("#" + match.group(1), None)
    return list(seen)
