"""
Paragraph segmentation and global word addressing.

Two numbering schemes derive from the same text and must not be conflated:

* ``segment`` yields paragraphs indexed from 1; blank segments are dropped and
  do not consume an index. Search results address paragraphs this way.
* ``tokenize_global`` yields every token, separators included, indexed from 0
  across the whole document. Highlights address words this way.

The two are bridged only by content matching (``locate_in_text``), never by
index arithmetic.
"""

import re
from typing import Dict, Iterable, List, Union

from .models import GlobalSpan, Highlight, Paragraph, WordToken
from .text import normalize

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_PARAGRAPH_BREAK_KEEP = re.compile(r"(\n\s*\n)")
_WHITESPACE_KEEP = re.compile(r"(\s+)")


class _NotFound:
    """Sentinel for a quotation that cannot be located. Always falsy."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()

LocateResult = Union[GlobalSpan, _NotFound]


def segment(raw_text: str, document_id: str = "") -> List[Paragraph]:
    """Split ``raw_text`` into trimmed, non-empty paragraphs indexed from 1."""
    paragraphs: List[Paragraph] = []
    if not raw_text:
        return paragraphs
    for chunk in PARAGRAPH_BREAK.split(raw_text):
        content = chunk.strip()
        if not content:
            continue
        paragraphs.append(Paragraph(document_id, len(paragraphs) + 1, content))
    return paragraphs


def tokenize_global(raw_text: str) -> List[WordToken]:
    """Tokenize the whole document, separators included, from index 0."""
    tokens: List[WordToken] = []
    if not raw_text:
        return tokens
    for segment_index, chunk in enumerate(_PARAGRAPH_BREAK_KEEP.split(raw_text)):
        for piece in _WHITESPACE_KEEP.split(chunk):
            if piece:
                tokens.append(WordToken(piece, len(tokens), segment_index))
    return tokens


def words_in_span(tokens: List[WordToken], span: GlobalSpan) -> str:
    """Reconstruct the exact text covered by ``span``."""
    return "".join(token.text for token in tokens[span.start : span.end + 1])


def _normalized_words(tokens: Iterable[WordToken]) -> List[tuple]:
    """(normalized word, global index) for words that survive normalization."""
    words = []
    for token in tokens:
        if token.is_separator:
            continue
        key = normalize(token.text)
        if key:
            words.append((key, token.global_index))
    return words


def _first_window(words: List[tuple], needle: List[str], start_at: int = 0) -> LocateResult:
    width = len(needle)
    for i in range(len(words) - width + 1):
        if words[i][1] < start_at:
            continue
        if [w for w, _ in words[i : i + width]] == needle:
            return GlobalSpan(words[i][1], words[i + width - 1][1])
    return NOT_FOUND


def locate_in_text(raw_text: str, quoted_text: str, start_at: int = 0) -> LocateResult:
    """Find ``quoted_text`` in ``raw_text`` and return its global span.

    Both sides are normalized; a window as wide as the quotation slides over
    the document's words and the first exact match wins. Matches starting
    before global index ``start_at`` are skipped.
    """
    needle = normalize(quoted_text).split()
    if not needle:
        return NOT_FOUND
    return _first_window(_normalized_words(tokenize_global(raw_text)), needle, start_at)


def paragraph_span(raw_text: str, paragraph_index: int) -> LocateResult:
    """Global span of paragraph ``paragraph_index`` located by its content."""
    paragraphs = segment(raw_text)
    if paragraph_index < 1 or paragraph_index > len(paragraphs):
        return NOT_FOUND
    target = paragraphs[paragraph_index - 1].content

    # Identical earlier paragraphs would match first; skip past them
    start_at = 0
    for earlier in paragraphs[: paragraph_index - 1]:
        if normalize(earlier.content) == normalize(target):
            found = locate_in_text(raw_text, earlier.content, start_at)
            if found:
                start_at = found.end + 1
    return locate_in_text(raw_text, target, start_at)


def apply_highlights(highlights: Iterable[Highlight]) -> Dict[int, Highlight]:
    """Map each covered global index to its highlight; the last applied wins."""
    index: Dict[int, Highlight] = {}
    for highlight in highlights:
        for i in range(highlight.start, highlight.end + 1):
            index[i] = highlight
    return index
