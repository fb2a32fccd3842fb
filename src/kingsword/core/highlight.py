"""
Highlight and match patterns shared by both search backends.

Patterns are built from the accent-folded query, so a plain ``e`` in the
query matches ``é``, ``è``, ``ê`` or ``ë`` in the stored text and the raw
paragraph never needs folding to be highlighted. The same builders locate
the snippet window and wrap matches in the marker pair, which keeps indexed
and fallback snippets interchangeable for the renderer.
"""

import html
import re
from typing import Iterable, List, Optional, Pattern, Union

from .error_handling import log_warning
from .text import normalize

MARK_OPEN = "<mark>"
MARK_CLOSE = "</mark>"
ELLIPSIS = "..."

_ACCENT_CLASSES = {
    "a": "[aàáâãäå]",
    "e": "[eèéêë]",
    "i": "[iìíîï]",
    "o": "[oòóôõö]",
    "u": "[uùúûü]",
    "y": "[yýÿ]",
    "c": "[cç]",
    "n": "[nñ]",
    "'": "['’‘]",
    "’": "['’‘]",
    "‘": "['’‘]",
}

# Whitespace, line breaks and punctuation allowed between two query words
WORD_SEPARATOR = r"[\s.,;:!?'’\"“”«»()\[\]\-–—]+"

_NEVER = re.compile(r"(?!)")


def _word_pattern(word: str) -> str:
    return "".join(
        _ACCENT_CLASSES.get(ch, ch if ch.isalnum() else re.escape(ch)) for ch in word
    )


def _phrase_pattern(text: str) -> Optional[str]:
    words = normalize(text).split()
    if not words:
        return None
    return WORD_SEPARATOR.join(_word_pattern(word) for word in words)


def build_accent_insensitive_pattern(query: str, exact_word: bool = False) -> Pattern:
    """Pattern matching ``query`` regardless of accents, case and separators.

    With ``exact_word`` the match may not touch another word character on
    either side. Python's Unicode ``\\w`` counts accented Latin letters as
    word characters, so ``pêche`` does not match inside ``pêcheur``.
    """
    body = _phrase_pattern(query)
    if body is None:
        return _NEVER
    if exact_word:
        body = rf"(?<!\w)(?:{body})(?!\w)"
    return re.compile(body, re.IGNORECASE)


def build_multi_word_pattern(terms: Union[str, Iterable[str]]) -> Optional[Pattern]:
    """Pattern matching any run of the given terms.

    ``terms`` is either a query string (each word is a term) or a sequence of
    terms such as the query words plus synonyms; a multi-word term matches as
    a phrase. Consecutive hits joined by separators form a single match.
    Returns None when no usable term remains.
    """
    if isinstance(terms, str):
        terms = normalize(terms).split()
    alternatives: List[str] = []
    for term in terms:
        pattern = _phrase_pattern(term)
        if pattern and pattern not in alternatives:
            alternatives.append(pattern)
    if not alternatives:
        return None
    # Longest first so "agneaux" wins over "agneau"
    alternatives.sort(key=len, reverse=True)
    any_term = "(?:" + "|".join(alternatives) + ")"
    return re.compile(f"{any_term}(?:{WORD_SEPARATOR}{any_term})*", re.IGNORECASE)


def mark_matches(text: str, pattern: Optional[Pattern]) -> str:
    """HTML-escape ``text`` and wrap every match of ``pattern`` in the markers."""
    if pattern is None:
        return html.escape(text)
    parts: List[str] = []
    last = 0
    for match in pattern.finditer(text):
        if match.start() == match.end():
            continue
        parts.append(html.escape(text[last : match.start()]))
        parts.append(MARK_OPEN + html.escape(match.group(0)) + MARK_CLOSE)
        last = match.end()
    parts.append(html.escape(text[last:]))
    return "".join(parts)


def extract_snippet(
    content: str,
    pattern: Optional[Pattern],
    before: int = 150,
    after: int = 450,
    max_chars: int = 600,
) -> str:
    """Window ``content`` around the first match and mark every match in it.

    The window spans ``before`` characters ahead of the first match through
    ``after`` characters past its end, with an ellipsis on each truncated
    side. Without a match the paragraph's first ``max_chars`` characters are
    used instead.
    """
    match = pattern.search(content) if pattern is not None else None
    if match is None:
        log_warning(
            "No highlight match in selected paragraph, using leading excerpt",
            pattern=getattr(pattern, "pattern", None),
            content_length=len(content),
        )
        window = content[:max_chars]
        prefix = ""
        suffix = ELLIPSIS if len(content) > max_chars else ""
    else:
        start = max(0, match.start() - before)
        end = min(len(content), match.end() + after)
        window = content[start:end]
        prefix = ELLIPSIS if start > 0 else ""
        suffix = ELLIPSIS if end < len(content) else ""
    return prefix + mark_matches(window, pattern) + suffix


def render_engine_snippet(text: str, open_sentinel: str, close_sentinel: str) -> str:
    """Turn an engine-built snippet with sentinel markers into marked HTML."""
    escaped = html.escape(text or "")
    return escaped.replace(open_sentinel, MARK_OPEN).replace(close_sentinel, MARK_CLOSE)


def strip_markers(snippet: str) -> str:
    """Snippet text without the marker pair (still HTML-escaped)."""
    return snippet.replace(MARK_OPEN, "").replace(MARK_CLOSE, "")
