"""Accent, case and punctuation folding used for every text comparison."""

import re
import unicodedata

_PUNCTUATION = re.compile(r"[.,;:“”\"?!()]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Drop combining marks after canonical decomposition (``É`` -> ``E``)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text: str) -> str:
    """Return the comparison key for ``text``.

    Accents are removed, case is folded to lower, the punctuation
    ``, . ; : “ ” " ? ! ( )`` is deleted (hyphens and apostrophes are kept),
    whitespace runs collapse to one space and the ends are trimmed.
    """
    if not text:
        return ""
    folded = strip_accents(text).lower()
    folded = _PUNCTUATION.sub("", folded)
    return _WHITESPACE.sub(" ", folded).strip()
