"""
Query Compiler - turns a raw query and a search mode into backend input.

The indexed backend consumes ``CompiledQuery.fts_expression`` (SQLite FTS5
MATCH syntax); the fallback backend consumes the normalized term lists and
reimplements the same semantics with substring tests.
"""

import re
from dataclasses import dataclass, field
from typing import List, Sequence

from .error_handling import EmptyQueryError
from .models import SearchMode, SynonymFilter
from .text import normalize

# Characters with a meaning in FTS5 query syntax
_FTS_SPECIAL = re.compile(r"[*\"()\-^+:]")

# Typographic apostrophes compare equal to the ASCII one
_APOSTROPHES = str.maketrans({"’": "'", "‘": "'"})


def split_terms(query: str) -> List[str]:
    """Whitespace-delimited terms with FTS5 syntax characters removed."""
    terms: List[str] = []
    for raw in (query or "").split():
        # "Jean-Baptiste" yields two terms, as the FTS5 tokenizer would
        terms.extend(_FTS_SPECIAL.sub(" ", raw).split())
    return terms


def searchable_text(text: str) -> str:
    """Normalized text with FTS5 syntax characters folded to spaces, like query terms."""
    return fold_term(_FTS_SPECIAL.sub(" ", text or ""))


def fold_term(text: str) -> str:
    """``normalize`` plus apostrophe folding, for substring comparisons."""
    return normalize(text).translate(_APOSTROPHES)


def _searchable(term: str) -> bool:
    # Lone punctuation ("?", "—") folds to no token in either backend
    return any(ch.isalnum() for ch in normalize(term))


def _quote(text: str) -> str:
    return '"' + text.replace('"', "") + '"'


def _prefix(term: str) -> str:
    return _quote(term) + "*"


@dataclass(frozen=True)
class CompiledQuery:
    """A query ready for either backend."""

    raw_query: str
    mode: SearchMode
    terms: List[str]
    normalized_terms: List[str]
    normalized_phrase: str
    fts_expression: str
    synonyms: List[str] = field(default_factory=list)
    normalized_synonyms: List[str] = field(default_factory=list)
    synonym_filter: SynonymFilter = SynonymFilter.ALL

    @property
    def has_synonyms(self) -> bool:
        return bool(self.normalized_synonyms)

    def highlight_terms(self) -> List[str]:
        """Terms a snippet should mark for this query."""
        if self.mode is SearchMode.EXACT_PHRASE:
            original = [" ".join(self.terms)]
        else:
            original = list(self.terms)
        if not self.has_synonyms:
            return original
        if self.synonym_filter is SynonymFilter.SYNONYMS_ONLY:
            return list(self.synonyms)
        if self.synonym_filter is SynonymFilter.ORIGINAL_ONLY:
            return original
        return original + list(self.synonyms)


def _mode_expression(terms: Sequence[str], mode: SearchMode) -> str:
    if mode is SearchMode.EXACT_PHRASE:
        return _quote(" ".join(terms))
    joiner = " OR " if mode is SearchMode.DIVERSE else " AND "
    return joiner.join(_prefix(term) for term in terms)


def _synonym_token(synonym: str) -> str:
    words = split_terms(synonym)
    if len(words) > 1:
        return _quote(" ".join(words))
    return _prefix(words[0])


def compile_query(
    query: str,
    mode: SearchMode = SearchMode.EXACT_PHRASE,
    synonyms: Sequence[str] = (),
    synonym_filter: SynonymFilter = SynonymFilter.ALL,
) -> CompiledQuery:
    """Compile ``query`` for ``mode``.

    Raises:
        EmptyQueryError: no usable term survives cleanup.
    """
    mode = SearchMode.parse(mode)
    synonym_filter = SynonymFilter.parse(synonym_filter)
    terms = [term for term in split_terms(query) if _searchable(term)]
    if not terms:
        raise EmptyQueryError(f"No searchable terms in {query!r}")
    normalized_terms = [fold_term(term) for term in terms]

    normalized_phrase = " ".join(normalized_terms)
    kept_synonyms: List[str] = []
    normalized_synonyms: List[str] = []
    for synonym in synonyms:
        key = fold_term(" ".join(split_terms(synonym)))
        if not _searchable(key) or key == normalized_phrase:
            continue
        if key not in normalized_synonyms:
            kept_synonyms.append(synonym.strip())
            normalized_synonyms.append(key)

    expression = _mode_expression(terms, mode)
    if normalized_synonyms:
        synonym_expression = " OR ".join(_synonym_token(s) for s in kept_synonyms)
        if synonym_filter is SynonymFilter.SYNONYMS_ONLY:
            expression = synonym_expression
        elif synonym_filter is SynonymFilter.ALL:
            expression = f"({expression}) OR {synonym_expression}"

    return CompiledQuery(
        raw_query=query,
        mode=mode,
        terms=terms,
        normalized_terms=normalized_terms,
        normalized_phrase=normalized_phrase,
        fts_expression=expression,
        synonyms=kept_synonyms,
        normalized_synonyms=normalized_synonyms,
        synonym_filter=synonym_filter,
    )
