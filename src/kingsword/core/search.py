"""
Search Engine - full-text paragraph search with graceful degradation

Two strategies honour the same contract: ``IndexedSearchBackend`` runs the
compiled query against the SQLite FTS5 index, ``FallbackSearchBackend`` scans
paragraph text held in memory. ``SearchOrchestrator`` picks one per call,
substitutes the fallback when the index is missing, failing, or returns a
suspicious empty first page, and never raises.
"""

import asyncio
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .error_handling import (
    BackendExecutionError,
    BackendUnavailable,
    EmptyQueryError,
    handle_error,
    log_debug,
    log_info,
)
from .highlight import (
    build_accent_insensitive_pattern,
    build_multi_word_pattern,
    extract_snippet,
    render_engine_snippet,
)
from .models import Document, SearchMode, SearchOutcome, SearchParams, SearchResult, SynonymFilter
from .query import CompiledQuery, compile_query, searchable_text
from .segmenter import segment
from .store import SNIPPET_CLOSE, SNIPPET_OPEN, ParagraphStore
from .synonyms import SynonymExpander

MAX_LIMIT = 50
MIN_QUERY_LENGTH = 2
# Empty first pages are rechecked only for queries longer than this
RECHECK_MIN_LENGTH = 2


class SearchBackend(ABC):
    """Abstract base class for search strategies."""

    name = "backend"

    @abstractmethod
    def search(self, compiled: CompiledQuery, limit: int, offset: int) -> List[SearchResult]:
        """Return one page of results, newest sermon first."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this search strategy can serve queries."""
        pass

    def search_or_raise(self, compiled: CompiledQuery, limit: int, offset: int) -> List[SearchResult]:
        """Like ``search``, for strategies that can report failures instead of hiding them."""
        return self.search(compiled, limit, offset)


class IndexedSearchBackend(SearchBackend):
    """Strategy backed by the SQLite FTS5 paragraph index."""

    name = "indexed"

    def __init__(self, store: ParagraphStore):
        self.store = store

    def is_available(self) -> bool:
        return self.store.is_open and self.store.fts_ready

    def search(self, compiled: CompiledQuery, limit: int, offset: int) -> List[SearchResult]:
        """Run the query; an unavailable index or engine failure yields []."""
        try:
            return self.search_or_raise(compiled, limit, offset)
        except BackendUnavailable:
            return []
        except BackendExecutionError as e:
            handle_error(e, context="search.indexed")
            return []

    def search_or_raise(self, compiled: CompiledQuery, limit: int, offset: int) -> List[SearchResult]:
        """Same as ``search`` but surfaces failures to the caller.

        Raises:
            BackendUnavailable: the index is not initialized.
            BackendExecutionError: the engine rejected or failed the query.
        """
        if not self.is_available():
            raise BackendUnavailable("Full-text index is not ready")
        try:
            rows = self.store.match(compiled.fts_expression, limit, offset)
        except sqlite3.Error as e:
            raise BackendExecutionError(
                f"FTS query {compiled.fts_expression!r} failed: {e}"
            ) from e
        return [self._to_result(row, compiled) for row in rows]

    @staticmethod
    def _to_result(row: Dict[str, Any], compiled: CompiledQuery) -> SearchResult:
        return SearchResult(
            paragraph_id=row["paragraph_id"],
            sermon_id=row["sermon_id"],
            paragraph_index=row["paragraph_index"],
            title=row["title"],
            date=row["date"],
            city=row["city"],
            snippet=render_engine_snippet(row["snippet"], SNIPPET_OPEN, SNIPPET_CLOSE),
            matched_via=_indexed_match_origin(compiled),
        )


def _indexed_match_origin(compiled: CompiledQuery) -> str:
    # The engine does not say which term hit; only a synonyms-only query is certain
    if compiled.has_synonyms and compiled.synonym_filter is SynonymFilter.SYNONYMS_ONLY:
        return "synonym"
    return "query"


@dataclass(frozen=True)
class IndexedParagraph:
    """A paragraph prepared for linear scanning."""

    document_id: str
    paragraph_index: int
    normalized_content: str
    raw_content: str
    title: str
    date: str
    city: Optional[str]
    seq: int

    @property
    def paragraph_id(self) -> str:
        return f"{self.document_id}_{self.paragraph_index}"


class FallbackSearchBackend(SearchBackend):
    """Strategy scanning every paragraph in memory.

    O(total paragraphs) per query; the corpus is small enough to hold in
    memory, and normalized content is computed once at load time.
    """

    name = "fallback"

    def __init__(self, snippet_before: int = 150, snippet_after: int = 450, snippet_max_chars: int = 600):
        self.snippet_before = snippet_before
        self.snippet_after = snippet_after
        self.snippet_max_chars = snippet_max_chars
        self.paragraphs: List[IndexedParagraph] = []

    def is_available(self) -> bool:
        return bool(self.paragraphs)

    def load_documents(self, documents: Sequence[Document]) -> int:
        """Rebuild the paragraph collection from ``documents`` (in load order)."""
        paragraphs: List[IndexedParagraph] = []
        for seq, document in enumerate(documents):
            for paragraph in segment(document.raw_text, document.id):
                paragraphs.append(
                    IndexedParagraph(
                        document_id=document.id,
                        paragraph_index=paragraph.paragraph_index,
                        normalized_content=searchable_text(paragraph.content),
                        raw_content=paragraph.content,
                        title=document.title,
                        date=document.date,
                        city=document.city,
                        seq=seq,
                    )
                )
        # Newest first, then load order; searches only filter this list
        paragraphs.sort(key=lambda p: (p.seq, p.paragraph_index))
        paragraphs.sort(key=lambda p: p.date, reverse=True)
        self.paragraphs = paragraphs
        return len(paragraphs)

    def _matches_query(self, content: str, compiled: CompiledQuery) -> bool:
        if compiled.mode is SearchMode.EXACT_PHRASE:
            return compiled.normalized_phrase in content
        if compiled.mode is SearchMode.DIVERSE:
            return any(term in content for term in compiled.normalized_terms)
        return all(term in content for term in compiled.normalized_terms)

    def _match(self, content: str, compiled: CompiledQuery) -> Optional[str]:
        """How ``content`` qualifies: "query", "synonym", or None."""
        if not compiled.has_synonyms or compiled.synonym_filter is SynonymFilter.ORIGINAL_ONLY:
            return "query" if self._matches_query(content, compiled) else None
        if compiled.synonym_filter is SynonymFilter.ALL and any(
            term in content for term in compiled.normalized_terms
        ):
            return "query"
        if any(synonym in content for synonym in compiled.normalized_synonyms):
            return "synonym"
        return None

    def _highlight_pattern(self, compiled: CompiledQuery):
        terms = compiled.highlight_terms()
        if compiled.mode is SearchMode.EXACT_PHRASE and not compiled.has_synonyms:
            return build_accent_insensitive_pattern(terms[0])
        return build_multi_word_pattern(terms)

    def search(self, compiled: CompiledQuery, limit: int, offset: int) -> List[SearchResult]:
        matches = []
        for paragraph in self.paragraphs:
            via = self._match(paragraph.normalized_content, compiled)
            if via:
                matches.append((paragraph, via))

        page = matches[offset : offset + limit]
        if not page:
            return []
        pattern = self._highlight_pattern(compiled)
        return [
            SearchResult(
                paragraph_id=paragraph.paragraph_id,
                sermon_id=paragraph.document_id,
                paragraph_index=paragraph.paragraph_index,
                title=paragraph.title,
                date=paragraph.date,
                city=paragraph.city,
                snippet=extract_snippet(
                    paragraph.raw_content,
                    pattern,
                    before=self.snippet_before,
                    after=self.snippet_after,
                    max_chars=self.snippet_max_chars,
                ),
                matched_via=via,
            )
            for paragraph, via in page
        ]


class SearchOrchestrator:
    """Top-level search entry point.

    Stateless per call: it holds references to the two backends and an
    optional synonym expander, and always returns a (possibly empty) list.
    """

    def __init__(
        self,
        indexed: Optional[SearchBackend] = None,
        fallback: Optional[SearchBackend] = None,
        expander: Optional[SynonymExpander] = None,
        config: Optional[Dict[str, Any]] = None,
    ):
        search_config = (config or {}).get("search", {})
        self.indexed = indexed
        self.fallback = fallback
        self.expander = expander
        self.max_limit = int(search_config.get("max_limit", MAX_LIMIT))
        self.min_query_length = int(search_config.get("min_query_length", MIN_QUERY_LENGTH))
        self.recheck_empty_first_page = bool(search_config.get("recheck_empty_first_page", True))

    def set_indexed_backend(self, backend: Optional[SearchBackend]):
        self.indexed = backend

    def set_fallback_backend(self, backend: Optional[SearchBackend]):
        self.fallback = backend

    def search(self, params: SearchParams) -> List[SearchResult]:
        """Run ``params`` and return the result page."""
        return self.search_detailed(params).results

    async def search_async(self, params: SearchParams) -> List[SearchResult]:
        """Awaitable ``search``; the backend work runs in a worker thread."""
        outcome = await asyncio.to_thread(self.search_detailed, params)
        return outcome.results

    def search_detailed(self, params: SearchParams) -> SearchOutcome:
        """Run ``params`` and report which backend served it."""
        outcome = SearchOutcome(request_id=params.request_id)
        query = (params.query or "").strip()
        if len(query) < self.min_query_length:
            return outcome

        limit = max(1, min(int(params.limit), self.max_limit))
        offset = max(0, int(params.offset))

        synonyms = self._expand(query, params)
        outcome.synonyms = synonyms
        try:
            compiled = compile_query(query, params.mode, synonyms, params.synonym_filter)
        except EmptyQueryError as e:
            log_debug(str(e), query=query)
            return outcome

        results: Optional[List[SearchResult]] = None
        if self._available(self.indexed):
            try:
                results = self.indexed.search_or_raise(compiled, limit, offset)
                outcome.backend = self.indexed.name
            except Exception as e:
                handle_error(
                    e if isinstance(e, BackendExecutionError) else BackendExecutionError(str(e)),
                    context="search.indexed",
                )
                results = None
        elif self.indexed is not None:
            handle_error(BackendUnavailable("Indexed backend not ready, using fallback"), context="search")

        if results is None:
            outcome.results = self._run_fallback(compiled, limit, offset)
            outcome.backend = self.fallback.name if self._available(self.fallback) else "none"
            return outcome

        recheck = offset == 0 and len(query) > RECHECK_MIN_LENGTH and self.recheck_empty_first_page
        if not results and recheck:
            rechecked = self._run_fallback(compiled, limit, offset)
            if rechecked:
                log_info(
                    "Indexed search returned nothing, fallback found matches",
                    "🔁",
                    query=query,
                    mode=compiled.mode.value,
                    count=len(rechecked),
                )
                outcome.backend = self.fallback.name
                results = rechecked

        outcome.results = results
        return outcome

    @staticmethod
    def _available(backend: Optional[SearchBackend]) -> bool:
        if backend is None:
            return False
        try:
            return backend.is_available()
        except Exception as e:
            handle_error(e, context="search.availability")
            return False

    def _run_fallback(self, compiled: CompiledQuery, limit: int, offset: int) -> List[SearchResult]:
        if not self._available(self.fallback):
            return []
        try:
            return self.fallback.search(compiled, limit, offset)
        except Exception as e:
            handle_error(e, context="search.fallback")
            return []

    def _expand(self, query: str, params: SearchParams) -> List[str]:
        if self.expander is None:
            return []
        if not self.expander.applies_to(query, params.expand_synonyms):
            return []
        return self.expander.expand(query)
