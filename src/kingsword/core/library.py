"""
Library - the sermon collection and its search entry points

Owns the paragraph store, both search backends and the orchestrator, and keeps
them consistent: every import rewrites the store in one transaction and then
rebuilds the in-memory paragraphs wholesale.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..ai.dictionary import DictionaryClient
from .cache import DefinitionCache
from .error_handling import ImportValidationError, IndexingError, log_info, log_success, log_warning
from .models import Citation, Document, SearchOutcome, SearchParams, SearchResult
from .search import FallbackSearchBackend, IndexedSearchBackend, SearchOrchestrator
from .segmenter import NOT_FOUND, LocateResult, locate_in_text, paragraph_span, tokenize_global, words_in_span
from .settings import get_database_path
from .store import ParagraphStore
from .synonyms import DefinitionService, SynonymExpander
from .text import normalize


class Library:
    """Sermon library with full-text search and citation relocation."""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        store: Optional[ParagraphStore] = None,
        definition_service: Optional[DefinitionService] = None,
    ):
        self.config = config or {}
        search_config = self.config.get("search", {})
        snippet_config = search_config.get("snippet", {})

        if store is None:
            store = ParagraphStore(
                get_database_path(self.config),
                snippet_tokens=int(snippet_config.get("engine_tokens", 32)),
            )
        self.store = store
        self.indexed = IndexedSearchBackend(store)
        self.fallback = FallbackSearchBackend(
            snippet_before=int(snippet_config.get("before", 150)),
            snippet_after=int(snippet_config.get("after", 450)),
            snippet_max_chars=int(snippet_config.get("max_chars", 600)),
        )
        self.expander = self._build_expander(definition_service)
        self.orchestrator = SearchOrchestrator(
            indexed=self.indexed,
            fallback=self.fallback,
            expander=self.expander,
            config=self.config,
        )

        # In-memory copy of the library, in import order
        self._documents: Dict[str, Document] = {}
        self._normalized_titles: Dict[str, str] = {}

    def _build_expander(self, service: Optional[DefinitionService]) -> SynonymExpander:
        synonyms_config = self.config.get("synonyms", {})
        ttl_days = synonyms_config.get("cache_ttl_days", 30)
        cache_file = None
        if self.store.db_path != ":memory:":
            cache_file = Path(self.store.db_path).parent / "definitions.json"
        cache = DefinitionCache(
            cache_file,
            ttl_seconds=None if ttl_days is None else float(ttl_days) * 24 * 60 * 60,
        )
        if service is None and self.config.get("dictionary", {}).get("enabled"):
            service = DictionaryClient(self.config)
        return SynonymExpander(
            service,
            cache=cache,
            enabled=bool(synonyms_config.get("enabled", False)),
            max_terms=int(synonyms_config.get("max_terms", 8)),
        )

    # Loading

    def open(self) -> bool:
        """Open the store and load whatever it holds into memory."""
        if not self.store.initialize():
            log_warning("Library database unavailable, searches use loaded documents only")
            return False
        self._set_documents(self.store.iter_documents())
        log_info(
            "Library opened",
            "📚",
            documents=len(self._documents),
            full_text_index=self.store.fts_ready,
        )
        return True

    def _set_documents(self, documents: Iterable[Document]):
        ordered: Dict[str, Document] = {}
        for document in documents:
            # A replaced document moves to the end, as its store row does
            ordered.pop(document.id, None)
            ordered[document.id] = document
        self._documents = ordered
        self._normalized_titles = {doc_id: normalize(doc.title) for doc_id, doc in ordered.items()}
        self.fallback.load_documents(list(ordered.values()))

    def import_documents(self, records: Sequence[Dict[str, Any]], replace_all: bool = True) -> int:
        """Import raw records (``{id, title, date, city, ..., text}``).

        ``replace_all`` clears the library first; otherwise documents with a
        matching id are replaced and the rest are kept. Returns the number of
        documents imported.

        Raises:
            ImportValidationError: a record lacks ``id`` or ``text``.
            IndexingError: the store transaction failed (nothing changed).
        """
        documents = [Document.from_import(record) for record in records]

        if self.store.is_open:
            paragraphs = self.store.import_documents(documents, replace_all=replace_all)
            self._set_documents(self.store.iter_documents())
        else:
            existing = [] if replace_all else list(self._documents.values())
            self._set_documents(existing + documents)
            paragraphs = len(self.fallback.paragraphs)

        log_success(
            f"Imported {len(documents)} documents",
            "📥",
            paragraphs=paragraphs,
            replace_all=replace_all,
        )
        return len(documents)

    def load_library_file(self, path: Path, replace_all: bool = True) -> int:
        """Import a JSON array of records from ``path``."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise IndexingError(f"Cannot read library file {path}: {e}") from e
        if not isinstance(records, list):
            raise ImportValidationError(f"Library file {path} must hold a JSON array")
        return self.import_documents(records, replace_all=replace_all)

    # Documents

    def get_document(self, document_id: str) -> Optional[Document]:
        document = self._documents.get(document_id)
        if document is None and self.store.is_open:
            document = self.store.get_document(document_id)
        return document

    def document_count(self) -> int:
        return len(self._documents)

    def list_documents(
        self,
        title: Optional[str] = None,
        city: Optional[str] = None,
        year: Optional[str] = None,
        month: Optional[str] = None,
        day: Optional[str] = None,
        version: Optional[str] = None,
        time: Optional[str] = None,
        has_audio: bool = False,
    ) -> List[Dict[str, Any]]:
        """Document metadata, newest first, narrowed by the given filters.

        ``title`` matches accent- and case-insensitively anywhere in the
        title; ``year``/``month``/``day`` compare against the ISO date parts.
        """
        needle = normalize(title) if title else ""
        selected = []
        for document in self._documents.values():
            date = document.date or ""
            if needle and needle not in self._normalized_titles.get(document.id, ""):
                continue
            if city and document.city != city:
                continue
            if year and not date.startswith(str(year)):
                continue
            if month and date[5:7] != str(month).zfill(2):
                continue
            if day and date[8:10] != str(day).zfill(2):
                continue
            if version and document.version != version:
                continue
            if time and document.time != time:
                continue
            if has_audio and not document.audio_url:
                continue
            selected.append(document)
        selected.sort(key=lambda doc: doc.date or "", reverse=True)
        return [document.metadata() for document in selected]

    # Search

    def search(self, params: SearchParams) -> List[SearchResult]:
        return self.orchestrator.search(params)

    def search_detailed(self, params: SearchParams) -> SearchOutcome:
        return self.orchestrator.search_detailed(params)

    async def search_async(self, params: SearchParams) -> List[SearchResult]:
        return await self.orchestrator.search_async(params)

    # Citations

    def locate_in_document(self, document_id: str, quoted_text: str) -> LocateResult:
        """Global word span of ``quoted_text`` in a document, or NOT_FOUND."""
        document = self.get_document(document_id)
        if document is None:
            return NOT_FOUND
        return locate_in_text(document.raw_text, quoted_text)

    def locate_citation(self, citation: Citation) -> LocateResult:
        """Relocate a citation, preferring its recorded paragraph when known."""
        document = self.get_document(citation.sermon_id)
        if document is None:
            return NOT_FOUND
        if citation.paragraph_index:
            span = paragraph_span(document.raw_text, citation.paragraph_index)
            if span:
                found = locate_in_text(document.raw_text, citation.quoted_text, start_at=span.start)
                if found and found.end <= span.end:
                    return found
        return locate_in_text(document.raw_text, citation.quoted_text)

    def quoted_span_text(self, document_id: str, quoted_text: str) -> Optional[str]:
        """The document's own text for a relocated quotation."""
        document = self.get_document(document_id)
        span = self.locate_in_document(document_id, quoted_text)
        if document is None or not span:
            return None
        return words_in_span(tokenize_global(document.raw_text), span)

    def status(self) -> Dict[str, Any]:
        """Counts and backend readiness for display."""
        info: Dict[str, Any] = {
            "database": self.store.db_path,
            "database_open": self.store.is_open,
            "full_text_index": self.indexed.is_available(),
            "documents": len(self._documents),
            "paragraphs": len(self.fallback.paragraphs),
            "synonyms_enabled": self.expander.enabled,
            "dictionary_available": bool(
                self.expander.service is not None and self.expander.service.is_available()
            ),
        }
        if self.expander.cache is not None:
            info["definition_cache"] = self.expander.cache.get_cache_stats()
        return info

    def close(self):
        self.store.close()
