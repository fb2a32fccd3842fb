"""
Synonym Expansion - widen a one-word query with related terms

Related terms come from a definition service (a dictionary lookup backed by
an LLM in the default setup). Expansion is best effort: any failure yields no
synonyms and the search runs on the original term.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .cache import DefinitionCache
from .error_handling import ExpansionFailure, handle_error, log_debug
from .text import normalize

MAX_SYNONYMS = 8


@dataclass
class WordDefinition:
    """Dictionary entry for one word."""

    word: str
    definition: str = ""
    synonyms: List[str] = field(default_factory=list)
    etymology: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.word,
            "definition": self.definition,
            "synonyms": list(self.synonyms),
            "etymology": self.etymology,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordDefinition":
        synonyms = data.get("synonyms") or []
        if isinstance(synonyms, str):
            synonyms = [s.strip() for s in synonyms.split(",")]
        return cls(
            word=str(data.get("word") or ""),
            definition=str(data.get("definition") or ""),
            synonyms=[str(s) for s in synonyms if str(s).strip()],
            etymology=data.get("etymology"),
        )


class DefinitionService(Protocol):
    """Anything that can define a word."""

    def is_available(self) -> bool:
        ...

    def lookup(self, word: str) -> WordDefinition:
        """Return the definition of ``word`` or raise on failure."""
        ...


class SynonymExpander:
    """Looks up, caches, filters and caps synonyms for single-word queries."""

    def __init__(
        self,
        service: Optional[DefinitionService],
        cache: Optional[DefinitionCache] = None,
        enabled: bool = True,
        max_terms: int = MAX_SYNONYMS,
    ):
        self.service = service
        self.cache = cache
        self.enabled = enabled
        self.max_terms = max_terms

    def applies_to(self, query: str, requested: Optional[bool] = None) -> bool:
        """Expansion runs only when switched on and the query is one word."""
        enabled = self.enabled if requested is None else requested
        return bool(enabled) and len(query.split()) == 1

    def define(self, word: str) -> WordDefinition:
        """Cached dictionary lookup.

        Raises:
            ExpansionFailure: no service, or the service failed.
        """
        key = normalize(word)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return WordDefinition.from_dict(cached)

        if self.service is None:
            raise ExpansionFailure("No definition service configured")
        if not self.service.is_available():
            raise ExpansionFailure("Definition service is unavailable (disabled or missing an API key)")
        try:
            definition = self.service.lookup(word.strip().lower())
        except ExpansionFailure:
            raise
        except Exception as e:
            raise ExpansionFailure(f"Definition lookup for {word!r} failed: {e}") from e

        if self.cache is not None and definition.word:
            self.cache.put(key, definition.to_dict())
        return definition

    def expand(self, term: str) -> List[str]:
        """Up to ``max_terms`` synonyms of ``term``; [] on any failure."""
        try:
            definition = self.define(term)
        except ExpansionFailure as e:
            handle_error(e, context="search.synonyms")
            return []

        original = normalize(term)
        seen = {original}
        synonyms: List[str] = []
        for synonym in definition.synonyms:
            key = normalize(synonym)
            if not key or key in seen:
                continue
            seen.add(key)
            synonyms.append(synonym.strip())
            if len(synonyms) >= self.max_terms:
                break
        log_debug("Expanded query term", term=term, synonyms=synonyms)
        return synonyms
