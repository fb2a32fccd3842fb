"""
Data model for the King's Sword library and search subsystem.

Documents are transcribed sermons. Two independent numbering schemes derive
from a document's text: 1-based paragraph indices (search addressing) and
0-based global word indices (highlight addressing).
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .error_handling import ImportValidationError

DEFAULT_VERSION = "VGR"
DEFAULT_TIME = "Soir"


class SearchMode(Enum):
    """Term-combination logic for full-text search."""

    EXACT_PHRASE = "EXACT_PHRASE"
    EXACT_WORDS = "EXACT_WORDS"
    DIVERSE = "DIVERSE"

    @classmethod
    def parse(cls, value: "str | SearchMode") -> "SearchMode":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper().replace("-", "_")]
        except KeyError:
            raise ValueError(f"Unknown search mode: {value!r}") from None


class SynonymFilter(Enum):
    """Which matches survive once a query has been expanded with synonyms."""

    ALL = "all"
    ORIGINAL_ONLY = "original"
    SYNONYMS_ONLY = "synonyms"

    @classmethod
    def parse(cls, value: "str | SynonymFilter | None") -> "SynonymFilter":
        if value is None:
            return cls.ALL
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown synonym filter: {value!r}") from None


@dataclass
class Highlight:
    """A user highlight over a closed range of global word indices.

    A reversed range is normalized by swapping its bounds, so
    ``start <= end`` always holds after construction.
    """

    start: int
    end: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    color: Optional[str] = None

    def __post_init__(self):
        if self.start < 0 or self.end < 0:
            raise ValueError("Highlight bounds must be non-negative")
        if self.start > self.end:
            self.start, self.end = self.end, self.start

    def covers(self, global_index: int) -> bool:
        return self.start <= global_index <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Highlight":
        return cls(
            start=int(data["start"]),
            end=int(data["end"]),
            id=data.get("id") or uuid.uuid4().hex,
            color=data.get("color"),
        )


@dataclass
class Document:
    """A single transcribed sermon with its metadata."""

    id: str
    title: str
    date: str
    city: Optional[str]
    raw_text: str
    version: str = DEFAULT_VERSION
    time: str = DEFAULT_TIME
    audio_url: str = ""
    highlights: List[Highlight] = field(default_factory=list)

    @classmethod
    def from_import(cls, record: Dict[str, Any]) -> "Document":
        """Build a document from an import record (``text`` holds the body)."""
        doc_id = record.get("id")
        if doc_id is None or str(doc_id).strip() == "":
            raise ImportValidationError("Import record is missing 'id'")
        text = record.get("text")
        if text is None:
            raise ImportValidationError(f"Import record {doc_id!r} is missing 'text'")
        return cls(
            id=str(doc_id),
            title=record.get("title") or "",
            date=record.get("date") or "",
            city=record.get("city"),
            raw_text=text,
            version=record.get("version") or DEFAULT_VERSION,
            time=record.get("time") or DEFAULT_TIME,
            audio_url=record.get("audio_url") or "",
            highlights=[Highlight.from_dict(h) for h in record.get("highlights") or []],
        )

    def metadata(self) -> Dict[str, Any]:
        """Everything but the text, in the import record's key names."""
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "city": self.city,
            "version": self.version,
            "time": self.time,
            "audio_url": self.audio_url,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.metadata()
        data["text"] = self.raw_text
        data["highlights"] = [h.to_dict() for h in self.highlights]
        return data


@dataclass(frozen=True)
class Paragraph:
    """A blank-line delimited, trimmed, non-empty unit of a document."""

    document_id: str
    paragraph_index: int
    content: str

    @property
    def paragraph_id(self) -> str:
        return f"{self.document_id}_{self.paragraph_index}"


@dataclass(frozen=True)
class WordToken:
    """One token of the global word sequence (words and separators alike)."""

    text: str
    global_index: int
    segment_index: int

    @property
    def is_separator(self) -> bool:
        return self.text.isspace()


@dataclass(frozen=True)
class GlobalSpan:
    """Closed range of global word indices."""

    start: int
    end: int

    def to_dict(self) -> Dict[str, int]:
        return {"startGlobalIndex": self.start, "endGlobalIndex": self.end}


@dataclass
class Citation:
    """A note's reference to literal text quoted from a document."""

    sermon_id: str
    quoted_text: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    paragraph_index: Optional[int] = None
    sermon_title_snapshot: str = ""
    sermon_date_snapshot: str = ""
    date_added: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


@dataclass
class SearchResult:
    """One matching paragraph, with a marker-wrapped snippet."""

    paragraph_id: str
    sermon_id: str
    paragraph_index: int
    title: str
    date: str
    city: Optional[str]
    snippet: str
    matched_via: str = "query"

    @property
    def key(self) -> tuple:
        return (self.sermon_id, self.paragraph_index)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paragraphId": self.paragraph_id,
            "sermonId": self.sermon_id,
            "paragraphIndex": self.paragraph_index,
            "title": self.title,
            "date": self.date,
            "city": self.city,
            "snippet": self.snippet,
            "matchedVia": self.matched_via,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        return cls(
            paragraph_id=data["paragraphId"],
            sermon_id=data["sermonId"],
            paragraph_index=int(data["paragraphIndex"]),
            title=data.get("title", ""),
            date=data.get("date", ""),
            city=data.get("city"),
            snippet=data.get("snippet", ""),
            matched_via=data.get("matchedVia", "query"),
        )


@dataclass
class SearchParams:
    """A single search request."""

    query: str
    mode: SearchMode = SearchMode.EXACT_PHRASE
    limit: int = 50
    offset: int = 0
    synonym_filter: SynonymFilter = SynonymFilter.ALL
    # None defers to the ``synonyms.enabled`` configuration flag
    expand_synonyms: Optional[bool] = None
    request_id: Optional[str] = None

    def __post_init__(self):
        self.mode = SearchMode.parse(self.mode)
        self.synonym_filter = SynonymFilter.parse(self.synonym_filter)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchParams":
        return cls(
            query=data.get("query") or "",
            mode=data.get("mode", SearchMode.EXACT_PHRASE),
            limit=int(data.get("limit", 50)),
            offset=int(data.get("offset", 0)),
            synonym_filter=data.get("synonym_filter"),
            expand_synonyms=data.get("expand_synonyms"),
            request_id=data.get("request_id"),
        )


@dataclass
class SearchOutcome:
    """Results plus how they were produced."""

    results: List[SearchResult] = field(default_factory=list)
    backend: str = "none"
    synonyms: List[str] = field(default_factory=list)
    request_id: Optional[str] = None
