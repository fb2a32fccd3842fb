"""
Paragraph Store - SQLite persistence with an FTS5 paragraph index

Sermon metadata and segmented paragraphs live in plain tables; an
external-content FTS5 table indexes paragraph text and is kept in sync by
triggers. Imports run in one transaction under the store lock, and queries
take the same lock, so a reader never observes a half-replaced library.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from .error_handling import IndexingError, log_error, log_info, log_success
from .models import Document
from .segmenter import segment

SNIPPET_OPEN = "\x02"
SNIPPET_CLOSE = "\x03"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sermons (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL DEFAULT '',
    city TEXT,
    version TEXT,
    time TEXT,
    audio_url TEXT,
    raw_text TEXT NOT NULL,
    seq INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS paragraphs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    paragraph_id TEXT UNIQUE NOT NULL,
    sermon_id TEXT NOT NULL REFERENCES sermons(id),
    paragraph_index INTEGER NOT NULL,
    content TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_paragraphs_sermon ON paragraphs(sermon_id);
CREATE INDEX IF NOT EXISTS idx_sermons_date ON sermons(date);
"""

_FTS_SCHEMA = """
CREATE VIRTUAL TABLE IF NOT EXISTS paragraphs_fts USING fts5(
    content,
    content='paragraphs',
    content_rowid='id',
    tokenize='unicode61 remove_diacritics 2'
);
CREATE TRIGGER IF NOT EXISTS paragraphs_ai AFTER INSERT ON paragraphs BEGIN
    INSERT INTO paragraphs_fts(rowid, content) VALUES (new.id, new.content);
END;
CREATE TRIGGER IF NOT EXISTS paragraphs_ad AFTER DELETE ON paragraphs BEGIN
    INSERT INTO paragraphs_fts(paragraphs_fts, rowid, content)
    VALUES ('delete', old.id, old.content);
END;
"""

_METADATA_COLUMNS = "id, title, date, city, version, time, audio_url"


class ParagraphStore:
    """SQLite-backed sermon library with a full-text paragraph index."""

    def __init__(self, db_path: Union[str, Path], snippet_tokens: int = 32):
        self.db_path = str(db_path)
        self.snippet_tokens = snippet_tokens
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self.fts_ready = False

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def initialize(self) -> bool:
        """Open the database and create the schema. False when unusable."""
        with self._lock:
            if self._conn is not None:
                return True
            try:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(self.db_path, timeout=10.0, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")
                conn.executescript(_SCHEMA)
            except (sqlite3.Error, OSError) as e:
                log_error(f"Failed to open library database: {e}", path=self.db_path)
                return False

            self._conn = conn
            try:
                conn.executescript(_FTS_SCHEMA)
                self._sync_fts_index(conn)
                self.fts_ready = True
            except sqlite3.OperationalError as e:
                # SQLite builds without FTS5 still serve metadata
                log_info(f"Full-text index unavailable: {e}", "📭")
                self.fts_ready = False
            log_success("Library database ready", "📚", path=self.db_path, fts=self.fts_ready)
            return True

    @staticmethod
    def _sync_fts_index(conn: sqlite3.Connection):
        """Rebuild the index when it lags behind ``paragraphs``.

        Rows written while FTS5 was unavailable never went through the
        triggers. ``COUNT(*)`` on an external-content table reads the content
        table, so the indexed row count comes from the docsize shadow table.
        """
        paragraphs = conn.execute("SELECT COUNT(*) FROM paragraphs").fetchone()[0]
        indexed = conn.execute("SELECT COUNT(*) FROM paragraphs_fts_docsize").fetchone()[0]
        if paragraphs != indexed:
            log_info("Rebuilding full-text index", "🔧", paragraphs=paragraphs, indexed=indexed)
            with conn:
                conn.execute("INSERT INTO paragraphs_fts(paragraphs_fts) VALUES('rebuild')")

    def close(self):
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                self.fts_ready = False

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                raise IndexingError("Library database is not initialized")
            yield self._conn

    def import_documents(self, documents: Sequence[Document], replace_all: bool = True) -> int:
        """Insert ``documents`` and their paragraphs in one transaction.

        With ``replace_all`` the whole library is cleared first; otherwise only
        documents sharing an id with an incoming one are replaced.
        Returns the number of paragraphs written.
        """
        with self._connection() as conn:
            try:
                with conn:
                    if replace_all:
                        conn.execute("DELETE FROM paragraphs")
                        conn.execute("DELETE FROM sermons")
                    else:
                        for document in documents:
                            conn.execute("DELETE FROM paragraphs WHERE sermon_id = ?", (document.id,))
                            conn.execute("DELETE FROM sermons WHERE id = ?", (document.id,))

                    row = conn.execute("SELECT COALESCE(MAX(seq), 0) FROM sermons").fetchone()
                    seq = row[0]
                    written = 0
                    for document in documents:
                        seq += 1
                        conn.execute(
                            "INSERT OR REPLACE INTO sermons "
                            "(id, title, date, city, version, time, audio_url, raw_text, seq) "
                            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                            (
                                document.id,
                                document.title,
                                document.date,
                                document.city,
                                document.version,
                                document.time,
                                document.audio_url,
                                document.raw_text,
                                seq,
                            ),
                        )
                        # A duplicate id later in the same batch wins
                        conn.execute("DELETE FROM paragraphs WHERE sermon_id = ?", (document.id,))
                        rows = [
                            (p.paragraph_id, p.document_id, p.paragraph_index, p.content)
                            for p in segment(document.raw_text, document.id)
                        ]
                        conn.executemany(
                            "INSERT INTO paragraphs (paragraph_id, sermon_id, paragraph_index, content) "
                            "VALUES (?, ?, ?, ?)",
                            rows,
                        )
                        written += len(rows)
            except sqlite3.Error as e:
                raise IndexingError(f"Library import failed and was rolled back: {e}") from e
        return written

    def document_count(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM sermons").fetchone()[0]

    def paragraph_count(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM paragraphs").fetchone()[0]

    def list_documents(self) -> List[Dict[str, Any]]:
        """Metadata of every document, newest first."""
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {_METADATA_COLUMNS} FROM sermons ORDER BY date DESC, seq ASC"
            ).fetchall()
        return [dict(row) for row in rows]

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {_METADATA_COLUMNS}, raw_text FROM sermons WHERE id = ?",
                (document_id,),
            ).fetchone()
        return self._row_to_document(row) if row else None

    def iter_documents(self) -> List[Document]:
        """Every stored document in import order."""
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT {_METADATA_COLUMNS}, raw_text FROM sermons ORDER BY seq ASC"
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def get_paragraph(self, paragraph_id: str) -> Optional[Dict[str, Any]]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT paragraph_id, sermon_id, paragraph_index, content "
                "FROM paragraphs WHERE paragraph_id = ?",
                (paragraph_id,),
            ).fetchone()
        return dict(row) if row else None

    def match(self, expression: str, limit: int, offset: int) -> List[Dict[str, Any]]:
        """Run an FTS5 MATCH, newest sermon first, then paragraph insertion order.

        Snippets carry ``SNIPPET_OPEN``/``SNIPPET_CLOSE`` around matched tokens.
        Raises ``sqlite3.Error`` on malformed expressions.
        """
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT p.paragraph_id AS paragraph_id,
                       p.sermon_id AS sermon_id,
                       p.paragraph_index AS paragraph_index,
                       s.title AS title,
                       s.date AS date,
                       s.city AS city,
                       snippet(paragraphs_fts, 0, ?, ?, '...', ?) AS snippet
                FROM paragraphs_fts
                JOIN paragraphs p ON p.id = paragraphs_fts.rowid
                JOIN sermons s ON s.id = p.sermon_id
                WHERE paragraphs_fts MATCH ?
                ORDER BY s.date DESC, s.seq ASC, p.paragraph_index ASC
                LIMIT ? OFFSET ?
                """,
                (SNIPPET_OPEN, SNIPPET_CLOSE, self.snippet_tokens, expression, limit, offset),
            ).fetchall()
        return [dict(row) for row in rows]

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        return Document(
            id=row["id"],
            title=row["title"],
            date=row["date"],
            city=row["city"],
            raw_text=row["raw_text"],
            version=row["version"],
            time=row["time"],
            audio_url=row["audio_url"] or "",
        )
