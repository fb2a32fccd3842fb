"""
Definition Cache - persistent cache for dictionary lookups

Definitions rarely change, so lookups are kept in a single JSON file under
the data directory with a time-to-live per entry.
"""

import json
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .error_handling import log_warning


@dataclass
class CacheStats:
    """Cache statistics and metrics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    entry_count: int = 0


class DefinitionCache:
    """Thread-safe JSON-file cache of word definitions."""

    def __init__(self, cache_file: Optional[Path], ttl_seconds: Optional[float] = 30 * 24 * 60 * 60):
        """Initialize the cache; ``cache_file=None`` keeps it in memory only."""
        self.cache_file = Path(cache_file) if cache_file is not None else None
        self.ttl_seconds = ttl_seconds
        self._lock = threading.RLock()
        self.stats = CacheStats()
        self._entries: Dict[str, Dict[str, Any]] = self._load()
        self.stats.entry_count = len(self._entries)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if self.cache_file is None or not self.cache_file.exists():
            return {}
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log_warning(f"Ignoring unreadable definition cache: {e}", path=str(self.cache_file))
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self):
        if self.cache_file is None:
            return
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as f:
                json.dump(self._entries, f, ensure_ascii=False, indent=2)
        except OSError as e:
            log_warning(f"Could not persist definition cache: {e}", path=str(self.cache_file))

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        if self.ttl_seconds is None:
            return False
        return time.time() - entry.get("created_at", 0) > self.ttl_seconds

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Cached value for ``key`` unless missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None
            if self._is_expired(entry):
                del self._entries[key]
                self.stats.misses += 1
                self.stats.evictions += 1
                self.stats.entry_count = len(self._entries)
                self._save()
                return None
            self.stats.hits += 1
            return entry["value"]

    def put(self, key: str, value: Dict[str, Any]):
        with self._lock:
            self._entries[key] = {"value": value, "created_at": time.time()}
            self.stats.entry_count = len(self._entries)
            self._save()

    def clear(self) -> int:
        """Drop every entry and return how many there were."""
        with self._lock:
            count = len(self._entries)
            self._entries = {}
            self.stats.entry_count = 0
            self._save()
            return count

    def get_cache_stats(self) -> Dict[str, Any]:
        with self._lock:
            return asdict(self.stats)
