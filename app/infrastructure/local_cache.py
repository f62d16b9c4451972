"""
Infrastructure layer: Key/value cache with per-entry expiry.

Entries are kept either in process memory or in a single JSON file on disk,
the latter surviving restarts the way browser local storage does.
"""
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from app.config import settings
from app.infrastructure.errors import CacheWriteError

logger = logging.getLogger(__name__)


class LocalCache:
    """
    Cache whose entries expire a fixed time after they were written.

    Expired entries are removed lazily when read. There is no size bound;
    a storage failure on write raises CacheWriteError.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            path: JSON file backing the cache; None or "" keeps entries in memory
            ttl_seconds: Entry lifetime (defaults to settings.cache_ttl_seconds)
            clock: Returns the current time in seconds
        """
        self.path = Path(path) if path else None
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.cache_ttl_seconds
        self._clock = clock
        self._memory: Dict[str, Dict[str, Any]] = {}

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if self.path is None:
            return self._memory
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable cache file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _store(self, entries: Dict[str, Dict[str, Any]]) -> None:
        if self.path is None:
            self._memory = entries
            return
        try:
            payload = json.dumps(entries)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise CacheWriteError(f"Failed to write cache file {self.path}: {e}") from e

    def set(self, key: str, value: Any) -> None:
        """
        Store a JSON-serialisable value stamped with the current time.

        Raises:
            CacheWriteError: If the value cannot be persisted
        """
        try:
            data = json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise CacheWriteError(f"Value for {key!r} is not serialisable: {e}") from e

        entries = dict(self._load())
        entries[key] = {"data": data, "timestamp": self._clock()}
        self._store(entries)

    def get(self, key: str) -> Optional[Any]:
        """
        Return the value for a key, or None if it is missing or expired.

        Expired entries are deleted.
        """
        entries = self._load()
        entry = entries.get(key)
        if not isinstance(entry, dict) or "timestamp" not in entry:
            return None

        if self._clock() - entry["timestamp"] > self.ttl_seconds:
            logger.debug(f"Cache entry {key!r} expired")
            entries = dict(entries)
            entries.pop(key, None)
            try:
                self._store(entries)
            except CacheWriteError as e:
                logger.warning(f"Could not drop expired cache entry {key!r}: {e}")
            return None

        return entry.get("data")

    def clear(self) -> None:
        """Remove every entry."""
        self._store({})


# Singleton instance
_local_cache: Optional[LocalCache] = None


def get_local_cache(path: Optional[str] = None) -> LocalCache:
    """
    Get or create the singleton cache instance.

    Args:
        path: JSON file to back the cache (defaults to settings.cache_path)

    Returns:
        LocalCache instance
    """
    global _local_cache
    path = path or settings.cache_path or None
    if _local_cache is None or _local_cache.path != (Path(path) if path else None):
        _local_cache = LocalCache(path=path)
    return _local_cache
