"""
In-memory per-folder message cache with a fixed TTL.
"""
import threading
import time
from typing import Callable, Dict, List, Optional

from unified_inbox import config
from unified_inbox.models import FolderCacheEntry, FolderKey, Message


class FolderCache:
    """
    Cache of message lists keyed by canonical folder.

    An entry is served only while ``now - fetched_at < ttl``. There is no
    other eviction; the owner clears the whole cache on account switch.
    """

    def __init__(
        self,
        ttl_seconds: float = config.FOLDER_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[FolderKey, FolderCacheEntry] = {}
        self._lock = threading.Lock()

    def is_valid(self, entry: FolderCacheEntry) -> bool:
        return self._clock() - entry.fetched_at < self.ttl_seconds

    def get(self, key: FolderKey) -> Optional[FolderCacheEntry]:
        """Return the entry for key if it is still within the TTL."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not self.is_valid(entry):
                return None
            return entry

    def set(self, key: FolderKey, messages: List[Message]) -> FolderCacheEntry:
        """Store messages for key, overwriting any previous entry."""
        entry = FolderCacheEntry(folder_key=key, messages=list(messages), fetched_at=self._clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def invalidate(self, key: Optional[FolderKey] = None) -> None:
        """Drop one entry, or every entry when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
