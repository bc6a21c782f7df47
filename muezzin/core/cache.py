"""
In-memory read-through cache of store snapshots keyed by (entity_type, scope_id).
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

from muezzin.core.errors import ErrorKind, Errors, Result

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3600


class _Entry(NamedTuple):
    value: Any
    loaded_at: float


class SnapshotCache:
    """
    A miss blocks until the loader returns; concurrent readers of the same key
    wait for that one load. Failed loads are not cached.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT, clock: Callable[[], float] = time.monotonic):
        self.timeout_seconds = float(timeout_seconds)
        self.clock = clock
        self._entries: Dict[Tuple[str, Optional[int]], _Entry] = {}
        self._load_locks: Dict[Tuple[str, Optional[int]], threading.Lock] = {}
        # Bumped on invalidation; a load that started under an older generation is not stored
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _generation(self, entity_type: str) -> Tuple[int, int]:
        return (self._epoch, self._generations.get(entity_type, 0))

    def _fresh(self, entry: Optional[_Entry]) -> bool:
        return entry is not None and self.clock() - entry.loaded_at < self.timeout_seconds

    def get(self, entity_type: str, scope_id: Optional[int], loader: Callable[[], Result]) -> Result:
        key = (entity_type, scope_id)
        with self._lock:
            entry = self._entries.get(key)
            if self._fresh(entry):
                self.hits += 1
                return Result.ok(entry.value)
            load_lock = self._load_locks.setdefault(key, threading.Lock())

        with load_lock:
            # Another reader may have loaded while we waited
            with self._lock:
                entry = self._entries.get(key)
                if self._fresh(entry):
                    self.hits += 1
                    return Result.ok(entry.value)
                self.misses += 1
                generation = self._generation(entity_type)

            try:
                result = loader()
            except Exception as e:
                logger.exception(f"Loading {entity_type} ({scope_id}) into cache failed: {e}")
                return Result.failure(Errors.from_exception(ErrorKind.DATABASE, e, f"SnapshotCache.get({entity_type}, {scope_id})"))
            if result.is_ok:
                with self._lock:
                    if self._generation(entity_type) == generation:
                        self._entries[key] = _Entry(result.value, self.clock())
                    else:
                        logger.debug(f"Not caching {entity_type} ({scope_id}), invalidated while loading")
            return result

    def invalidate(self, entity_type: str) -> int:
        """Drop every entry of entity_type. Returns how many were dropped."""
        with self._lock:
            self._generations[entity_type] = self._generations.get(entity_type, 0) + 1
            keys = [k for k in self._entries if k[0] == entity_type]
            for key in keys:
                del self._entries[key]
        logger.debug(f"Invalidated {len(keys)} cached {entity_type} snapshot(s)")
        return len(keys)

    def sweep(self) -> int:
        """Drop entries older than the timeout. Returns how many were dropped."""
        with self._lock:
            keys = [k for k, entry in self._entries.items() if not self._fresh(entry)]
            for key in keys:
                del self._entries[key]
        if keys:
            logger.info(f"Swept {len(keys)} expired cache entries")
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "hits": self.hits,
                "misses": self.misses,
                "timeout_seconds": self.timeout_seconds,
            }
