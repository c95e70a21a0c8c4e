"""
Thread-safe caches shared by the engine.

Every cache is tied to a ``Generation`` counter. A reload bumps the
counter; entries stored under an older generation are treated as absent
and values computed under an older generation are returned to their
caller but never published.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, MutableMapping, Tuple, TypeVar

logger = logging.getLogger("hostscript.reflect.caches")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class _Marker:
    """Distinguished cache value for negative lookups."""

    __slots__ = ("_name",)

    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return f"<{self._name}>"

    def __bool__(self) -> bool:
        return False


# Negative-cache marker for type lookups.
NOT_FOUND = _Marker("NOT_FOUND")

# Negative-cache marker for member lookups.
MISSING = _Marker("MISSING")


class Generation:
    """Monotonic reload counter shared by a family of caches."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def bump(self) -> int:
        with self._lock:
            self._value += 1
            return self._value


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time statistics of a cache."""

    name: str
    size: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ConcurrentCache(Generic[K, V]):
    """Unbounded lock-protected mapping with generation checks."""

    def __init__(self, name: str, generation: Generation | None = None):
        self.name = name
        self._generation = generation or Generation()
        self._data: MutableMapping[K, Tuple[int, V]] = self._new_storage()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _new_storage(self) -> MutableMapping[K, Tuple[int, V]]:
        return {}

    def _touch(self, key: K) -> None:
        pass

    def _evict_if_needed(self) -> None:
        pass

    def _lookup(self, key: K) -> Tuple[bool, V | None]:
        entry = self._data.get(key)
        if entry is None:
            return False, None
        stored_generation, value = entry
        if stored_generation != self._generation.value:
            del self._data[key]
            return False, None
        self._touch(key)
        return True, value

    def get(self, key: K, default: V | None = None) -> V | None:
        with self._lock:
            found, value = self._lookup(key)
            if found:
                self._hits += 1
                return value
            self._misses += 1
            return default

    def __contains__(self, key: object) -> bool:
        with self._lock:
            found, _ = self._lookup(key)  # type: ignore[arg-type]
            return found

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def put(self, key: K, value: V, generation: int | None = None) -> bool:
        """
        Stores ``value`` unless it was computed under a stale generation.

        Returns True when the value was published.
        """
        with self._lock:
            current = self._generation.value
            if generation is not None and generation != current:
                logger.debug(
                    "cache_put_discarded",
                    extra={"cache": self.name, "generation": generation, "current": current},
                )
                return False
            self._data[key] = (current, value)
            self._touch(key)
            self._evict_if_needed()
            return True

    def get_or_compute(self, key: K, compute: Callable[[K], V]) -> V:
        """
        Returns the cached value for ``key``, computing it on a miss.

        ``compute`` runs outside the lock; concurrent misses for the same key
        may compute twice, and the first published value wins.
        """
        with self._lock:
            found, value = self._lookup(key)
            if found:
                self._hits += 1
                return value  # type: ignore[return-value]
            self._misses += 1
            generation = self._generation.value

        computed = compute(key)

        with self._lock:
            if generation != self._generation.value:
                return computed
            found, value = self._lookup(key)
            if found:
                return value  # type: ignore[return-value]
            self._data[key] = (generation, computed)
            self._touch(key)
            self._evict_if_needed()
            return computed

    def clear(self) -> None:
        with self._lock:
            self._data = self._new_storage()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                name=self.name,
                size=len(self._data),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )


class LruCache(ConcurrentCache[K, V]):
    """Bounded cache with least-recently-used eviction."""

    def __init__(
        self, name: str, max_size: int = 2000, generation: Generation | None = None
    ):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        super().__init__(name, generation)

    def _new_storage(self) -> MutableMapping[K, Tuple[int, V]]:
        return OrderedDict()

    def _touch(self, key: K) -> None:
        self._data.move_to_end(key)  # type: ignore[attr-defined]

    def _evict_if_needed(self) -> None:
        while len(self._data) > self.max_size:
            evicted, _ = self._data.popitem(last=False)  # type: ignore[call-arg]
            self._evictions += 1
            logger.debug("cache_evicted", extra={"cache": self.name, "key": repr(evicted)})


def cache_stats(caches: Dict[str, ConcurrentCache]) -> Dict[str, CacheStats]:
    """Collects statistics for a named group of caches."""
    return {name: cache.stats() for name, cache in caches.items()}
