"""
Code Lookup Cache

Get/set-with-TTL store for external terminology results, keyed by
(system, code). Staleness is checked lazily on read; nothing is evicted
proactively. Any shared store (e.g. Redis) satisfying `CodeCache` can be
injected instead of the in-process map.
"""

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable
import time

DEFAULT_TTL_SECONDS = 24 * 60 * 60

# Systems always reported by stats(), even when empty
TRACKED_SYSTEMS = ("loinc", "rxnorm", "icd10", "snomed")


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    timestamp: float


class CodeCache(ABC):
    """Key-value cache contract used by the enrichment service."""

    @abstractmethod
    def get(self, system: str, code: str) -> Any | None:
        """Return the cached value, or None on miss or expiry."""
        pass

    @abstractmethod
    def set(self, system: str, code: str, value: Any) -> None:
        pass

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Entry counts per system."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryCodeCache(CodeCache):
    """
    Process-local cache.

    A read at time T' of a value written at T is a hit iff T' - T < ttl.
    Concurrent writes to one key are last-write-wins; values for a key are
    equivalent so the race is harmless.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], CacheEntry] = {}

    def get(self, system: str, code: str) -> Any | None:
        entry = self._entries.get((system, code))
        if entry is None:
            return None
        if self._clock() - entry.timestamp < self.ttl_seconds:
            return entry.value
        return None

    def set(self, system: str, code: str, value: Any) -> None:
        self._entries[(system, code)] = CacheEntry(value=value, timestamp=self._clock())

    def stats(self) -> dict[str, int]:
        counts = Counter(system for system, _ in self._entries)
        stats = {system: 0 for system in TRACKED_SYSTEMS}
        stats.update(counts)
        return stats

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
