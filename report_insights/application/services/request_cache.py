"""Fingerprint cache — in-process result cache with lazy TTL expiry."""

import copy
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class CacheEntry:
    fingerprint: str
    payload: Any
    inserted_at_ms: float


class FingerprintCache:
    """Maps request fingerprints to previously obtained analysis results.

    Expiry is checked on read only; there is no background sweep. The
    cache is not thread-safe: it is meant to be mutated from one event loop.

    Args:
        clock: Millisecond clock, injectable for tests.
        max_entries: Optional capacity. When set, the oldest inserted
            entry is dropped on overflow. ``None`` keeps the cache unbounded.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = _monotonic_ms,
        max_entries: int | None = None,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._clock = clock
        self._max_entries = max_entries

    def get(self, fingerprint: str, ttl_ms: int) -> Any | None:
        """Return a copy of the cached payload, or None if missing or expired."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None

        if self._clock() - entry.inserted_at_ms > ttl_ms:
            del self._entries[fingerprint]
            logger.debug("Cache entry %s… expired", fingerprint[:12])
            return None

        return copy.deepcopy(entry.payload)

    def put(self, fingerprint: str, payload: Any) -> None:
        self._entries.pop(fingerprint, None)
        self._entries[fingerprint] = CacheEntry(
            fingerprint=fingerprint,
            payload=copy.deepcopy(payload),
            inserted_at_ms=self._clock(),
        )
        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def evict(self, fingerprint: str | None = None) -> None:
        """Remove one entry, or everything when no fingerprint is given."""
        if fingerprint:
            self._entries.pop(fingerprint, None)
        else:
            self._entries.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries
