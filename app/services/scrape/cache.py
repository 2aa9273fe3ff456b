"""In-process TTL cache for scraped metadata.

Keys are the URL strings exactly as callers passed them; no normalisation is
applied, so ``https://a.com`` and ``https://a.com/`` are different entries.

All operations are plain dict reads and writes with no awaits in between, so
they are atomic under a single asyncio event loop.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from app.models.metadata.document import Metadata

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheEntry:
    data: Metadata
    timestamp: float


class MetadataCache:
    """URL → metadata map with lazy and sweep-based expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp >= self._ttl

    def get(self, url: str) -> Metadata | None:
        """Return the cached metadata for *url* while it is still fresh.

        A stale entry is dropped on the way out.
        """
        entry = self._entries.get(url)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[url]
            return None
        return entry.data

    def put(self, url: str, metadata: Metadata) -> None:
        """Store *metadata* for *url*, replacing any previous entry, then sweep."""
        self._entries[url] = CacheEntry(data=metadata, timestamp=self._clock())
        self.sweep()

    def sweep(self) -> int:
        """Delete every expired entry and return how many were removed."""
        now = self._clock()
        stale = [url for url, entry in self._entries.items() if self._expired(entry, now)]
        for url in stale:
            del self._entries[url]
        if stale:
            logger.debug("Evicted %d expired metadata cache entries.", len(stale))
        return len(stale)
