"""
Query cache for API reads

Entries are keyed by tuples whose first element is the resource path or entity
name, followed by query parameters: ``("/api/v1/costs/anomalies", "open", 10, 0)``,
``("alerts", {"type": "cost"})``.

Concurrent fetches of the same key share one request. Invalidation is by key
prefix; the first element also matches nested paths, so ``("/api/v1/remediation",)``
covers ``("/api/v1/remediation/pending",)`` but not ``("/api/v1/jobs",)``.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

QueryKey = Tuple[Any, ...]


def _fingerprint(key: QueryKey) -> str:
    return json.dumps(list(key), sort_keys=True, default=str)


def key_matches(prefix: QueryKey, key: QueryKey) -> bool:
    """True when ``key`` falls under ``prefix``."""
    if not prefix or len(prefix) > len(key):
        return False
    head, key_head = prefix[0], key[0]
    if head != key_head:
        if not (isinstance(head, str) and isinstance(key_head, str)):
            return False
        if not key_head.startswith(head.rstrip("/") + "/"):
            return False
    return all(_fingerprint((a,)) == _fingerprint((b,)) for a, b in zip(prefix[1:], key[1:]))


class QueryCache:
    """In-memory cache of decoded API responses"""

    def __init__(self):
        self._entries: Dict[str, Tuple[QueryKey, Any]] = {}
        self._in_flight: Dict[str, Tuple[QueryKey, "asyncio.Future[Any]"]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return _fingerprint(key) in self._entries

    def get(self, key: QueryKey, default: Optional[Any] = None) -> Any:
        entry = self._entries.get(_fingerprint(key))
        return entry[1] if entry else default

    def set(self, key: QueryKey, value: Any) -> None:
        self._entries[_fingerprint(key)] = (key, value)

    async def fetch(self, key: QueryKey, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Cached value for ``key``, loading it on a miss.

        A load already running for the same key is awaited instead of
        starting a second one. Failed loads are not cached.
        """
        fingerprint = _fingerprint(key)
        if fingerprint in self._entries:
            return self._entries[fingerprint][1]

        pending = self._in_flight.get(fingerprint)
        if pending is not None:
            return await asyncio.shield(pending[1])

        task = asyncio.ensure_future(loader())
        self._in_flight[fingerprint] = (key, task)
        try:
            value = await asyncio.shield(task)
        finally:
            current = self._in_flight.get(fingerprint)
            if current is not None and current[1] is task:
                del self._in_flight[fingerprint]

        # Invalidated while loading: serve the result but do not keep it
        if current is not None and current[1] is task:
            self._entries[fingerprint] = (key, value)
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry under ``prefix``. Returns the number dropped."""
        stale = [fp for fp, (key, _) in self._entries.items() if key_matches(prefix, key)]
        for fingerprint in stale:
            del self._entries[fingerprint]
        for fingerprint in [fp for fp, (key, _) in self._in_flight.items() if key_matches(prefix, key)]:
            del self._in_flight[fingerprint]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cached queries under {prefix!r}")
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
        self._in_flight.clear()
