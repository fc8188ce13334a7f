"""Bounded LRU cache of known bundle versions, keyed by identity.

Every insert and every lookup marks the identity as most recently used.
Inserting a *new* identity at capacity first evicts the least recently used
one; replacing an existing identity never evicts. All operations are
synchronous, so under asyncio each one completes without interleaving.
"""

from __future__ import annotations

import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone

from bundlelock.core.versioning.models import BundleVersion
from bundlelock.exceptions import CacheConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    versions: list[BundleVersion]
    last_access: float


def validate_capacity(max_size: object) -> int:
    """Return ``max_size`` if it is a positive finite integer.

    Raises:
        CacheConfigurationError: Otherwise. Values are never clamped.
    """
    if isinstance(max_size, bool) or not isinstance(max_size, (int, float)):
        raise CacheConfigurationError(f"maxCacheSize must be a positive integer, got {max_size!r}")
    if isinstance(max_size, float) and (not math.isfinite(max_size) or not max_size.is_integer()):
        raise CacheConfigurationError(f"maxCacheSize must be a positive integer, got {max_size!r}")
    if max_size <= 0:
        raise CacheConfigurationError(f"maxCacheSize must be a positive integer, got {max_size!r}")
    return int(max_size)


class LRUVersionCache:
    """Identity -> versions map with least-recently-used eviction.

    The ``OrderedDict`` doubles as the access-order list: the first key is
    the least recently used, the last key the most recently used.
    """

    def __init__(self, max_size: int) -> None:
        self._max_size = validate_capacity(max_size)
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # Membership tests do not count as an access.
        return key in self._entries

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def put(self, key: str, versions: list[BundleVersion]) -> None:
        if key in self._entries:
            self._entries[key] = CacheEntry(versions=versions, last_access=time.time())
            self._entries.move_to_end(key)
            return
        if len(self._entries) >= self._max_size:
            self._evict_lru()
        self._entries[key] = CacheEntry(versions=versions, last_access=time.time())

    def get(self, key: str) -> list[BundleVersion] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        entry.last_access = time.time()
        self._entries.move_to_end(key)
        return entry.versions

    def clear(self) -> None:
        self._entries.clear()

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        key, entry = self._entries.popitem(last=False)
        logger.debug(
            "Cache size limit (%d) reached, evicted LRU entry: %s (last access: %s)",
            self._max_size,
            key,
            datetime.fromtimestamp(entry.last_access, tz=timezone.utc).isoformat(),
        )
