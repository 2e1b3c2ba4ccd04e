"""Time-boxed, scope-keyed cache of resolved version info."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..common.logging_utils import extra_context, is_debug_enabled
from ..constants import Constants
from ..versioning.models import VersionInfo

logger = logging.getLogger(__name__)


def content_fingerprint(revision: int, text: str) -> str:
    """Fingerprint of a scope's source content: revision counter plus length."""
    return f"{revision}-{len(text)}"


@dataclass
class CacheEntry:
    """A single cache entry; age is measured from ``created_at``."""

    data: VersionInfo
    created_at: float

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.created_at > ttl


class VersionCache:
    """TTL cache for resolved version info.

    Entries are keyed by (scope, package, version) and grouped per scope so a
    scope can be dropped without touching any other. Expiry is purely
    time-based: reads never refresh an entry's age.
    """

    def __init__(
        self,
        ttl: float = Constants.CACHE_TTL_MS / 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the version cache.

        Args:
            ttl: Time-to-live in seconds, shared by lazy and periodic expiry.
            clock: Monotonic time source in seconds.
        """
        self._ttl = ttl
        self._clock = clock
        self._scopes: Dict[str, Dict[str, CacheEntry]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    @staticmethod
    def make_key(scope: str, package_name: str, version: str) -> str:
        """Generate the composite cache key."""
        sep = Constants.CACHE_KEY_SEPARATOR
        return f"{scope}{sep}{package_name}{sep}{version}"

    @staticmethod
    def _entry_key(package_name: str, version: str) -> str:
        return f"{package_name}{Constants.CACHE_KEY_SEPARATOR}{version}"

    def get(self, scope: str, package_name: str, version: str) -> Optional[VersionInfo]:
        """Get cached version info.

        Args:
            scope: Scope identifier (e.g. a document URI).
            package_name: Package name.
            version: Clean current version.

        Returns:
            Cached VersionInfo, or None if not found or expired.
        """
        entries = self._scopes.get(scope)
        if not entries:
            return None
        key = self._entry_key(package_name, version)
        entry = entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock(), self._ttl):
            del entries[key]
            if not entries:
                del self._scopes[scope]
            return None
        if is_debug_enabled(logger):
            logger.debug(
                "Cache hit",
                extra=extra_context(event="cache_hit", component="version_cache", key=self.make_key(scope, package_name, version)),
            )
        return entry.data

    def set(self, scope: str, package_name: str, version: str, info: VersionInfo) -> None:
        """Store version info, overwriting any entry and resetting its age."""
        entries = self._scopes.setdefault(scope, {})
        entries[self._entry_key(package_name, version)] = CacheEntry(
            data=info, created_at=self._clock()
        )

    def invalidate_scope(self, scope: str) -> int:
        """Remove every entry belonging to ``scope``.

        Returns:
            Number of entries removed.
        """
        removed = len(self._scopes.pop(scope, {}))
        if removed:
            logger.debug(
                "Invalidated %d cache entries for scope %s",
                removed,
                scope,
                extra=extra_context(event="cache_invalidate", component="version_cache", count=removed),
            )
        return removed

    def sweep_expired(self) -> int:
        """Remove expired entries across all scopes.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        removed = 0
        for scope in list(self._scopes):
            entries = self._scopes[scope]
            expired = [k for k, e in entries.items() if e.is_expired(now, self._ttl)]
            for key in expired:
                del entries[key]
            removed += len(expired)
            if not entries:
                del self._scopes[scope]
        if removed:
            logger.debug(
                "Swept %d expired cache entries",
                removed,
                extra=extra_context(event="cache_sweep", component="version_cache", count=removed),
            )
        return removed

    def clear(self) -> None:
        """Clear all cached entries."""
        self._scopes.clear()

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._scopes.values())

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        total = len(self)
        expired = sum(
            1
            for entries in self._scopes.values()
            for e in entries.values()
            if e.is_expired(now, self._ttl)
        )
        return {
            "total_entries": total,
            "expired_entries": expired,
            "active_entries": total - expired,
            "scopes": len(self._scopes),
            "ttl": self._ttl,
        }
