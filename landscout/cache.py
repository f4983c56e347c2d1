"""Process-lifetime cache with per-namespace expiry.

One store backs every cached value in the application. Each namespace has a
fixed TTL chosen at construction; a TTL of ``None`` means entries never
expire (used for resolved identifiers, whose mapping is effectively static).

Expired entries are indistinguishable from missing ones and are evicted the
next time they are looked up. Nothing sweeps the store in the background and
there is no capacity bound: the key space is bounded by configuration
(targets × categories × size brackets).
"""

import time
from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
from typing import Any

from landscout.exceptions import CacheNamespaceError
from landscout.logger import get_logger

log = get_logger(__name__)


@dataclass
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """Namespaced key/value store with lazy expiry.

    Attributes:
        ttls: TTL in seconds per namespace (None = permanent).

    Example:
        cache = TTLCache({"listings": 86400, "identifier": None})
        cache.set("listings", ("139917", "sale", 84), stats)
        cache.get("listings", ("139917", "sale", 84))
    """

    def __init__(
        self,
        ttls: Mapping[str, float | None],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttls = dict(ttls)
        self._clock = clock
        self._entries: dict[str, dict[Hashable, CacheEntry]] = {
            namespace: {} for namespace in self.ttls
        }

    def _namespace(self, namespace: str) -> dict[Hashable, CacheEntry]:
        try:
            return self._entries[namespace]
        except KeyError:
            raise CacheNamespaceError(namespace) from None

    def _is_fresh(self, namespace: str, entry: CacheEntry, now: float) -> bool:
        ttl = self.ttls[namespace]
        return ttl is None or now - entry.stored_at < ttl

    def get(self, namespace: str, key: Hashable) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        entries = self._namespace(namespace)
        entry = entries.get(key)
        if entry is None:
            return None

        if not self._is_fresh(namespace, entry, self._clock()):
            del entries[key]
            log.debug("Cache entry expired", namespace=namespace, key=str(key))
            return None

        return entry.value

    def set(self, namespace: str, key: Hashable, value: Any) -> None:
        self._namespace(namespace)[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, namespace: str, key: Hashable | None = None) -> None:
        """Drop one key, or the whole namespace when key is None."""
        entries = self._namespace(namespace)
        if key is None:
            entries.clear()
        else:
            entries.pop(key, None)

    def status(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Describe every stored entry without evicting anything.

        Returns:
            Mapping of namespace -> key -> {"age_sec", "stale"}.
        """
        now = self._clock()
        report: dict[str, dict[str, dict[str, Any]]] = {}
        for namespace, entries in self._entries.items():
            report[namespace] = {
                str(key): {
                    "age_sec": round(now - entry.stored_at, 3),
                    "stale": not self._is_fresh(namespace, entry, now),
                }
                for key, entry in entries.items()
            }
        return report

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
