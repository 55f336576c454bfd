"""Wrapping layers of the title store chain.

Every layer implements the same ``TitleBackend`` protocol and delegates to an
inner backend it owns. A chain ends in a durable ``BucketStore``.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Protocol

from dlnatitles.utils.cache import bucket_prefix, listing_key, title_key


class TitleBackend(Protocol):
    """Bucket operations shared by every layer of the chain.

    Torrent ids reaching a backend are already normalized and non-empty.
    """

    def has_bucket(self, torrent_id: str, refresh: bool = False) -> bool: ...

    def store_bucket(self, torrent_id: str, titles: dict[str, str]) -> bool: ...

    def lookup(self, torrent_id: str, path: str) -> str: ...

    def load_bucket(self, torrent_id: str) -> dict[str, str]: ...

    def drop_bucket(self, torrent_id: str) -> bool: ...


class MemoryBackend:
    """Read-through LRU layer in front of another backend.

    Caches positive bucket existence, bucket listings and single titles.
    Absence is never cached, so a missing bucket is always confirmed by the
    inner layer. Mutations purge the bucket's keys before and after
    delegating; a generation counter stops a read that raced an invalidation
    from re-inserting what it saw.
    """

    _EXISTS = True

    def __init__(self, inner: TitleBackend, max_entries: int = 4096) -> None:
        self._inner = inner
        self._max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, object] = OrderedDict()
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def inner(self) -> TitleBackend:
        return self._inner

    def has_bucket(self, torrent_id: str, refresh: bool = False) -> bool:
        """Check a bucket; *refresh* bypasses a cached positive.

        A refreshed check that finds the bucket gone (dropped behind this
        layer, e.g. by another process) purges what was cached for it.
        """
        key = bucket_prefix(torrent_id)
        generation, hit = self._get(key)
        if hit is not None and not refresh:
            return True
        exists = self._inner.has_bucket(torrent_id, refresh=refresh)
        if exists:
            self._remember(generation, key, self._EXISTS)
        elif hit is not None or self.cached(torrent_id):
            self.invalidate(torrent_id)
        return exists

    def store_bucket(self, torrent_id: str, titles: dict[str, str]) -> bool:
        self.invalidate(torrent_id)
        try:
            return self._inner.store_bucket(torrent_id, titles)
        finally:
            self.invalidate(torrent_id)

    def lookup(self, torrent_id: str, path: str) -> str:
        key = title_key(torrent_id, path)
        generation, hit = self._get(key)
        if hit is not None:
            return hit
        title = self._inner.lookup(torrent_id, path)
        if title:
            self._remember(generation, key, title)
        return title

    def load_bucket(self, torrent_id: str) -> dict[str, str]:
        key = listing_key(torrent_id)
        generation, hit = self._get(key)
        if hit is not None:
            return dict(hit)
        titles = self._inner.load_bucket(torrent_id)
        if titles:
            self._remember(generation, key, dict(titles))
        return titles

    def drop_bucket(self, torrent_id: str) -> bool:
        self.invalidate(torrent_id)
        try:
            return self._inner.drop_bucket(torrent_id)
        finally:
            self.invalidate(torrent_id)

    def invalidate(self, torrent_id: str) -> None:
        """Purge every cached key of one bucket."""
        prefix = bucket_prefix(torrent_id)
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]
            self._generation += 1

    def cached(self, torrent_id: str) -> bool:
        """Whether this layer currently holds anything for the bucket."""
        prefix = bucket_prefix(torrent_id)
        with self._lock:
            return any(k.startswith(prefix) for k in self._entries)

    def _get(self, key: str):
        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._entries.move_to_end(key)
            return self._generation, value

    def _remember(self, generation: int, key: str, value: object) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)  # evict oldest


class RouterBackend:
    """Route each bucket to one of several backends by torrent-id prefix.

    The longest matching prefix wins; ids matching no route go to the
    default backend.
    """

    def __init__(
        self,
        default: TitleBackend,
        routes: dict[str, TitleBackend] | None = None,
    ) -> None:
        self._default = default
        self._routes = sorted(
            ((prefix.strip().lower(), backend) for prefix, backend in (routes or {}).items()),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def select(self, torrent_id: str) -> TitleBackend:
        for prefix, backend in self._routes:
            if prefix and torrent_id.startswith(prefix):
                return backend
        return self._default

    def has_bucket(self, torrent_id: str, refresh: bool = False) -> bool:
        return self.select(torrent_id).has_bucket(torrent_id, refresh=refresh)

    def store_bucket(self, torrent_id: str, titles: dict[str, str]) -> bool:
        return self.select(torrent_id).store_bucket(torrent_id, titles)

    def lookup(self, torrent_id: str, path: str) -> str:
        return self.select(torrent_id).lookup(torrent_id, path)

    def load_bucket(self, torrent_id: str) -> dict[str, str]:
        return self.select(torrent_id).load_bucket(torrent_id)

    def drop_bucket(self, torrent_id: str) -> bool:
        return self.select(torrent_id).drop_bucket(torrent_id)
