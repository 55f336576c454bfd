"""Torrent-scoped title cache.

Maps ``(torrent id, file path) -> title`` with one bucket per torrent. A
bucket is written, checked and dropped as a whole.
"""

from __future__ import annotations

from dlnatitles.cache.backends import MemoryBackend, RouterBackend, TitleBackend
from dlnatitles.cache.store import BucketStore
from dlnatitles.core.config import DLNATitlesConfig
from dlnatitles.core.models import normalize_path, normalize_torrent_id
from dlnatitles.utils.console import console


class TorrentTitleCache:
    """Entry point to a chain of title backends.

    Normalizes torrent ids and rejects empty ones before anything reaches
    the chain. Without a backend every operation is a no-op.
    """

    def __init__(self, backend: TitleBackend | None, debug: bool = False) -> None:
        self.backend = backend
        self.debug = debug

    def has_bucket(self, torrent_id: str, refresh: bool = False) -> bool:
        """Whether the torrent has a bucket.

        With *refresh* the answer comes from durable storage even when a
        caching layer remembers the bucket.
        """
        torrent_id = normalize_torrent_id(torrent_id)
        if not torrent_id or self.backend is None:
            return False
        return self.backend.has_bucket(torrent_id, refresh=refresh)

    def store_bucket(self, torrent_id: str, titles: dict[str, str]) -> bool:
        """Write a complete bucket. Existing buckets are never overwritten.

        Returns:
            True if this call created the bucket.
        """
        torrent_id = normalize_torrent_id(torrent_id)
        if not torrent_id or self.backend is None:
            return False

        entries = {}
        for raw_path, title in titles.items():
            path = normalize_path(raw_path)
            if not path:
                continue
            title = (title or "").strip()
            entries[path] = title or path
        if not entries:
            return False

        stored = self.backend.store_bucket(torrent_id, entries)
        if self.debug:
            state = "stored" if stored else "kept existing"
            console.log(f"title bucket {torrent_id}: {state} ({len(entries)} titles)")
        return stored

    def lookup(self, torrent_id: str, path: str) -> str:
        """Return the cached title, or "" on a miss.

        The path is slash-normalized the same way stored keys are.
        """
        torrent_id = normalize_torrent_id(torrent_id)
        path = normalize_path(path)
        if not torrent_id or not path or self.backend is None:
            return ""
        return self.backend.lookup(torrent_id, path)

    def title_for(self, torrent_id: str, path: str) -> str:
        """Return the cached title, falling back to the path itself."""
        cached = self.lookup(torrent_id, path)
        if cached:
            if self.debug:
                console.log(f"title cache hit {path!r} -> {cached!r}")
            return cached
        return path

    def bucket(self, torrent_id: str) -> dict[str, str]:
        torrent_id = normalize_torrent_id(torrent_id)
        if not torrent_id or self.backend is None:
            return {}
        return self.backend.load_bucket(torrent_id)

    def drop_bucket(self, torrent_id: str) -> bool:
        torrent_id = normalize_torrent_id(torrent_id)
        if not torrent_id or self.backend is None:
            return False
        return self.backend.drop_bucket(torrent_id)


def build_title_cache(config: DLNATitlesConfig) -> TorrentTitleCache:
    """Assemble memory -> router -> durable store from configuration."""
    if not config.cache.enabled:
        return TorrentTitleCache(None, debug=config.debug)

    default = BucketStore(config.cache_dir, debug=config.debug)
    routes: dict[str, TitleBackend] = {}
    for prefix, directory in config.cache.routes.items():
        if not directory.is_absolute():
            directory = config.data_dir / directory
        routes[prefix] = BucketStore(directory, debug=config.debug)

    backend: TitleBackend = default
    if routes:
        backend = RouterBackend(default, routes)
    if config.cache.memory_enabled:
        backend = MemoryBackend(backend, max_entries=config.cache.memory_max_entries)
    return TorrentTitleCache(backend, debug=config.debug)
