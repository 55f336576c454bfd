"""Per-torrent title generation rounds."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Iterator, Protocol

from dlnatitles.cache.titles import TorrentTitleCache
from dlnatitles.core.config import GenerationConfig
from dlnatitles.core.errors import InconsistentGeneration, TitleGenerationError
from dlnatitles.core.models import normalize_path, normalize_torrent_id
from dlnatitles.utils.console import console


class Generator(Protocol):
    def generate(self, path: str) -> str: ...


class _LockHandle:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.refs = 0


class TorrentLocks:
    """Registry of re-entrant locks, one per torrent id in use.

    An entry lives only while someone holds or waits for it.
    """

    def __init__(self) -> None:
        self._handles: dict[str, _LockHandle] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, torrent_id: str) -> Iterator[None]:
        with self._guard:
            handle = self._handles.get(torrent_id)
            if handle is None:
                handle = self._handles[torrent_id] = _LockHandle()
            handle.refs += 1
        try:
            with handle.lock:
                yield
        finally:
            with self._guard:
                handle.refs -= 1
                if handle.refs == 0:
                    del self._handles[torrent_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._handles)


class GenerationCoordinator:
    """Generate and store the title bucket of a torrent at most once.

    Rounds for the same torrent are serialized by ``locks``; rounds for
    different torrents run concurrently, each with its own worker pool.
    An optional ``limiter`` semaphore caps provider calls across all rounds.
    """

    def __init__(
        self,
        cache: TorrentTitleCache,
        generator: Generator,
        config: GenerationConfig | None = None,
        locks: TorrentLocks | None = None,
        limiter: threading.Semaphore | None = None,
        debug: bool = False,
    ) -> None:
        self.cache = cache
        self.generator = generator
        self.config = config or GenerationConfig()
        self.locks = locks or TorrentLocks()
        self.limiter = limiter
        self.debug = debug

    def ensure(self, torrent_id: str, paths: list[str]) -> bool:
        """Make sure a title bucket exists for the torrent.

        Args:
            torrent_id: Torrent hash; normalized before use.
            paths: Media file paths of the torrent.

        Returns:
            True if this call generated and stored the bucket.
        """
        torrent_id = normalize_torrent_id(torrent_id)
        if not torrent_id:
            return False

        unique_paths = list(dict.fromkeys(p for p in map(normalize_path, paths) if p))
        if not unique_paths:
            return False

        with self.locks.hold(torrent_id):
            # Confirmed with durable storage; the bucket may have been dropped elsewhere
            if self.cache.has_bucket(torrent_id, refresh=True):
                if self.debug:
                    console.log(f"title bucket {torrent_id} already exists")
                return False

            workers = min(self.config.effective_workers, len(unique_paths))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                titles = dict(zip(unique_paths, executor.map(self._title, unique_paths)))

            # Stores behind non-synchronous layers may have filled it meanwhile
            if self.cache.has_bucket(torrent_id, refresh=True):
                if self.debug:
                    console.log(f"title bucket {torrent_id} appeared during generation")
                return False

            return self.cache.store_bucket(torrent_id, titles)

    def _title(self, path: str) -> str:
        try:
            if self.limiter is None:
                title = self.generator.generate(path)
            else:
                with self.limiter:
                    title = self.generator.generate(path)
        except InconsistentGeneration:
            # Already reported by the generator
            return path
        except TitleGenerationError as e:
            if self.debug:
                console.log(f"title generation failed: {e}")
            return path
        except Exception as e:
            console.print(f"[yellow]Title generation failed for {path}:[/yellow] {e}")
            return path

        title = (title or "").strip()
        if self.debug:
            console.log(f"prepared title {path!r} -> {title!r}")
        return title or path
