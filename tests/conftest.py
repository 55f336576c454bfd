"""Shared test fixtures."""

import os
import threading
import time
from pathlib import Path

import pytest

# Use litellm's bundled model cost map; its background remote fetch can
# deadlock with the import of litellm when the network is unavailable.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from dlnatitles.cache.store import BucketStore
from dlnatitles.cache.titles import TorrentTitleCache
from dlnatitles.core.config import DLNATitlesConfig, LinksConfig, ServerConfig
from dlnatitles.core.errors import GenerationFailed

STREAM_HOST = "10.0.0.5"


class StubGenerator:
    """Generator double recording calls and peak concurrency."""

    def __init__(self, titles=None, default="Title", fail=(), errors=None, delay=0.0):
        self.titles = titles or {}
        self.default = default
        self.fail = set(fail)
        self.errors = errors or {}
        self.delay = delay
        self.calls: list[str] = []
        self.max_active = 0
        self._active = 0
        self._lock = threading.Lock()

    def generate(self, path: str) -> str:
        with self._lock:
            self.calls.append(path)
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if path in self.errors:
                raise self.errors[path]
            if path in self.fail:
                raise GenerationFailed(path, "stub failure")
            return self.titles.get(path, self.default)
        finally:
            with self._lock:
                self._active -= 1


@pytest.fixture
def store(tmp_path: Path) -> BucketStore:
    return BucketStore(tmp_path / "cache")


@pytest.fixture
def title_cache(store: BucketStore) -> TorrentTitleCache:
    return TorrentTitleCache(store)


@pytest.fixture
def config(tmp_path: Path) -> DLNATitlesConfig:
    return DLNATitlesConfig(
        data_dir=tmp_path / "data",
        links=LinksConfig(extension="link"),
        server=ServerConfig(public_host=STREAM_HOST),
    )


def snapshot(root: Path) -> dict[str, bytes]:
    """Relative path -> content of every file under root."""
    return {
        str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()
    }
