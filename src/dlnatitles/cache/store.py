"""Durable bucketed title store.

Layout under the store directory::

    DLNATitles/
        <torrent id>/
            <sha256(path)>.json     {"path": ..., "title": ...}

A bucket exists exactly when its sub-directory exists. Buckets are written
into a temporary sibling and renamed into place, and dropped by renaming
them away before deletion, so a bucket is never observed half-written.
"""

from __future__ import annotations

import json
import os
import re
import shutil
from pathlib import Path

from dlnatitles.core.errors import CacheUnavailable
from dlnatitles.utils.cache import entry_key
from dlnatitles.utils.console import console
from dlnatitles.utils.staging import sweep_abandoned, work_name

CONTAINER_NAME = "DLNATitles"

_SAFE_ID = re.compile(r"[0-9a-z]+")
_TMP_PREFIX = ".tmp-"
_DROP_PREFIX = ".drop-"


class BucketStore:
    """Terminal layer of the title store chain.

    If the container directory cannot be created the store is unavailable
    and every operation is a no-op returning an empty result.
    """

    def __init__(self, directory: Path, debug: bool = False) -> None:
        self.debug = debug
        try:
            self._root: Path | None = self._open(Path(directory) / CONTAINER_NAME)
        except CacheUnavailable as e:
            console.print(f"[yellow]Title cache unavailable:[/yellow] {e}")
            self._root = None

    @property
    def available(self) -> bool:
        return self._root is not None

    @property
    def root(self) -> Path | None:
        return self._root

    def has_bucket(self, torrent_id: str, refresh: bool = False) -> bool:
        # Always reads the filesystem; refresh only matters to caching layers
        bucket = self._bucket_dir(torrent_id)
        return bucket is not None and bucket.is_dir()

    def store_bucket(self, torrent_id: str, titles: dict[str, str]) -> bool:
        bucket = self._bucket_dir(torrent_id)
        if bucket is None or not titles:
            return False
        if bucket.is_dir():
            return False

        staging = bucket.with_name(work_name(_TMP_PREFIX, torrent_id))
        try:
            staging.mkdir()
            for path, title in titles.items():
                entry = {"path": path, "title": title}
                (staging / f"{entry_key(path)}.json").write_text(
                    json.dumps(entry, ensure_ascii=False), encoding="utf-8"
                )
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            console.print(f"[yellow]Failed to write titles for {torrent_id}:[/yellow] {e}")
            return False

        try:
            # Also fails when a racing writer renamed its bucket into place first
            os.rename(staging, bucket)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            if not bucket.is_dir():
                console.print(f"[yellow]Failed to publish titles for {torrent_id}:[/yellow] {e}")
            elif self.debug:
                console.log(f"title bucket {torrent_id} already present, discarded")
            return False
        return True

    def lookup(self, torrent_id: str, path: str) -> str:
        bucket = self._bucket_dir(torrent_id)
        if bucket is None or not path:
            return ""
        entry = self._read_entry(bucket / f"{entry_key(path)}.json")
        if entry is None or entry.get("path") != path:
            return ""
        return entry.get("title") or ""

    def load_bucket(self, torrent_id: str) -> dict[str, str]:
        bucket = self._bucket_dir(torrent_id)
        if bucket is None or not bucket.is_dir():
            return {}
        titles = {}
        try:
            entries = sorted(bucket.glob("*.json"))
        except OSError:
            return {}
        for entry_path in entries:
            entry = self._read_entry(entry_path)
            if entry and entry.get("path") and entry.get("title"):
                titles[entry["path"]] = entry["title"]
        return titles

    def drop_bucket(self, torrent_id: str) -> bool:
        bucket = self._bucket_dir(torrent_id)
        if bucket is None:
            return False
        doomed = bucket.with_name(work_name(_DROP_PREFIX, torrent_id))
        try:
            os.rename(bucket, doomed)
        except FileNotFoundError:
            return False
        except OSError as e:
            console.print(f"[yellow]Failed to drop titles for {torrent_id}:[/yellow] {e}")
            return False
        shutil.rmtree(doomed, ignore_errors=True)
        return True

    def _bucket_dir(self, torrent_id: str) -> Path | None:
        if self._root is None or not _SAFE_ID.fullmatch(torrent_id):
            return None
        return self._root / torrent_id

    def _read_entry(self, entry_path: Path) -> dict | None:
        try:
            data = json.loads(entry_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            if self.debug:
                console.log(f"unreadable title entry {entry_path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _open(root: Path) -> Path:
        try:
            root.mkdir(parents=True, exist_ok=True)
            # Writes or drops whose process died; live ones belong to other stores
            sweep_abandoned(root, _TMP_PREFIX, _DROP_PREFIX)
        except OSError as e:
            raise CacheUnavailable(f"cannot open {root}: {e}") from e
        return root
