"""Tests for the title store chain: durable store, memory and router layers."""

import json
import os
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from dlnatitles.cache.backends import MemoryBackend, RouterBackend
from dlnatitles.cache.store import CONTAINER_NAME, BucketStore
from dlnatitles.cache.titles import TorrentTitleCache, build_title_cache
from dlnatitles.core.config import CacheConfig, DLNATitlesConfig
from dlnatitles.utils.cache import entry_key
from dlnatitles.utils.staging import is_abandoned, owner_pid, work_name

TITLES = {"Movie.2020.mkv": "Movie (2020)", "Extras/Movie.2020.mkv": "Movie (2020)"}


class TestBucketStore:
    def test_store_and_read(self, store):
        assert store.store_bucket("abc123", TITLES) is True
        assert store.has_bucket("abc123")
        assert store.lookup("abc123", "Movie.2020.mkv") == "Movie (2020)"
        assert store.load_bucket("abc123") == TITLES

    def test_layout_one_entry_per_path(self, store, tmp_path):
        store.store_bucket("abc123", TITLES)
        bucket = tmp_path / "cache" / CONTAINER_NAME / "abc123"
        entry = bucket / f"{entry_key('Extras/Movie.2020.mkv')}.json"
        assert json.loads(entry.read_text(encoding="utf-8")) == {
            "path": "Extras/Movie.2020.mkv",
            "title": "Movie (2020)",
        }
        assert len(list(bucket.iterdir())) == 2

    def test_missing_bucket(self, store):
        assert not store.has_bucket("abc123")
        assert store.lookup("abc123", "Movie.2020.mkv") == ""
        assert store.load_bucket("abc123") == {}

    def test_unknown_path_is_miss(self, store):
        store.store_bucket("abc123", TITLES)
        assert store.lookup("abc123", "other.mkv") == ""

    def test_first_writer_wins(self, store):
        assert store.store_bucket("abc123", {"a.mkv": "First"})
        assert store.store_bucket("abc123", {"a.mkv": "Second", "b.mkv": "B"}) is False
        assert store.load_bucket("abc123") == {"a.mkv": "First"}

    def test_empty_bucket_rejected(self, store):
        assert store.store_bucket("abc123", {}) is False
        assert not store.has_bucket("abc123")

    def test_drop(self, store):
        store.store_bucket("abc123", TITLES)
        assert store.drop_bucket("abc123") is True
        assert not store.has_bucket("abc123")
        assert store.lookup("abc123", "Movie.2020.mkv") == ""
        assert store.drop_bucket("abc123") is False

    def test_store_after_drop(self, store):
        store.store_bucket("abc123", {"a.mkv": "Old"})
        store.drop_bucket("abc123")
        assert store.store_bucket("abc123", {"a.mkv": "New"})
        assert store.lookup("abc123", "a.mkv") == "New"

    @pytest.mark.parametrize("torrent_id", ["../escape", ".tmp-x", "a/b", "ABC"])
    def test_unsafe_ids_ignored(self, store, torrent_id):
        assert store.store_bucket(torrent_id, TITLES) is False
        assert not store.has_bucket(torrent_id)

    def test_no_staging_left_behind(self, store, tmp_path):
        store.store_bucket("abc123", TITLES)
        store.store_bucket("abc123", TITLES)
        names = [p.name for p in (tmp_path / "cache" / CONTAINER_NAME).iterdir()]
        assert names == ["abc123"]

    def test_interrupted_writes_cleaned_on_open(self, tmp_path):
        container = tmp_path / "cache" / CONTAINER_NAME
        (container / ".tmp-abc123-dead").mkdir(parents=True)
        (container / ".drop-abc123-4242-0f0f").mkdir()
        with patch("dlnatitles.utils.staging.psutil.pid_exists", return_value=False):
            BucketStore(tmp_path / "cache")
        assert list(container.iterdir()) == []

    def test_live_writers_left_alone_on_open(self, tmp_path):
        container = tmp_path / "cache" / CONTAINER_NAME
        live = container / work_name(".tmp-", "abc123")
        live.mkdir(parents=True)
        BucketStore(tmp_path / "cache")
        assert live.is_dir()

    def test_opening_second_store_mid_write(self, store, tmp_path):
        opened = []

        def open_another_store(path):
            if not opened:
                opened.append(BucketStore(tmp_path / "cache"))
            return entry_key(path)

        with patch("dlnatitles.cache.store.entry_key", side_effect=open_another_store):
            assert store.store_bucket("abc123", TITLES) is True
        assert opened[0].load_bucket("abc123") == TITLES

    def test_failed_publish_is_reported(self, store, tmp_path, capsys):
        with patch("dlnatitles.cache.store.os.rename", side_effect=OSError("cross-device link")):
            assert store.store_bucket("abc123", TITLES) is False

        err = capsys.readouterr().err
        assert "Failed to publish titles for abc123" in err
        assert "already present" not in err
        assert list((tmp_path / "cache" / CONTAINER_NAME).iterdir()) == []

    def test_lost_race_is_not_reported(self, store, capsys):
        store.store_bucket("abc123", TITLES)
        with patch("dlnatitles.cache.store.os.rename", side_effect=OSError("exists")):
            # Bucket check passes before the staged write, as with a racing writer
            with patch.object(Path, "is_dir", side_effect=[False, True]):
                assert store.store_bucket("abc123", {"a.mkv": "A"}) is False
        assert "Failed" not in capsys.readouterr().err

    def test_unavailable_store_is_noop(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        store = BucketStore(blocker)
        assert not store.available
        assert store.store_bucket("abc123", TITLES) is False
        assert not store.has_bucket("abc123")
        assert store.lookup("abc123", "Movie.2020.mkv") == ""
        assert store.load_bucket("abc123") == {}
        assert store.drop_bucket("abc123") is False


class TestMemoryBackend:
    def test_lookup_is_read_through(self, store):
        store.store_bucket("abc123", TITLES)
        inner = Mock(wraps=store)
        memory = MemoryBackend(inner)

        assert memory.lookup("abc123", "Movie.2020.mkv") == "Movie (2020)"
        assert memory.lookup("abc123", "Movie.2020.mkv") == "Movie (2020)"
        assert inner.lookup.call_count == 1

    def test_existence_cached_absence_not(self, store):
        inner = Mock(wraps=store)
        memory = MemoryBackend(inner)

        assert not memory.has_bucket("abc123")
        assert not memory.has_bucket("abc123")
        assert inner.has_bucket.call_count == 2

        store.store_bucket("abc123", TITLES)
        assert memory.has_bucket("abc123")
        assert memory.has_bucket("abc123")
        assert inner.has_bucket.call_count == 3

    def test_refresh_sees_drop_behind_the_layer(self, store, tmp_path):
        memory = MemoryBackend(store)
        memory.store_bucket("abc123", TITLES)
        assert memory.has_bucket("abc123")
        assert memory.lookup("abc123", "Movie.2020.mkv") == "Movie (2020)"

        # Another process drops the bucket through its own store
        BucketStore(tmp_path / "cache").drop_bucket("abc123")

        assert memory.has_bucket("abc123")
        assert memory.has_bucket("abc123", refresh=True) is False
        assert not memory.cached("abc123")
        assert memory.lookup("abc123", "Movie.2020.mkv") == ""

    def test_refresh_recaches_present_bucket(self, store):
        store.store_bucket("abc123", TITLES)
        inner = Mock(wraps=store)
        memory = MemoryBackend(inner)

        assert memory.has_bucket("abc123", refresh=True)
        assert memory.has_bucket("abc123", refresh=True)
        assert memory.has_bucket("abc123")
        assert inner.has_bucket.call_count == 2

    def test_listing_cached_as_copy(self, store):
        store.store_bucket("abc123", TITLES)
        memory = MemoryBackend(store)
        listing = memory.load_bucket("abc123")
        listing["tampered"] = "x"
        assert memory.load_bucket("abc123") == TITLES

    def test_drop_purges_stale_entries(self, store):
        memory = MemoryBackend(store)
        memory.store_bucket("abc123", TITLES)
        memory.has_bucket("abc123")
        memory.lookup("abc123", "Movie.2020.mkv")
        memory.load_bucket("abc123")
        assert memory.cached("abc123")

        assert memory.drop_bucket("abc123")
        assert not memory.cached("abc123")
        assert not memory.has_bucket("abc123")
        assert memory.lookup("abc123", "Movie.2020.mkv") == ""

    def test_invalidation_limited_to_bucket_prefix(self, store):
        memory = MemoryBackend(store)
        memory.store_bucket("abc", {"a.mkv": "A"})
        memory.store_bucket("abcd", {"a.mkv": "B"})
        memory.lookup("abc", "a.mkv")
        memory.lookup("abcd", "a.mkv")

        memory.drop_bucket("abc")
        assert memory.cached("abcd")
        assert memory.lookup("abcd", "a.mkv") == "B"

    def test_store_purges_before_delegating(self, store):
        memory = MemoryBackend(store)
        memory.store_bucket("abc123", {"a.mkv": "Old"})
        memory.lookup("abc123", "a.mkv")
        store.drop_bucket("abc123")  # behind the memory layer's back

        memory.store_bucket("abc123", {"a.mkv": "New"})
        assert memory.lookup("abc123", "a.mkv") == "New"

    def test_lru_eviction(self, store):
        store.store_bucket("abc123", {"a.mkv": "A", "b.mkv": "B", "c.mkv": "C"})
        inner = Mock(wraps=store)
        memory = MemoryBackend(inner, max_entries=2)

        memory.lookup("abc123", "a.mkv")
        memory.lookup("abc123", "b.mkv")
        memory.lookup("abc123", "c.mkv")  # evicts a.mkv
        memory.lookup("abc123", "c.mkv")
        memory.lookup("abc123", "a.mkv")
        assert inner.lookup.call_count == 4


class TestRouterBackend:
    def test_longest_prefix_wins(self, tmp_path):
        default = BucketStore(tmp_path / "default")
        short = BucketStore(tmp_path / "short")
        long = BucketStore(tmp_path / "long")
        router = RouterBackend(default, {"a": short, "ab": long})

        assert router.select("abc123") is long
        assert router.select("a00") is short
        assert router.select("ff00") is default

    def test_delegates_to_selected_store(self, tmp_path):
        default = BucketStore(tmp_path / "default")
        routed = BucketStore(tmp_path / "routed")
        router = RouterBackend(default, {"AB": routed})

        router.store_bucket("abc123", TITLES)
        assert routed.has_bucket("abc123")
        assert not default.has_bucket("abc123")
        assert router.lookup("abc123", "Movie.2020.mkv") == "Movie (2020)"
        assert router.drop_bucket("abc123")
        assert not routed.has_bucket("abc123")


class TestChainCoherence:
    def _chain(self, tmp_path: Path):
        default = BucketStore(tmp_path / "default")
        routed = BucketStore(tmp_path / "routed")
        router = RouterBackend(default, {"ab": routed})
        memory = MemoryBackend(router)
        return memory, router, routed, default

    def test_store_visible_at_every_layer(self, tmp_path):
        memory, router, routed, default = self._chain(tmp_path)
        cache = TorrentTitleCache(memory)

        assert cache.store_bucket("abc123", TITLES)
        for layer in (memory, router, routed):
            assert layer.has_bucket("abc123")
            assert layer.lookup("abc123", "Movie.2020.mkv") == "Movie (2020)"
        assert not default.has_bucket("abc123")

    def test_drop_visible_at_every_layer(self, tmp_path):
        memory, router, routed, _ = self._chain(tmp_path)
        cache = TorrentTitleCache(memory)
        cache.store_bucket("abc123", TITLES)
        # Warm the memory layer so it holds entries that would go stale
        assert cache.has_bucket("abc123")
        assert cache.lookup("abc123", "Movie.2020.mkv") == "Movie (2020)"

        assert cache.drop_bucket("abc123")
        for layer in (memory, router, routed):
            assert not layer.has_bucket("abc123")
            assert layer.lookup("abc123", "Movie.2020.mkv") == ""


class TestTorrentTitleCache:
    def test_normalizes_ids(self, title_cache):
        assert title_cache.store_bucket("  ABC123 ", TITLES)
        assert title_cache.has_bucket("abc123")
        assert title_cache.lookup("ABC123", "Movie.2020.mkv") == "Movie (2020)"

    def test_empty_id_short_circuits(self, title_cache):
        assert title_cache.store_bucket("  ", TITLES) is False
        assert title_cache.has_bucket("") is False
        assert title_cache.lookup("", "Movie.2020.mkv") == ""
        assert title_cache.bucket("") == {}
        assert title_cache.drop_bucket("") is False

    def test_blank_titles_fall_back_to_path(self, title_cache):
        title_cache.store_bucket("abc123", {"a.mkv": "  ", "b.mkv": "", "": "ignored"})
        assert title_cache.bucket("abc123") == {"a.mkv": "a.mkv", "b.mkv": "b.mkv"}

    def test_title_for_falls_back_to_path(self, title_cache):
        title_cache.store_bucket("abc123", TITLES)
        assert title_cache.title_for("abc123", "Movie.2020.mkv") == "Movie (2020)"
        assert title_cache.title_for("abc123", "unknown.mkv") == "unknown.mkv"

    @pytest.mark.parametrize(
        "path", ["Extras\\Movie.2020.mkv", "./Extras/Movie.2020.mkv", "/Extras//Movie.2020.mkv"]
    )
    def test_reads_normalize_paths(self, title_cache, path):
        title_cache.store_bucket("abc123", TITLES)
        assert title_cache.lookup("abc123", path) == "Movie (2020)"
        assert title_cache.title_for("abc123", path) == "Movie (2020)"

    def test_stored_keys_normalized(self, title_cache):
        title_cache.store_bucket("abc123", {"Show\\S01E01.mkv": "Show S01E01", "../x.mkv": "X"})
        assert title_cache.bucket("abc123") == {"Show/S01E01.mkv": "Show S01E01"}

    def test_without_backend_everything_is_noop(self):
        cache = TorrentTitleCache(None)
        assert cache.store_bucket("abc123", TITLES) is False
        assert not cache.has_bucket("abc123")
        assert cache.lookup("abc123", "Movie.2020.mkv") == ""
        assert cache.title_for("abc123", "Movie.2020.mkv") == "Movie.2020.mkv"
        assert cache.drop_bucket("abc123") is False


class TestBuildTitleCache:
    def test_full_chain(self, tmp_path):
        config = DLNATitlesConfig(
            data_dir=tmp_path, cache=CacheConfig(routes={"ab": Path("archive")})
        )
        cache = build_title_cache(config)
        assert isinstance(cache.backend, MemoryBackend)
        assert isinstance(cache.backend.inner, RouterBackend)

        cache.store_bucket("abc123", TITLES)
        assert (tmp_path / "archive" / CONTAINER_NAME / "abc123").is_dir()

    def test_store_only(self, tmp_path):
        config = DLNATitlesConfig(data_dir=tmp_path, cache=CacheConfig(memory_enabled=False))
        cache = build_title_cache(config)
        assert isinstance(cache.backend, BucketStore)
        assert cache.backend.root == tmp_path / "cache" / CONTAINER_NAME

    def test_disabled(self, tmp_path):
        config = DLNATitlesConfig(data_dir=tmp_path, cache=CacheConfig(enabled=False))
        assert build_title_cache(config).backend is None


class TestWorkNames:
    def test_name_carries_pid(self):
        name = work_name(".tmp-", "abc123")
        assert name.startswith(".tmp-abc123-")
        assert owner_pid(name, ".tmp-") == os.getpid()
        assert not is_abandoned(name, ".tmp-")

    @pytest.mark.parametrize("name", [".tmp-abc123-dead", ".tmp-abc123", ".tmp-"])
    def test_names_without_pid_are_abandoned(self, name):
        assert owner_pid(name, ".tmp-") is None
        assert is_abandoned(name, ".tmp-")

    def test_dead_writer(self):
        with patch("dlnatitles.utils.staging.psutil.pid_exists", return_value=False) as exists:
            assert is_abandoned(".drop-abc123-4242-0f0f", ".drop-")
        exists.assert_called_once_with(4242)
