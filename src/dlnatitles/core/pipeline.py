"""Torrent event handling: classify, generate titles, project links."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

from dlnatitles.cache.titles import TorrentTitleCache, build_title_cache
from dlnatitles.core.config import DLNATitlesConfig
from dlnatitles.core.coordinator import GenerationCoordinator, Generator, TorrentLocks
from dlnatitles.core.errors import ClassificationError
from dlnatitles.core.media import classify_path
from dlnatitles.core.models import MediaFile, MediaKind, TorrentListing, normalize_torrent_id
from dlnatitles.links.projector import StreamLinkProjector
from dlnatitles.llm.titles import TitleGenerator
from dlnatitles.utils.console import console

Classifier = Callable[[str], MediaKind]


class TitleService:
    """Everything the streaming server needs from the title cache.

    The server calls ``process`` whenever a torrent's file listing becomes
    known, ``title_for`` when presenting a file, and ``forget`` when a
    torrent is removed.
    """

    def __init__(
        self,
        config: DLNATitlesConfig,
        cache: TorrentTitleCache | None = None,
        generator: Generator | None = None,
        classifier: Classifier = classify_path,
    ) -> None:
        self.config = config
        self.cache = cache if cache is not None else build_title_cache(config)
        self.classifier = classifier
        self.locks = TorrentLocks()

        limiter = None
        if config.generation.max_concurrent_requests > 0:
            limiter = threading.BoundedSemaphore(config.generation.max_concurrent_requests)

        self.coordinator = GenerationCoordinator(
            self.cache,
            generator or TitleGenerator(config.llm, debug=config.debug),
            config.generation,
            locks=self.locks,
            limiter=limiter,
            debug=config.debug,
        )
        self.projector = StreamLinkProjector.from_config(self.cache, config)

    def media_files(self, files: list[MediaFile]) -> list[MediaFile]:
        """Keep the files classified as media, in listing order."""
        media = []
        for file in files:
            if not file.path:
                continue
            try:
                kind = self.classifier(file.path)
            except ClassificationError as e:
                if self.config.debug:
                    console.log(f"skipping {file.path}: {e}")
                continue
            if kind.is_media:
                media.append(file)
        return media

    def process(self, listing: TorrentListing) -> Path | None:
        """Ensure titles for a torrent and rebuild its link directory.

        Returns:
            The link directory written, or None.
        """
        torrent_id = normalize_torrent_id(listing.torrent_id)
        if not torrent_id:
            return None

        media = self.media_files(listing.files)
        if not media:
            return None

        with self.locks.hold(torrent_id):
            self.coordinator.ensure(torrent_id, [f.path for f in media])
            if not self.config.links.enabled:
                return None
            return self.projector.project(torrent_id, listing.title, listing.info_name, media)

    def title_for(self, torrent_id: str, path: str) -> str:
        return self.cache.title_for(torrent_id, path)

    def forget(self, torrent_id: str) -> bool:
        """Drop a torrent's titles and link directory.

        Returns:
            True if anything was removed.
        """
        torrent_id = normalize_torrent_id(torrent_id)
        if not torrent_id:
            return False
        with self.locks.hold(torrent_id):
            dropped = self.cache.drop_bucket(torrent_id)
            removed = self.projector.remove(torrent_id)
        return dropped or removed > 0
