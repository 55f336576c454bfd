"""Project cached titles onto a directory of stream-link files.

One directory per torrent under the links root, flattened::

    <root>/<torrent title>/
        Movie Title (2020).strmlnk     http://host:8090/stream/...?link=<id>&index=0&play
        Movie Title (2020) (2).strmlnk
        .hash                          <torrent id>

The directory is derived data: it is deleted and rebuilt on every run, and
found again through its ``.hash`` marker rather than its name. Each build
happens in a hidden work directory that is renamed into place once the
marker is written, so a crash never leaves a visible, unmarked directory.
"""

from __future__ import annotations

import os
import posixpath
import shutil
from pathlib import Path
from urllib.parse import quote

from dlnatitles.cache.titles import TorrentTitleCache
from dlnatitles.core.config import DLNATitlesConfig, ServerConfig
from dlnatitles.core.errors import FilesystemError
from dlnatitles.core.models import MediaFile, normalize_path, normalize_torrent_id
from dlnatitles.links.host import stream_base_url
from dlnatitles.utils.console import console
from dlnatitles.utils.paths import numbered_name, sanitize_filename
from dlnatitles.utils.staging import sweep_abandoned, work_name

MARKER_NAME = ".hash"

_WORK_PREFIX = ".tmp-"


def build_stream_link(base_url: str, torrent_id: str, path: str, index: int) -> str:
    """Return the stream URL of one torrent file."""
    if not base_url or not torrent_id or not path:
        return ""
    name = quote(posixpath.basename(path), safe="")
    return f"{base_url}/stream/{name}?link={torrent_id}&index={index}&play"


class StreamLinkProjector:
    """Write one link file per media file of a torrent."""

    def __init__(
        self,
        cache: TorrentTitleCache,
        root: Path,
        server: ServerConfig | None = None,
        extension: str = "strmlnk",
        debug: bool = False,
    ) -> None:
        self.cache = cache
        self.root = Path(root)
        self.server = server or ServerConfig()
        self.extension = extension.lstrip(".")
        self.debug = debug

    @classmethod
    def from_config(cls, cache: TorrentTitleCache, config: DLNATitlesConfig) -> StreamLinkProjector:
        return cls(
            cache,
            config.links_root,
            server=config.server,
            extension=config.links.extension,
            debug=config.debug,
        )

    def project(
        self,
        torrent_id: str,
        title: str,
        info_name: str,
        media_files: list[MediaFile],
    ) -> Path | None:
        """Rebuild the link directory of a torrent.

        Args:
            torrent_id: Torrent hash; written to the marker file.
            title: Display title of the torrent, preferred directory name.
            info_name: Name from the torrent metainfo, second choice.
            media_files: Media files in listing order.

        Returns:
            The directory written, or None if nothing was projected.
        """
        torrent_id = normalize_torrent_id(torrent_id)
        if not torrent_id or not media_files:
            return None

        try:
            self._prepare_root()
        except FilesystemError as e:
            console.print(f"[red]Cannot prepare stream link root:[/red] {e}")
            return None

        self.remove(torrent_id)

        work_dir = self.root / work_name(_WORK_PREFIX, torrent_id)
        try:
            work_dir.mkdir()
        except OSError as e:
            console.print(f"[red]Cannot create stream link directory {work_dir}:[/red] {e}")
            return None

        base_url = stream_base_url(self.server)
        for name, media, path in self._link_names(torrent_id, media_files):
            link_path = work_dir / f"{name}.{self.extension}"
            link = build_stream_link(base_url, torrent_id, path, media.index)
            try:
                link_path.write_text(link, encoding="utf-8")
            except OSError as e:
                console.print(f"[yellow]Cannot write stream link {link_path.name}:[/yellow] {e}")
                continue
            if self.debug:
                console.log(f"stream link {link_path.name} -> {link}")

        # Marker last: a directory without it was never completed
        try:
            (work_dir / MARKER_NAME).write_text(torrent_id, encoding="utf-8")
        except OSError as e:
            console.print(f"[red]Cannot write hash marker for {torrent_id}:[/red] {e}")
            shutil.rmtree(work_dir, ignore_errors=True)
            return None

        return self._publish(
            work_dir, sanitize_filename(title) or sanitize_filename(info_name) or torrent_id
        )

    def _link_names(self, torrent_id: str, media_files: list[MediaFile]):
        """Yield (link name, media file, normalized path) in listing order.

        The n-th file labelled "X" is named "X (n)"; when that name is
        already taken (by a file whose own label is "X (n)") the counter
        keeps rising until a free name is found.
        """
        counts: dict[str, int] = {}
        used: set[str] = set()
        for media in media_files:
            path = normalize_path(media.path)
            if not path:
                continue

            label = self.cache.lookup(torrent_id, path).strip() or posixpath.basename(path)
            base_name = sanitize_filename(label) or f"file-{media.index}"
            occurrence = counts.get(base_name, 0) + 1
            name = numbered_name(base_name, occurrence)
            while name.casefold() in used:
                occurrence += 1
                name = numbered_name(base_name, occurrence)
            counts[base_name] = occurrence
            used.add(name.casefold())
            yield name, media, path

    def _publish(self, work_dir: Path, dir_name: str) -> Path | None:
        # Another torrent may already own a directory with the same title
        occurrence = 1
        while True:
            candidate = self.root / numbered_name(dir_name, occurrence)
            occurrence += 1
            if candidate.exists():
                continue
            try:
                os.rename(work_dir, candidate)
            except OSError as e:
                if candidate.exists():
                    continue
                console.print(f"[red]Cannot create stream link directory {candidate}:[/red] {e}")
                shutil.rmtree(work_dir, ignore_errors=True)
                return None
            return candidate

    def remove(self, torrent_id: str) -> int:
        """Delete every link directory whose marker names the torrent.

        Returns:
            Number of directories removed.
        """
        target = normalize_torrent_id(torrent_id)
        if not target:
            return 0
        try:
            candidates = self._published()
        except OSError:
            return 0

        removed = 0
        for directory in candidates:
            if self._marker(directory) != target:
                continue
            shutil.rmtree(directory, ignore_errors=True)
            removed += 1
            if self.debug:
                console.log(f"removed stale stream link directory {directory}")
        return removed

    def find(self, torrent_id: str) -> Path | None:
        """Return the current link directory of a torrent, if any."""
        target = normalize_torrent_id(torrent_id)
        if not target:
            return None
        try:
            candidates = sorted(self._published())
        except OSError:
            return None
        for directory in candidates:
            if self._marker(directory) == target:
                return directory
        return None

    def _prepare_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            # Builds left by a crashed process
            sweep_abandoned(self.root, _WORK_PREFIX)
        except OSError as e:
            raise FilesystemError(f"cannot create {self.root}: {e}") from e

    def _published(self) -> list[Path]:
        return [
            p for p in self.root.iterdir() if p.is_dir() and not p.name.startswith(_WORK_PREFIX)
        ]

    @staticmethod
    def _marker(directory: Path) -> str:
        try:
            return normalize_torrent_id((directory / MARKER_NAME).read_text(encoding="utf-8"))
        except OSError:
            return ""
