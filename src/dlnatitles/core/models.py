"""Shared data models for dlna-titles."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum


def normalize_torrent_id(value: str | None) -> str:
    """Trim and lower-case a torrent hash. Empty means invalid."""
    if not value:
        return ""
    return value.strip().lower()


def normalize_path(path: str | None) -> str:
    """Slash-normalize a torrent-relative file path.

    Returns "" for paths that are empty or escape the torrent root.
    """
    if not path:
        return ""
    cleaned = path.strip().replace("\\", "/")
    if not cleaned:
        return ""
    cleaned = posixpath.normpath(cleaned).lstrip("/")
    if cleaned in ("", ".", "..") or cleaned.startswith("../"):
        return ""
    return cleaned


class MediaKind(Enum):
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"

    @property
    def is_media(self) -> bool:
        return self in (MediaKind.VIDEO, MediaKind.AUDIO)


@dataclass(frozen=True)
class MediaFile:
    """One file of a torrent listing, identified by its path."""

    path: str
    index: int
    size: int = 0

    @property
    def base_name(self) -> str:
        return posixpath.basename(self.path)


@dataclass(frozen=True)
class TitleEntry:
    """A cached title for one file path. Title is never empty."""

    path: str
    title: str


@dataclass
class TorrentListing:
    """File listing handed over by the torrent engine for one torrent."""

    torrent_id: str
    files: list[MediaFile] = field(default_factory=list)
    title: str = ""
    info_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> TorrentListing:
        """Build a listing from its JSON form.

        Expects ``{"hash", "title", "name", "files": [{"path", "index", "size"}]}``.
        Files without a usable path are dropped; a missing index falls back
        to the file's position in the list.
        """
        files = []
        for position, item in enumerate(data.get("files") or []):
            path = normalize_path(item.get("path"))
            if not path:
                continue
            files.append(
                MediaFile(
                    path=path,
                    index=int(item.get("index", position)),
                    size=int(item.get("size", 0)),
                )
            )
        return cls(
            torrent_id=normalize_torrent_id(data.get("hash")),
            files=files,
            title=data.get("title") or "",
            info_name=data.get("name") or "",
        )
