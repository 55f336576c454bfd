"""MIME-based media classification for torrent file paths."""

from __future__ import annotations

import mimetypes

from dlnatitles.core.errors import ClassificationError
from dlnatitles.core.models import MediaKind

# Container formats the platform registry frequently lacks
_EXTRA_TYPES = {
    ".mkv": "video/x-matroska",
    ".mka": "audio/x-matroska",
    ".m2ts": "video/mp2t",
    ".mts": "video/mp2t",
    ".ts": "video/mp2t",
    ".webm": "video/webm",
    ".flac": "audio/flac",
    ".opus": "audio/opus",
    ".m4a": "audio/mp4",
    ".m4v": "video/mp4",
    ".avi": "video/x-msvideo",
    ".divx": "video/x-msvideo",
}

_mimes = mimetypes.MimeTypes()
for _ext, _type in _EXTRA_TYPES.items():
    _mimes.add_type(_type, _ext)


def classify_path(path: str) -> MediaKind:
    """Classify a torrent file path by its MIME type.

    Raises:
        ClassificationError: If no MIME type is known for the extension.
    """
    mime, _ = _mimes.guess_type(path, strict=False)
    if mime is None:
        raise ClassificationError(f"unknown mime type for {path!r}")
    if mime.startswith("video/"):
        return MediaKind.VIDEO
    if mime.startswith("audio/"):
        return MediaKind.AUDIO
    return MediaKind.OTHER
