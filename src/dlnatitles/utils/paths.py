"""Filesystem naming helpers for link directories."""

from __future__ import annotations

import re

MAX_NAME_LENGTH = 200

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_RESERVED_CHARS = re.compile(r'[<>:"/\\|?*]')


def sanitize_filename(name: str | None) -> str:
    """Convert a title to a name usable as a file or directory name.

    Drops control characters, maps reserved characters to "_", caps the
    length and trims surrounding spaces, dots and underscores. Returns ""
    when nothing usable is left.
    """
    if not name:
        return ""
    text = _CONTROL_CHARS.sub("", name.strip())
    text = _RESERVED_CHARS.sub("_", text)
    return text[:MAX_NAME_LENGTH].strip(" ._")


def numbered_name(base: str, occurrence: int) -> str:
    """Name of the n-th (1-based) occurrence of *base*: "x", "x (2)", "x (3)"..."""
    if occurrence <= 1:
        return base
    return f"{base} ({occurrence})"
