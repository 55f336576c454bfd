"""Shared CLI utilities."""

from __future__ import annotations

import json
from pathlib import Path

from dlnatitles.core.models import TorrentListing


def expand_inputs(inputs: list[str]) -> list[Path]:
    """Expand glob patterns into individual listing file paths."""
    expanded = []
    for inp in inputs:
        # Try as glob pattern if it contains wildcards
        if any(c in inp for c in "*?["):
            matches = sorted(Path(".").glob(inp))
            if matches:
                expanded.extend(matches)
                continue

        # Regular file/path
        expanded.append(Path(inp))

    return expanded


def load_listings(path: Path) -> list[TorrentListing]:
    """Read torrent listings from a JSON file.

    The file holds either one listing object or a list of them.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    items = data if isinstance(data, list) else [data]
    return [TorrentListing.from_dict(item) for item in items if isinstance(item, dict)]
