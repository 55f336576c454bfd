"""Key helpers shared by the title store layers."""

from __future__ import annotations

import hashlib


def entry_key(path: str) -> str:
    """Compute the on-disk entry name for a torrent file path.

    Paths may contain any character, so entries are named by the SHA-256 of
    the path instead of the path itself.

    Returns:
        64-char hex string.
    """
    return hashlib.sha256(path.encode("utf-8")).hexdigest()


def bucket_prefix(torrent_id: str) -> str:
    """Key prefix shared by every in-memory key of one bucket."""
    return f"{torrent_id}/"


def title_key(torrent_id: str, path: str) -> str:
    """In-memory key of a single cached title."""
    return bucket_prefix(torrent_id) + path


def listing_key(torrent_id: str) -> str:
    """In-memory key of a cached bucket listing.

    NUL never occurs in a file path, so this cannot collide with a title key.
    """
    return bucket_prefix(torrent_id) + "\0"
