"""dlna-titles — per-torrent media title cache and stream-link projector."""

__version__ = "0.3.0"
