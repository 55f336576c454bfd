"""Error taxonomy for dlna-titles.

None of these are fatal to the host: callers degrade to "use the original
path as the title" or "skip this one file".
"""

from __future__ import annotations


class TitleCacheError(Exception):
    """Base class for all dlna-titles errors."""


class ClassificationError(TitleCacheError):
    """The MIME type of a path could not be determined."""


class TitleGenerationError(TitleCacheError):
    """A title could not be produced for a path."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message} ({path})")
        self.path = path


class GenerationFailed(TitleGenerationError):
    """The provider call failed or returned nothing usable."""


class InconsistentGeneration(TitleGenerationError):
    """Three provider calls disagreed with each other."""

    def __init__(self, path: str, candidates: list[str]) -> None:
        super().__init__(path, "provider returned inconsistent titles: " + " | ".join(candidates))
        self.candidates = candidates


class CacheUnavailable(TitleCacheError):
    """The durable title store could not be opened."""


class FilesystemError(TitleCacheError):
    """A link directory or file could not be written."""
