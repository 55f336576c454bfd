"""Names for work directories that are renamed into place when complete.

A work directory is named ``<prefix><key>-<pid>-<nonce>``. Carrying the
writer's pid lets a later process tell a crashed writer's leftovers from
a write that is still in progress.
"""

from __future__ import annotations

import os
import shutil
import uuid
from pathlib import Path

import psutil


def work_name(prefix: str, key: str) -> str:
    """Return a fresh work directory name owned by this process."""
    return f"{prefix}{key}-{os.getpid()}-{uuid.uuid4().hex}"


def owner_pid(name: str, prefix: str) -> int | None:
    """Pid recorded in a work directory name, or None if it carries none."""
    if not name.startswith(prefix):
        return None
    parts = name[len(prefix):].rsplit("-", 2)
    if len(parts) != 3 or not parts[1].isdigit():
        return None
    return int(parts[1])


def is_abandoned(name: str, prefix: str) -> bool:
    """True for a work directory whose writer is no longer running."""
    pid = owner_pid(name, prefix)
    if pid is None:
        return True
    return not psutil.pid_exists(pid)


def sweep_abandoned(directory: Path, *prefixes: str) -> list[Path]:
    """Delete abandoned work directories directly under *directory*.

    Raises:
        OSError: If *directory* cannot be listed.
    """
    removed = []
    for child in directory.iterdir():
        prefix = next((p for p in prefixes if child.name.startswith(p)), None)
        if prefix is None or not is_abandoned(child.name, prefix):
            continue
        shutil.rmtree(child, ignore_errors=True)
        removed.append(child)
    return removed
