"""Shared Rich console for diagnostics."""

from rich.console import Console

# stderr keeps diagnostics out of any stdout the host server owns
console = Console(stderr=True)
