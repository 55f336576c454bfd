"""dlnatitles show / lookup / drop commands — inspect the title cache."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from dlnatitles.core.config import load_config

console = Console()


def show(
    torrent: Annotated[str, typer.Argument(help="Torrent hash.")],
) -> None:
    """Print every cached title of a torrent."""
    from dlnatitles.cache.titles import build_title_cache

    cache = build_title_cache(load_config())
    titles = cache.bucket(torrent)
    if not titles:
        console.print(f"[yellow]No titles cached for {torrent}.[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"Titles for {torrent.strip().lower()}")
    table.add_column("Path", max_width=60, no_wrap=True)
    table.add_column("Title")
    for path, cached in sorted(titles.items()):
        table.add_row(path, cached)
    console.print(table)


def lookup(
    torrent: Annotated[str, typer.Argument(help="Torrent hash.")],
    path: Annotated[str, typer.Argument(help="File path inside the torrent.")],
) -> None:
    """Print the title of one file, or the path itself when none is cached."""
    from dlnatitles.cache.titles import build_title_cache

    cache = build_title_cache(load_config())
    typer.echo(cache.title_for(torrent, path))


def drop(
    torrent: Annotated[str, typer.Argument(help="Torrent hash.")],
) -> None:
    """Forget a torrent: drop its cached titles and its stream links."""
    from dlnatitles.core.pipeline import TitleService

    service = TitleService(load_config())
    if not service.forget(torrent):
        console.print(f"[yellow]Nothing stored for {torrent}.[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]Dropped:[/green] {torrent}")
