"""dlnatitles process command — handle torrent listings end to end."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from dlnatitles.cli.utils import expand_inputs, load_listings
from dlnatitles.core.config import load_config

console = Console()


def process(
    inputs: Annotated[
        list[str],
        typer.Argument(help="JSON listing files or glob patterns."),
    ],
    links_root: Annotated[
        Optional[Path],
        typer.Option("--links-root", help="Directory receiving the stream link folders."),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="LLM model (e.g. openai/gpt-4o-mini)."),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", help="Parallel title requests per torrent."),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Verbose diagnostics."),
    ] = False,
) -> None:
    """Generate titles and write stream links for each torrent listing.

    A listing file holds {"hash", "title", "name", "files": [{"path", "index", "size"}]}
    or a list of such objects.
    """
    from dlnatitles.core.pipeline import TitleService

    config = load_config(
        **{
            "links.root": links_root,
            "llm.model": model,
            "generation.workers": workers,
            "debug": debug or None,
        }
    )

    expanded = expand_inputs(inputs)
    if not expanded:
        console.print("[red]No inputs resolved. Check your paths or patterns.[/red]")
        raise typer.Exit(1)

    service = TitleService(config)
    table = Table(title=f"Processed listings ({len(expanded)} files)")
    table.add_column("Torrent", no_wrap=True)
    table.add_column("Titles", justify="right")
    table.add_column("Links", max_width=60, no_wrap=True)

    failed = 0
    for listing_path in expanded:
        try:
            listings = load_listings(listing_path)
        except (OSError, ValueError) as e:
            console.print(f"[red]Cannot read {listing_path}:[/red] {e}")
            failed += 1
            continue

        for listing in listings:
            if not listing.torrent_id:
                console.print(f"[yellow]Listing without hash in {listing_path}, skipped.[/yellow]")
                continue
            link_dir = service.process(listing)
            count = len(service.cache.bucket(listing.torrent_id))
            table.add_row(listing.torrent_id, str(count), str(link_dir or "-"))

    console.print(table)
    if failed:
        raise typer.Exit(1)
