"""dlnatitles title command — normalize file names without caching."""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from dlnatitles.core.config import load_config

console = Console()


def title(
    paths: Annotated[
        list[str],
        typer.Argument(help="Torrent file paths to normalize."),
    ],
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="LLM model (e.g. openai/gpt-4o-mini)."),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Print prompts and every provider answer."),
    ] = False,
) -> None:
    """Ask the provider for normalized titles, with consistency voting."""
    from dlnatitles.core.errors import TitleGenerationError
    from dlnatitles.llm.titles import TitleGenerator

    config = load_config(**{"llm.model": model, "debug": debug or None})
    generator = TitleGenerator(config.llm, debug=config.debug)

    table = Table(title=f"Titles ({config.llm.model})")
    table.add_column("Path", max_width=60, no_wrap=True)
    table.add_column("Title")

    failed = 0
    for path in paths:
        try:
            result = generator.generate(path)
            table.add_row(path, f"[green]{result}[/green]")
        except TitleGenerationError as e:
            failed += 1
            table.add_row(path, f"[red]{e}[/red]")

    console.print(table)
    if failed:
        raise typer.Exit(1)
