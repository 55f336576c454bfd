"""dlna-titles CLI entry point."""

from typing import Annotated, Optional

import typer
from dotenv import load_dotenv

from dlnatitles import __version__
from dlnatitles.cli.cache import drop, lookup, show
from dlnatitles.cli.process import process
from dlnatitles.cli.title import title

app = typer.Typer(
    name="dlnatitles",
    help="dlna-titles — normalized media titles and stream links for torrents.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dlnatitles {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """dlna-titles — normalized media titles and stream links for torrents."""
    # Load .env file for API keys (OPENAI_API_KEY, etc.)
    # Does not override existing env vars — shell exports take precedence
    load_dotenv(override=False)


app.command("title")(title)
app.command("process")(process)
app.command("show")(show)
app.command("lookup")(lookup)
app.command("drop")(drop)
