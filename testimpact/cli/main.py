"""Typer CLI application for testimpact."""

import typer

from testimpact import __version__
from testimpact.cli.commands.impact import impact
from testimpact.cli.commands.maintenance import app as maintenance_app
from testimpact.lib.logging import get_logger

logger = get_logger(__name__)

app = typer.Typer(
    name="testimpact",
    help="Detect which tests are affected by code changes",
    no_args_is_help=True,
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"testimpact version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """testimpact CLI - change impact detection for Python test suites."""
    pass


app.command("impact")(impact)
app.add_typer(maintenance_app, name="maintenance")

if __name__ == "__main__":
    app()
