"""Root ``claimval`` application and its global flags."""

from typing import Optional

import typer

from claim_validation import __version__

app = typer.Typer(
    name="claimval",
    help="Guard AI-generated insurance claim decisions before anyone acts on them.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"claimval {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline stages at debug level"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Log warnings and errors only"),
    json_output: bool = typer.Option(
        False, "--json", help="Write decisions and reports to stdout as JSON"
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_show_version, is_eager=True, help="Show the version and exit"
    ),
):
    """Run claims through threat scanning, citation and contradiction checks,
    business rules and redaction, and inspect the audit ledger."""
    if verbose and quiet:
        raise typer.BadParameter("--verbose and --quiet are mutually exclusive")
    ctx.obj = {"verbose": verbose, "quiet": quiet, "json": json_output}
