"""Scan command: run the threat scanner over untrusted text."""

from pathlib import Path
from typing import Optional

import typer

from claim_validation.cli._app import app
from claim_validation.cli._common import read_text, setup_logging
from claim_validation.cli._console import print_ok, print_warn, show_fields, wants_json
from claim_validation.security.threat_scanner import ThreatScanner


@app.command("scan")
def scan_cmd(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to scan, or '-' for stdin"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read text from a file"),
    sanitize: bool = typer.Option(False, "--sanitize", help="Also print the sanitized text"),
):
    """Check text for prompt injection, code injection and abusive input.

    Exits with status 1 when any threat is found.
    """
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    content = read_text(text, file)
    scanner = ThreatScanner()
    matches = scanner.scan_detailed(content)

    result = {
        "is_clean": not matches,
        "categories": scanner.threat_categories(content),
        "threats": [m.description for m in matches],
    }
    if sanitize:
        result["sanitized"] = scanner.sanitize(content)

    if wants_json(ctx):
        show_fields(result, ctx=ctx)
    elif not matches:
        print_ok("No threats detected")
        if sanitize:
            show_fields({"sanitized": result["sanitized"]}, ctx=ctx)
    else:
        print_warn(f"{len(matches)} threat(s) detected")
        show_fields(result, ctx=ctx, title="Threat scan")

    if matches:
        raise SystemExit(1)
