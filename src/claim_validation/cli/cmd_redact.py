"""Redact command: mask sensitive data in text."""

from pathlib import Path
from typing import Optional

import typer

from claim_validation.cli._app import app
from claim_validation.cli._common import read_text, setup_logging
from claim_validation.cli._console import emit_json, stdout_console, wants_json
from claim_validation.security.pii_masker import SensitiveDataMasker


@app.command("redact")
def redact_cmd(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to redact, or '-' for stdin"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read text from a file"),
):
    """Mask card numbers, SSNs, phones, emails, dates of birth, ZIP codes and PHI."""
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    content = read_text(text, file)
    masker = SensitiveDataMasker()
    redacted = masker.redact(content)

    if wants_json(ctx):
        emit_json({"redacted": redacted, "detected": masker.detect_types(content)})
    else:
        stdout_console.print(redacted, markup=False, highlight=False)
