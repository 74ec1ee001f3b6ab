"""Audit commands: specialist review and ledger integrity verification."""

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from claim_validation.cli._app import app
from claim_validation.cli._common import ensure_initialized, resolve_service_config, setup_logging
from claim_validation.cli._console import emit_json, print_err, print_ok, show_fields, wants_json
from claim_validation.schemas.claim import ClaimDecisionUpdate
from claim_validation.services.audit_ledger import AuditLedger


def _ledger(audit_dir: Optional[Path]) -> AuditLedger:
    return AuditLedger(resolve_service_config(audit_dir=audit_dir).audit_dir)


@app.command("review")
def review_cmd(
    ctx: typer.Context,
    claim_id: str = typer.Argument(..., help="Claim to record a decision for"),
    status: str = typer.Option(..., "--status", "-s", help="Covered, NotCovered, Denied or ManualReview"),
    specialist: str = typer.Option(..., "--specialist", help="Specialist identifier"),
    notes: str = typer.Option("", "--notes", help="Reviewer notes"),
    audit_dir: Optional[Path] = typer.Option(None, "--audit-dir", help="Audit ledger directory"),
):
    """Record a specialist's decision on a previously validated claim."""
    ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    try:
        update = ClaimDecisionUpdate(
            claim_id=claim_id,
            new_status=status,
            specialist_notes=notes,
            specialist_id=specialist,
        )
    except ValidationError as e:
        print_err(f"Invalid review: {e.errors()[0]['msg']}")
        raise SystemExit(1)

    ledger = _ledger(audit_dir)
    try:
        record = ledger.record_review(update)
    except KeyError:
        print_err(f"No audit record for claim {claim_id}")
        raise SystemExit(1)
    except IOError as e:
        print_err(str(e))
        raise SystemExit(1)

    previous = record.prior_decision.status.value if record.prior_decision else "-"
    if not ctx.obj["quiet"]:
        print_ok(f"{claim_id}: {previous} -> {update.new_status.value} (record {record.record_id})")
    if wants_json(ctx):
        emit_json(record.model_dump(mode="json", exclude_none=True))


@app.command("audit-verify")
def audit_verify_cmd(
    ctx: typer.Context,
    audit_dir: Optional[Path] = typer.Option(None, "--audit-dir", help="Audit ledger directory"),
):
    """Verify the audit ledger hash chain.

    Exits with status 1 when the chain is broken.
    """
    ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    report = _ledger(audit_dir).verify_integrity()
    if wants_json(ctx):
        emit_json(report.model_dump(mode="json"))
    elif report.valid:
        print_ok(f"Audit ledger intact ({report.total_records} records)")
    else:
        print_err(f"Audit ledger broken: {report.break_reason}")
        show_fields(report.model_dump(mode="json", exclude_none=True), ctx=ctx, title="Integrity report")

    if not report.valid:
        raise SystemExit(1)
