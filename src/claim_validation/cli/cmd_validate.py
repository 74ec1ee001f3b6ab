"""Validate and finalize commands: run claims through the validation pipeline."""

from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from claim_validation.cli._app import app
from claim_validation.cli._common import (
    build_orchestrator,
    ensure_initialized,
    load_json,
    setup_logging,
)
from claim_validation.cli._console import (
    console,
    print_err,
    print_warn,
    show_batch,
    show_decision,
    show_fields,
)
from claim_validation.exceptions import ClaimRejectedError
from claim_validation.pipeline.batch import BatchItem, validate_claims
from claim_validation.schemas.claim import ClaimDecision, ClaimRequest

INDEX_OPTION = typer.Option(None, "--index", help="Clause index JSON (default: $CLAIMVAL_CLAUSE_INDEX)")
DOCUMENTS_OPTION = typer.Option(None, "--documents", help="Directory of extracted document text")
AUDIT_OPTION = typer.Option(None, "--audit-dir", help="Audit ledger directory (default: output/audit)")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Pipeline config YAML override")
CALLER_OPTION = typer.Option("cli", "--caller", help="Caller identity for rate limiting")


def _parse_request(data, source: Path) -> ClaimRequest:
    try:
        return ClaimRequest.model_validate(data)
    except ValidationError as e:
        print_err(f"Invalid claim request in {source}: {e.error_count()} error(s)")
        for err in e.errors():
            console.print(f"  {'.'.join(str(p) for p in err['loc'])}: {err['msg']}")
        raise SystemExit(1)


@app.command("validate")
def validate_cmd(
    ctx: typer.Context,
    request_file: Path = typer.Argument(..., help="Claim request JSON (object, or list for a batch)"),
    documents_ids: Optional[List[str]] = typer.Option(None, "--doc", help="Supporting document id (repeatable)"),
    workers: int = typer.Option(4, "--workers", "-w", help="Concurrent workers for a batch"),
    index: Optional[Path] = INDEX_OPTION,
    documents: Optional[Path] = DOCUMENTS_OPTION,
    audit_dir: Optional[Path] = AUDIT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    caller: str = CALLER_OPTION,
):
    """Validate a claim (or a batch of claims) and print the guarded decision.

    A batch file is a JSON list of objects with a [bold]request[/bold] and
    optional [bold]supporting_document_ids[/bold].

    Exits with status 2 when the request is rejected.
    """
    ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    data = load_json(request_file)
    orchestrator = build_orchestrator(
        index=index, documents=documents, audit_dir=audit_dir, config_path=config
    )

    if isinstance(data, list):
        items = [
            BatchItem(
                request=_parse_request(entry.get("request", entry), request_file),
                supporting_document_ids=list(entry.get("supporting_document_ids") or []),
            )
            for entry in data
        ]
        results = validate_claims(orchestrator, items, max_workers=workers, caller_id=caller)
        show_batch(results, ctx=ctx)
        return

    request = _parse_request(data, request_file)
    try:
        decision = orchestrator.validate_claim(request, documents_ids or [], caller_id=caller)
    except ClaimRejectedError as e:
        print_warn(f"Claim {request.claim_id} rejected ({e.code.value})")
        show_fields(e.to_response(), ctx=ctx, title="Rejected")
        raise SystemExit(2)

    show_decision(decision, ctx=ctx, claim_id=request.claim_id)


@app.command("finalize")
def finalize_cmd(
    ctx: typer.Context,
    request_file: Path = typer.Argument(..., help="Claim request JSON"),
    decision_file: Path = typer.Argument(..., help="Prior decision JSON"),
    documents_ids: Optional[List[str]] = typer.Option(None, "--doc", help="Supporting document id (repeatable)"),
    index: Optional[Path] = INDEX_OPTION,
    documents: Optional[Path] = DOCUMENTS_OPTION,
    audit_dir: Optional[Path] = AUDIT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    caller: str = CALLER_OPTION,
):
    """Re-validate a claim with its full set of supporting documents."""
    ensure_initialized()
    setup_logging(verbose=ctx.obj["verbose"], quiet=ctx.obj["quiet"])

    request = _parse_request(load_json(request_file), request_file)
    try:
        prior = ClaimDecision.model_validate(load_json(decision_file))
    except ValidationError as e:
        print_err(f"Invalid prior decision in {decision_file}: {e.error_count()} error(s)")
        raise SystemExit(1)

    if not documents_ids:
        print_warn("No supporting documents given; finalizing with policy evidence only")

    orchestrator = build_orchestrator(
        index=index, documents=documents, audit_dir=audit_dir, config_path=config
    )
    try:
        decision = orchestrator.finalize_claim(request, prior, documents_ids or [], caller_id=caller)
    except ClaimRejectedError as e:
        print_warn(f"Claim {request.claim_id} rejected ({e.code.value})")
        show_fields(e.to_response(), ctx=ctx, title="Rejected")
        raise SystemExit(2)

    show_decision(decision, ctx=ctx, claim_id=request.claim_id)
