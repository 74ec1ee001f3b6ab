"""Rich consoles and renderers for claim decisions.

Data goes to stdout as JSON under ``--json`` (pipeable to jq); everything
else, including the human-readable decision view, goes to stderr.
"""

import sys
from typing import Any, Dict, Optional, Sequence

import typer
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from claim_validation.pipeline.batch import BatchResult
from claim_validation.schemas.claim import ClaimDecision, ClaimStatus

console = Console(stderr=True)
stdout_console = Console(file=sys.stdout)

STATUS_STYLES = {
    ClaimStatus.COVERED: "green",
    ClaimStatus.NOT_COVERED: "yellow",
    ClaimStatus.DENIED: "red",
    ClaimStatus.MANUAL_REVIEW: "magenta",
    ClaimStatus.ERROR: "bold red",
}
SEVERITY_STYLES = {"Low": "dim", "Medium": "yellow", "High": "red", "Critical": "bold red"}


def _mark(symbol: str, style: str, msg: str) -> None:
    console.print(f"[{style}]{symbol}[/{style}] {msg}")


def print_ok(msg: str) -> None:
    _mark("✓", "green", msg)


def print_err(msg: str) -> None:
    _mark("✗", "red", msg)


def print_warn(msg: str) -> None:
    _mark("!", "yellow", msg)


def wants_json(ctx: typer.Context) -> bool:
    return bool(ctx.obj and ctx.obj.get("json"))


def emit_json(data: Any) -> None:
    stdout_console.print_json(data=data)


def show_fields(data: Dict[str, Any], *, ctx: typer.Context, title: str = "") -> None:
    """Key/value view of a flat result (scan report, ledger check, rejection)."""
    if wants_json(ctx):
        emit_json(data)
        return
    table = Table(title=title or None, show_header=False, box=None, pad_edge=False)
    table.add_column(style="bold")
    table.add_column(overflow="fold")
    for key, value in data.items():
        if isinstance(value, (list, tuple)):
            value = "\n".join(str(v) for v in value) or "-"
        table.add_row(key, Text(str(value)))
    console.print(table)


def _decision_summary(decision: ClaimDecision) -> Table:
    summary = Table(show_header=False, box=None, pad_edge=False)
    summary.add_column(style="bold")
    summary.add_column(overflow="fold")
    summary.add_row("Confidence", f"{decision.confidence_score:.2f}")
    if decision.confidence_rationale:
        summary.add_row("Rationale", Text(decision.confidence_rationale))
    if decision.routing is not None:
        routing = decision.routing
        summary.add_row(
            "Routing",
            f"{routing.processing_mode.value} ({routing.tier.value} tier, "
            f"{routing.required_approvals} approval(s), SLA {routing.review_sla_hours}h)",
        )
    if decision.fraud_risk is not None:
        summary.add_row(
            "Fraud risk", f"{decision.fraud_risk.risk_level.value} ({decision.fraud_risk.risk_score:.2f})"
        )
    if decision.clause_references:
        summary.add_row("Clauses", ", ".join(decision.clause_references))
    if decision.error_code is not None:
        summary.add_row("Error code", decision.error_code.value)
    summary.add_row("Explanation", Text(decision.explanation or "-"))
    return summary


def _contradiction_table(decision: ClaimDecision) -> Optional[Table]:
    if not decision.contradictions:
        return None
    table = Table(title="Contradictions", title_justify="left", show_lines=False)
    table.add_column("Severity")
    table.add_column("Between")
    table.add_column("Description", overflow="fold")
    table.add_column("Impact", overflow="fold")
    for c in decision.contradictions:
        style = SEVERITY_STYLES.get(c.severity.value, "")
        table.add_row(
            Text(c.severity.value, style=style),
            f"{c.source_a} / {c.source_b}",
            Text(c.description),
            Text(c.impact),
        )
    return table


def _bullets(title: str, items: Optional[Sequence[Any]]) -> Optional[Text]:
    if not items:
        return None
    text = Text(f"{title}\n", style="bold")
    for item in items:
        text.append(f"  • {getattr(item, 'value', item)}\n")
    return text


def show_decision(decision: ClaimDecision, *, ctx: typer.Context, claim_id: str) -> None:
    """Render a decision: JSON on stdout, or a status panel on stderr."""
    if wants_json(ctx):
        emit_json(decision.model_dump(mode="json", exclude_none=True))
        return

    parts = [_decision_summary(decision)]
    for part in (
        _contradiction_table(decision),
        _bullets("Warnings", decision.validation_warnings),
        _bullets("Missing evidence", decision.missing_evidence),
        _bullets("Required documents", decision.required_documents),
        _bullets("Review flags", decision.review_flags),
    ):
        if part is not None:
            parts.append(part)

    style = STATUS_STYLES.get(decision.status, "blue")
    console.print(Panel(
        Group(*parts),
        title=f"[{style}]{claim_id}: {decision.status.value}[/{style}]",
        border_style=style,
    ))


def show_batch(results: Sequence[BatchResult], *, ctx: typer.Context) -> None:
    """One row per claim, or the full decisions and rejections as a JSON list."""
    if wants_json(ctx):
        emit_json([
            r.decision.model_dump(mode="json", exclude_none=True) if r.ok else r.rejection
            for r in results
        ])
        return

    if not results:
        console.print("[dim]No claims[/dim]")
        return

    table = Table(title=f"Validated {len(results)} claims")
    for column in ("Claim", "Status", "Confidence", "Routing", "Code"):
        table.add_column(column)
    for r in results:
        if r.ok:
            d = r.decision
            style = STATUS_STYLES.get(d.status, "")
            table.add_row(
                r.claim_id,
                Text(d.status.value, style=style),
                f"{d.confidence_score:.2f}",
                d.routing.processing_mode.value if d.routing else "-",
                d.error_code.value if d.error_code else "",
            )
        else:
            table.add_row(r.claim_id, Text(r.rejection["status"], style="red"), "", "-", r.rejection["code"])
    console.print(table)
