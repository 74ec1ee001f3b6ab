"""Per-run validation context and pipeline state machine.

One ``ValidationContext`` is created per ``validate_claim`` call and owned
exclusively by that call.  It records the state trail and the stage
results written to the audit ledger, and enforces the monotonic-downgrade
rule: once a run has been moved to ManualReview no later stage may move
it back to Covered, NotCovered or Denied.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from claim_validation.exceptions import InvalidStateTransitionError, ValidationCancelledError
from claim_validation.schemas.audit_record import StageRecord
from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimRequest,
    ClaimStatus,
    PolicyClause,
    ValidationResult,
)
from claim_validation.schemas.run_errors import PipelineState

logger = logging.getLogger(__name__)

S = PipelineState

ALLOWED_TRANSITIONS: Dict[PipelineState, frozenset] = {
    S.RECEIVED: frozenset({S.THREAT_CHECKED, S.REJECTED}),
    S.THREAT_CHECKED: frozenset({S.EMBEDDED, S.ERRORED}),
    S.EMBEDDED: frozenset({S.RETRIEVED, S.ERRORED}),
    # Empty retrieval skips generation and goes straight to redaction
    S.RETRIEVED: frozenset({S.GENERATED, S.REDACTED, S.ERRORED}),
    S.GENERATED: frozenset({S.CITATION_CHECKED}),
    S.CITATION_CHECKED: frozenset({S.CONTRADICTION_CHECKED}),
    S.CONTRADICTION_CHECKED: frozenset({S.RULE_APPLIED}),
    S.RULE_APPLIED: frozenset({S.REDACTED}),
    S.REDACTED: frozenset({S.AUDITED}),
    S.AUDITED: frozenset({S.DONE}),
    S.DONE: frozenset(),
    S.REJECTED: frozenset(),
    S.ERRORED: frozenset(),
}

TERMINAL_STATES = frozenset({S.DONE, S.REJECTED, S.ERRORED})

_DEFINITE_STATUSES = (ClaimStatus.COVERED, ClaimStatus.NOT_COVERED, ClaimStatus.DENIED)


@dataclass
class ValidationContext:
    """Mutable context passed between pipeline stages of a single run."""

    request: ClaimRequest
    supporting_document_ids: List[str] = field(default_factory=list)
    cancel_event: Optional[threading.Event] = None

    state: PipelineState = PipelineState.RECEIVED
    state_history: List[str] = field(default_factory=lambda: [PipelineState.RECEIVED.value])
    stages: List[StageRecord] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.utcnow)

    # Set by retrieval / extraction
    evidence: List[PolicyClause] = field(default_factory=list)
    supporting_docs: Dict[str, str] = field(default_factory=dict)

    # Current decision; replaced (never mutated) by each stage
    decision: Optional[ClaimDecision] = None
    downgraded: bool = False

    # Progress callback: (state, stage_record) -> None
    on_stage_update: Optional[Callable[[PipelineState, StageRecord], None]] = None

    @property
    def claim_id(self) -> str:
        return self.request.claim_id

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, target: PipelineState) -> None:
        """Move to ``target``.

        Raises:
            InvalidStateTransitionError: If the move is not an edge of the
                state machine.
        """
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransitionError(self.state.value, target.value)
        logger.debug(f"Claim {self.claim_id}: {self.state.value} -> {target.value}")
        self.state = target
        self.state_history.append(target.value)

    def record_stage(
        self,
        result: Optional[ValidationResult] = None,
        detail: Optional[Dict[str, Any]] = None,
    ) -> StageRecord:
        """Record the outcome of the stage that produced the current state."""
        record = StageRecord(
            state=self.state.value,
            valid=result.valid if result is not None else True,
            errors=list(result.errors) if result is not None else [],
            warnings=list(result.warnings) if result is not None else [],
            detail=dict(detail or {}),
        )
        self.stages.append(record)
        self.notify_stage_update(record)
        return record

    def notify_stage_update(self, record: StageRecord) -> None:
        if self.on_stage_update:
            try:
                self.on_stage_update(self.state, record)
            except Exception as e:
                logger.warning(f"Stage update callback failed: {e}")

    def check_cancelled(self) -> None:
        """Raise at a suspension point if the caller cancelled the run."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            logger.info(f"Claim {self.claim_id}: cancelled in state {self.state.value}")
            raise ValidationCancelledError(f"Validation of claim {self.claim_id} was cancelled")

    def apply_decision(self, decision: ClaimDecision) -> ClaimDecision:
        """Replace the current decision, holding any earlier downgrade.

        A run that has already been moved to ManualReview keeps that
        status even if a later stage proposes a definite one.
        """
        if decision.status == ClaimStatus.MANUAL_REVIEW:
            self.downgraded = True
        elif self.downgraded and decision.status in _DEFINITE_STATUSES:
            logger.warning(
                f"Claim {self.claim_id}: kept ManualReview, stage in {self.state.value} "
                f"proposed {decision.status.value}"
            )
            decision = decision.model_copy(update={"status": ClaimStatus.MANUAL_REVIEW})
        self.decision = decision
        return decision

    @property
    def elapsed_ms(self) -> int:
        return int((datetime.utcnow() - self.start_time).total_seconds() * 1000)
