"""Unit tests for the per-run validation context and state machine."""

import threading

import pytest

from claim_validation.exceptions import InvalidStateTransitionError, ValidationCancelledError
from claim_validation.pipeline.context import ALLOWED_TRANSITIONS, TERMINAL_STATES, ValidationContext
from claim_validation.schemas.claim import ClaimStatus, ValidationResult
from claim_validation.schemas.run_errors import PipelineState as S

HAPPY_PATH = [
    S.THREAT_CHECKED,
    S.EMBEDDED,
    S.RETRIEVED,
    S.GENERATED,
    S.CITATION_CHECKED,
    S.CONTRADICTION_CHECKED,
    S.RULE_APPLIED,
    S.REDACTED,
    S.AUDITED,
    S.DONE,
]


@pytest.fixture
def ctx(claim_request):
    return ValidationContext(request=claim_request)


class TestTransitions:
    """Only edges of the state machine are allowed."""

    def test_happy_path(self, ctx):
        for state in HAPPY_PATH:
            ctx.transition(state)
        assert ctx.state == S.DONE
        assert ctx.is_terminal
        assert ctx.state_history == ["Received"] + [s.value for s in HAPPY_PATH]

    def test_evidence_gap_skips_generation(self, ctx):
        for state in (S.THREAT_CHECKED, S.EMBEDDED, S.RETRIEVED, S.REDACTED):
            ctx.transition(state)
        assert ctx.state == S.REDACTED

    def test_skipping_a_stage_is_rejected(self, ctx):
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            ctx.transition(S.GENERATED)
        assert str(exc_info.value) == "Invalid pipeline transition Received -> Generated"
        assert ctx.state == S.RECEIVED

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, terminal):
        assert ALLOWED_TRANSITIONS[terminal] == frozenset()

    def test_rejected_is_terminal(self, ctx):
        ctx.transition(S.REJECTED)
        with pytest.raises(InvalidStateTransitionError):
            ctx.transition(S.THREAT_CHECKED)

    def test_validation_stages_cannot_error(self, ctx):
        for state in HAPPY_PATH[:4]:
            ctx.transition(state)
        with pytest.raises(InvalidStateTransitionError):
            ctx.transition(S.ERRORED)


class TestStageRecords:
    """Stage results kept for the audit record."""

    def test_record_stage(self, ctx):
        ctx.transition(S.THREAT_CHECKED)
        record = ctx.record_stage(ValidationResult(valid=True, warnings=["short"]), {"k": 1})
        assert record.state == "ThreatChecked"
        assert record.valid is True
        assert record.warnings == ["short"]
        assert record.detail == {"k": 1}
        assert ctx.stages == [record]

    def test_callback_receives_updates(self, ctx):
        seen = []
        ctx.on_stage_update = lambda state, record: seen.append((state, record.state))
        ctx.transition(S.THREAT_CHECKED)
        ctx.record_stage()
        assert seen == [(S.THREAT_CHECKED, "ThreatChecked")]

    def test_callback_failure_does_not_break_run(self, ctx):
        def boom(state, record):
            raise RuntimeError("ui gone")

        ctx.on_stage_update = boom
        ctx.record_stage()
        assert len(ctx.stages) == 1


class TestCancellation:
    def test_check_cancelled(self, claim_request):
        event = threading.Event()
        ctx = ValidationContext(request=claim_request, cancel_event=event)
        ctx.check_cancelled()
        event.set()
        with pytest.raises(ValidationCancelledError):
            ctx.check_cancelled()


class TestMonotonicDowngrade:
    """Once in ManualReview, a run stays there."""

    def test_definite_status_after_downgrade_is_held(self, ctx, covered_decision):
        ctx.apply_decision(covered_decision.model_copy(update={"status": ClaimStatus.MANUAL_REVIEW}))
        held = ctx.apply_decision(covered_decision)
        assert held.status == ClaimStatus.MANUAL_REVIEW
        assert ctx.decision.status == ClaimStatus.MANUAL_REVIEW
        assert ctx.downgraded is True

    def test_definite_status_without_downgrade(self, ctx, covered_decision):
        assert ctx.apply_decision(covered_decision).status == ClaimStatus.COVERED
        assert ctx.downgraded is False
