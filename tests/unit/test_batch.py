"""Unit tests for concurrent batch validation."""

import threading

import pytest

from claim_validation.config.settings import RateLimitConfig
from claim_validation.pipeline.batch import BatchItem, validate_claims
from claim_validation.schemas.claim import ClaimStatus

from tests.conftest import FakeGenerator


class SlowGenerator(FakeGenerator):
    """Blocks the first claim until the others have finished."""

    def __init__(self, decision, release: threading.Event):
        super().__init__(decision)
        self.release = release

    def generate(self, request, evidence, supporting_documents=None):
        if request.claim_id == "clm_0":
            self.release.wait(5)
        return super().generate(request, evidence, supporting_documents)


def _items(claim_request, n):
    return [
        BatchItem(request=claim_request.model_copy(update={"claim_id": f"clm_{i}"}))
        for i in range(n)
    ]


class TestValidateClaims:
    """Worker-per-request dispatch."""

    def test_empty(self, make_orchestrator):
        assert validate_claims(make_orchestrator(), []) == []

    def test_results_in_input_order(self, make_orchestrator, claim_request, covered_decision, coverage_clause):
        release = threading.Event()
        progress = []

        def on_progress(n):
            progress.append(n)
            if len(progress) == 4:
                release.set()

        orchestrator = make_orchestrator(
            generator=SlowGenerator(covered_decision, release), clauses=[coverage_clause]
        )
        results = validate_claims(orchestrator, _items(claim_request, 5), max_workers=5, on_progress=on_progress)

        assert [r.claim_id for r in results] == [f"clm_{i}" for i in range(5)]
        assert all(r.ok and r.decision.status == ClaimStatus.COVERED for r in results)
        assert sum(progress) == 5

    def test_rejections_reported_per_item(self, make_orchestrator, claim_request, covered_decision,
                                          coverage_clause):
        items = _items(claim_request, 2)
        items[1] = BatchItem(request=items[1].request.model_copy(update={
            "claim_description": "<script>alert('x')</script> my car was scratched",
        }))
        results = validate_claims(
            make_orchestrator(decision=covered_decision, clauses=[coverage_clause]), items
        )

        assert results[0].ok
        assert results[1].ok is False
        assert results[1].rejection["code"] == "SECURITY_VIOLATION"
        assert "code_injection" in results[1].rejection["reasons"]

    def test_rate_limit_shared_across_batch(self, make_orchestrator, claim_request, covered_decision,
                                            coverage_clause, fast_config):
        config = fast_config.model_copy(update={"rate_limit": RateLimitConfig(max_requests=3, window_seconds=600)})
        orchestrator = make_orchestrator(decision=covered_decision, clauses=[coverage_clause], config=config)
        results = validate_claims(orchestrator, _items(claim_request, 5), caller_id="batch")

        assert sum(r.ok for r in results) == 3
        assert [r.rejection["code"] for r in results if not r.ok] == ["RATE_LIMIT_EXCEEDED"] * 2

    def test_cancelled_batch(self, make_orchestrator, claim_request, covered_decision, coverage_clause):
        event = threading.Event()
        event.set()
        results = validate_claims(
            make_orchestrator(decision=covered_decision, clauses=[coverage_clause]),
            _items(claim_request, 3),
            cancel_event=event,
        )
        assert all(r.rejection["status"] == "Cancelled" for r in results)
        assert all(r.rejection["code"] == "CANCELLED" for r in results)

    def test_unexpected_error_becomes_error_decision(self, make_orchestrator, claim_request):
        class ExplodingOrchestrator:
            def validate_claim(self, *args, **kwargs):
                raise RuntimeError("bug")

        results = validate_claims(ExplodingOrchestrator(), _items(claim_request, 1))
        assert results[0].decision.status == ClaimStatus.ERROR
        assert results[0].decision.error_code.value == "SERVICE_FAILURE"
