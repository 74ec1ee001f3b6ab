"""
Pytest fixtures for claim validation tests.
Provides fake collaborators, sample policy evidence and a ledger in tmp_path.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import pytest

from claim_validation.config.settings import PipelineConfig, RetryConfig
from claim_validation.pipeline.orchestrator import ClaimValidationOrchestrator
from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimRequest,
    ClaimStatus,
    PolicyClause,
    PolicyType,
)
from claim_validation.services.audit_ledger import AuditLedger

TODAY = date(2024, 6, 1)


class FakeEmbedding:
    """Records embed calls; can fail a number of times first."""

    def __init__(self, failures: Sequence[Exception] = ()):
        self.calls: List[str] = []
        self.failures = list(failures)

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.failures:
            raise self.failures.pop(0)
        return [0.1, 0.2, 0.3]


class FakeRetrieval:
    def __init__(self, clauses: Sequence[PolicyClause] = (), failures: Sequence[Exception] = ()):
        self.clauses = list(clauses)
        self.calls: List[PolicyType] = []
        self.failures = list(failures)

    def retrieve(self, vector, policy_type: PolicyType) -> List[PolicyClause]:
        self.calls.append(policy_type)
        if self.failures:
            raise self.failures.pop(0)
        return list(self.clauses)


class FakeGenerator:
    """Returns a fixed decision (or raises a fixed error)."""

    def __init__(self, decision: Optional[ClaimDecision] = None, error: Optional[Exception] = None):
        self.decision = decision
        self.error = error
        self.calls: List[Dict] = []

    def generate(self, request, evidence, supporting_documents=None) -> ClaimDecision:
        self.calls.append({
            "request": request,
            "evidence": list(evidence),
            "supporting_documents": supporting_documents,
        })
        if self.error is not None:
            raise self.error
        return self.decision


class FakeExtraction:
    def __init__(self, documents: Optional[Dict[str, str]] = None):
        self.documents = documents or {}
        self.calls: List[str] = []

    def extract(self, document_id: str) -> str:
        self.calls.append(document_id)
        if document_id not in self.documents:
            raise FileNotFoundError(f"Document {document_id} not found")
        return self.documents[document_id]


class FailingAudit:
    def __init__(self):
        self.calls = 0

    def append(self, record):
        self.calls += 1
        raise IOError("disk full")


@pytest.fixture
def coverage_clause() -> PolicyClause:
    return PolicyClause(
        clause_id="motor_policy_001",
        text="Collision damage to the insured vehicle is covered up to a maximum of $5,000 per incident.",
        coverage_type="Collision",
        tags=["coverage"],
        score=0.91,
    )


@pytest.fixture
def exclusion_clause() -> PolicyClause:
    return PolicyClause(
        clause_id="motor_policy_007",
        text="EXCLUSION: Damage caused while racing or on a track day is not covered.",
        coverage_type="Exclusion",
        tags=["exclusion"],
        score=0.74,
    )


@pytest.fixture
def evidence(coverage_clause, exclusion_clause) -> List[PolicyClause]:
    return [coverage_clause, exclusion_clause]


@pytest.fixture
def claim_request() -> ClaimRequest:
    return ClaimRequest(
        claim_id="clm_test_001",
        policy_number="POL-2024-0042",
        policy_type=PolicyType.MOTOR,
        claim_amount=Decimal("400"),
        claim_description="Rear bumper dented in a parking lot collision with another car.",
        incident_date=date(2024, 5, 20),
        submission_date=date(2024, 5, 22),
    )


@pytest.fixture
def covered_decision() -> ClaimDecision:
    return ClaimDecision(
        status=ClaimStatus.COVERED,
        explanation="Collision damage is covered under [motor_policy_001] up to the stated limit.",
        clause_references=["motor_policy_001"],
        required_documents=["Repair estimate"],
        confidence_score=0.93,
    )


@pytest.fixture
def fast_config() -> PipelineConfig:
    """Default config with an instant retry budget."""
    return PipelineConfig(retry=RetryConfig(max_attempts=3, base_delay_seconds=0.0, timeout_seconds=5.0))


@pytest.fixture
def ledger(tmp_path) -> AuditLedger:
    return AuditLedger(tmp_path / "audit")


@pytest.fixture
def make_orchestrator(fast_config, ledger):
    """Build an orchestrator around fakes; override any collaborator by keyword."""

    def _make(
        *,
        decision: Optional[ClaimDecision] = None,
        clauses: Sequence[PolicyClause] = (),
        generator: Optional[FakeGenerator] = None,
        embedding: Optional[FakeEmbedding] = None,
        retrieval: Optional[FakeRetrieval] = None,
        extraction: Optional[FakeExtraction] = None,
        audit=None,
        config: Optional[PipelineConfig] = None,
        **kwargs,
    ) -> ClaimValidationOrchestrator:
        return ClaimValidationOrchestrator(
            embedding or FakeEmbedding(),
            retrieval or FakeRetrieval(clauses),
            generator or FakeGenerator(decision),
            extraction=extraction,
            audit=audit if audit is not None else ledger,
            history=ledger,
            config=config or fast_config,
            sleep=lambda _: None,
            today=lambda: TODAY,
            **kwargs,
        )

    return _make
