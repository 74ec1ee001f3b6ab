"""Pydantic models for claim requests, policy evidence and decisions.

Every model that flows through the validation pipeline is frozen.  Stages
never mutate a decision in place; they produce a replacement with
``model_copy(update=...)`` so a half-applied stage can never leak out.
"""

import re
import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from claim_validation.schemas.fraud import FraudRiskAssessment
from claim_validation.schemas.routing import ReviewFlag, RoutingDecision
from claim_validation.schemas.run_errors import ErrorCode

# ── Clause language ──────────────────────────────────────────────────

EXCLUSION_LANGUAGE = re.compile(
    r"\bexclu(?:sion|sions|ded|des)\b|\bnot\s+covered\b|\bdoes\s+not\s+cover\b|\bnot\s+eligible\b",
    re.IGNORECASE,
)


def generate_claim_id() -> str:
    """Generate a claim identifier for requests submitted without one."""
    return f"clm_{uuid.uuid4().hex[:12]}"


# ── Enums ────────────────────────────────────────────────────────────


class PolicyType(str, Enum):
    """Line of business a policy belongs to."""

    MOTOR = "Motor"
    HOME = "Home"
    HEALTH = "Health"
    LIFE = "Life"
    DENTAL = "Dental"
    VISION = "Vision"
    DISABILITY = "Disability"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class ClaimStatus(str, Enum):
    """Decision status of a claim."""

    COVERED = "Covered"
    NOT_COVERED = "NotCovered"
    DENIED = "Denied"
    MANUAL_REVIEW = "ManualReview"
    ERROR = "Error"

    @classmethod
    def _missing_(cls, value):
        # Generators answer "Not Covered", "manual review", "MANUAL_REVIEW"...
        if isinstance(value, str):
            key = re.sub(r"[\s_-]+", "", value).lower()
            for member in cls:
                if member.value.lower() == key:
                    return member
        return None


class ContradictionSeverity(str, Enum):
    """How serious a detected contradiction is."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    ContradictionSeverity.LOW: 1,
    ContradictionSeverity.MEDIUM: 2,
    ContradictionSeverity.HIGH: 3,
    ContradictionSeverity.CRITICAL: 4,
}


# ── Inputs ───────────────────────────────────────────────────────────


class ClaimRequest(BaseModel):
    """Immutable claim submitted for validation."""

    model_config = ConfigDict(frozen=True)

    policy_number: str = Field(min_length=1, description="Policy number the claim is filed against")
    policy_type: PolicyType = Field(default=PolicyType.MOTOR, description="Line of business")
    claim_amount: Decimal = Field(ge=0, description="Claimed amount in policy currency")
    claim_description: str = Field(description="Free-text description of the incident")
    claim_id: str = Field(default_factory=generate_claim_id, description="Claim identifier")
    incident_date: Optional[date] = Field(default=None, description="Date the loss occurred")
    submission_date: Optional[date] = Field(default=None, description="Date the claim was filed")
    policy_start_date: Optional[date] = Field(default=None, description="Start of the policy period")
    policy_end_date: Optional[date] = Field(default=None, description="End of the policy period")


class PolicyClause(BaseModel):
    """One retrieved unit of policy evidence."""

    model_config = ConfigDict(frozen=True)

    clause_id: str = Field(min_length=1, description="Unique clause identifier, e.g. 'health_policy_004'")
    text: str = Field(description="Full clause text")
    coverage_type: str = Field(default="", description="Coverage the clause relates to")
    tags: List[str] = Field(default_factory=list, description="Section / coverage tags")
    score: float = Field(default=0.0, ge=0.0, le=1.0, description="Retrieval relevance score")

    @property
    def is_exclusion(self) -> bool:
        """True when the clause excludes rather than grants coverage."""
        labels = [self.coverage_type, *self.tags]
        if any("exclu" in label.lower() for label in labels):
            return True
        return bool(EXCLUSION_LANGUAGE.search(self.text))


class ClaimDecisionUpdate(BaseModel):
    """Specialist override of a pipeline decision."""

    claim_id: str
    new_status: ClaimStatus
    specialist_notes: str = ""
    specialist_id: str = Field(min_length=1)


# ── Stage outputs ────────────────────────────────────────────────────


class ValidationResult(BaseModel):
    """Verdict of a single guardrail invocation."""

    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class Contradiction(BaseModel):
    """A logical conflict between decision, evidence and request."""

    model_config = ConfigDict(frozen=True)

    source_a: str
    source_b: str
    description: str
    impact: str
    severity: ContradictionSeverity = ContradictionSeverity.MEDIUM

    @property
    def is_critical(self) -> bool:
        return self.severity in (ContradictionSeverity.HIGH, ContradictionSeverity.CRITICAL)

    def summary(self) -> str:
        return (
            f"[{self.severity.value}] {self.description} - {self.source_a} conflicts with "
            f"{self.source_b}. Impact: {self.impact}"
        )


class ClaimDecision(BaseModel):
    """Pipeline output for one claim."""

    model_config = ConfigDict(frozen=True)

    status: ClaimStatus
    explanation: str = ""
    clause_references: List[str] = Field(default_factory=list)
    required_documents: List[str] = Field(default_factory=list)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    contradictions: Optional[List[Contradiction]] = None
    missing_evidence: Optional[List[str]] = None
    validation_warnings: Optional[List[str]] = None
    confidence_rationale: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    review_flags: List[ReviewFlag] = Field(default_factory=list)
    routing: Optional[RoutingDecision] = None
    fraud_risk: Optional[FraudRiskAssessment] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str) and not isinstance(v, ClaimStatus):
            return ClaimStatus(v)
        return v

    @property
    def has_critical_contradictions(self) -> bool:
        return any(c.is_critical for c in self.contradictions or [])

    @classmethod
    def manual_review(
        cls,
        explanation: str,
        *,
        error_code: Optional[ErrorCode] = None,
        required_documents: Optional[List[str]] = None,
        missing_evidence: Optional[List[str]] = None,
        validation_warnings: Optional[List[str]] = None,
    ) -> "ClaimDecision":
        """Build a zero-confidence ManualReview decision."""
        return cls(
            status=ClaimStatus.MANUAL_REVIEW,
            explanation=explanation,
            required_documents=required_documents or [],
            confidence_score=0.0,
            missing_evidence=missing_evidence,
            validation_warnings=validation_warnings,
            error_code=error_code,
        )
