"""Pydantic models for claim routing.

Routing maps an already-guardrailed decision to the level of human
oversight it needs:
- AUTO_APPROVE / AUTO_DENY: no human approval (lowest tiers only for approve)
- MANUAL_REVIEW: adjuster review with one or more approvals
- EXECUTIVE_REVIEW: largest claims, executive sign-off

The most restrictive processing mode produced by any sub-policy wins.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ProcessingMode(str, Enum):
    """How a claim is processed after validation."""

    AUTO_APPROVE = "AutoApprove"
    AUTO_DENY = "AutoDeny"
    MANUAL_REVIEW = "ManualReview"
    EXECUTIVE_REVIEW = "ExecutiveReview"

    @property
    def restrictiveness(self) -> int:
        return _MODE_RANK[self]


_MODE_RANK = {
    ProcessingMode.AUTO_APPROVE: 0,
    ProcessingMode.AUTO_DENY: 0,
    ProcessingMode.MANUAL_REVIEW: 1,
    ProcessingMode.EXECUTIVE_REVIEW: 2,
}


class AmountTier(str, Enum):
    """Claim amount bucket."""

    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    VERY_HIGH = "VeryHigh"
    CRITICAL = "Critical"


class ReviewFlag(str, Enum):
    """Specialist reviews a rule can demand."""

    MEDICAL_REVIEW = "MedicalReview"
    LEGAL_REVIEW = "LegalReview"
    FRAUD_REVIEW = "FraudReview"


class RoutingDecision(BaseModel):
    """Business-rule routing outcome for a claim."""

    schema_version: str = Field(default="routing_decision_v1")
    tier: AmountTier = Field(description="Amount tier the claim fell into")
    processing_mode: ProcessingMode = Field(description="Final processing mode")
    required_approvals: int = Field(ge=0, description="Human approvals needed before payout")
    review_sla_hours: int = Field(ge=0, description="Review SLA in hours (0 for automatic modes)")
    additional_checks: List[str] = Field(
        default_factory=list,
        description="Extra checks the reviewer must complete",
    )
    confidence_threshold: Optional[float] = Field(
        default=None,
        description="Adjusted confidence threshold the decision was held to",
    )
    reasons: List[str] = Field(
        default_factory=list,
        description="Human-readable reasons for the processing mode",
    )
