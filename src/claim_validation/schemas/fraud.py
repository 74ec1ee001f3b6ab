"""Pydantic models for fraud-risk scoring."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class RiskLevel(str, Enum):
    """Qualitative band derived from the fraud score."""

    MINIMAL = "Minimal"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class RiskFactor(BaseModel):
    """A single fired fraud signal and its weight."""

    name: str = Field(description="Signal name, e.g. 'round_amount'")
    weight: float = Field(ge=0.0, description="Contribution to the risk score")
    detail: str = Field(default="", description="Why the signal fired")


class FraudRiskAssessment(BaseModel):
    """Fraud-scoring output for one claim."""

    risk_score: float = Field(ge=0.0, le=1.0)
    risk_level: RiskLevel
    factors: List[RiskFactor] = Field(default_factory=list)

    @property
    def forces_manual_review(self) -> bool:
        return self.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)


class ClaimHistoryEntry(BaseModel):
    """A previously submitted claim on the same policy (read-only snapshot)."""

    claim_id: str
    policy_number: str
    claim_amount: Decimal
    submitted_at: date
    status: Optional[str] = None


class ExtractedClaimFields(BaseModel):
    """Claim fields recovered from supporting documents."""

    policy_number: Optional[str] = None
    claim_amount: Optional[Decimal] = None
