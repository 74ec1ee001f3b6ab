"""Pydantic schemas for claim validation."""

from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimDecisionUpdate,
    ClaimRequest,
    ClaimStatus,
    Contradiction,
    ContradictionSeverity,
    PolicyClause,
    PolicyType,
    ValidationResult,
)
from claim_validation.schemas.fraud import (
    ClaimHistoryEntry,
    ExtractedClaimFields,
    FraudRiskAssessment,
    RiskFactor,
    RiskLevel,
)
from claim_validation.schemas.routing import (
    AmountTier,
    ProcessingMode,
    ReviewFlag,
    RoutingDecision,
)
from claim_validation.schemas.run_errors import ErrorCode, PipelineState

__all__ = [
    "AmountTier",
    "ClaimDecision",
    "ClaimDecisionUpdate",
    "ClaimHistoryEntry",
    "ClaimRequest",
    "ClaimStatus",
    "Contradiction",
    "ContradictionSeverity",
    "ErrorCode",
    "ExtractedClaimFields",
    "FraudRiskAssessment",
    "PipelineState",
    "PolicyClause",
    "PolicyType",
    "ProcessingMode",
    "ReviewFlag",
    "RiskFactor",
    "RiskLevel",
    "RoutingDecision",
    "ValidationResult",
]
