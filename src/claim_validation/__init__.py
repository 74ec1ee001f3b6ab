"""Claim Validation - guardrailed RAG decisions for insurance claims.

This package wraps a single generative coverage decision with threat
scanning, sensitive-data masking, citation checks, contradiction
analysis and business-rule routing, so that only policy-cited,
contradiction-free decisions are ever auto-approved or auto-denied.
"""

__version__ = "0.1.0"

from claim_validation.pipeline.orchestrator import ClaimValidationOrchestrator
from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimRequest,
    ClaimStatus,
    PolicyClause,
    PolicyType,
)

__all__ = [
    "ClaimDecision",
    "ClaimRequest",
    "ClaimStatus",
    "ClaimValidationOrchestrator",
    "PolicyClause",
    "PolicyType",
]
