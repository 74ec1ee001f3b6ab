"""Business rules: thresholds, routing, policy-type, temporal and fraud rules."""

from claim_validation.rules.engine import BusinessRuleEngine, RuleOutcome
from claim_validation.rules.fraud import FraudScorer, extract_claim_fields
from claim_validation.rules.routing import ClaimRouter, tier_for_amount
from claim_validation.rules.thresholds import dynamic_threshold

__all__ = [
    "BusinessRuleEngine",
    "ClaimRouter",
    "FraudScorer",
    "RuleOutcome",
    "dynamic_threshold",
    "extract_claim_fields",
    "tier_for_amount",
]
