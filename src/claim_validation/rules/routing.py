"""Tiered amount routing.

Buckets the claim amount into a tier and picks the processing mode:

    Tier       Amount       Mode              Approvals  SLA
    Low        < 500        auto-approvable   1          24h
    Moderate   < 2,000      auto-approvable   1          48h
    High       < 10,000     ManualReview      1          72h
    VeryHigh   < 50,000     ManualReview      2          120h
    Critical   >= 50,000    ExecutiveReview   3          168h

AutoApprove needs: an auto-approvable tier, status Covered, confidence at
or above both the tier threshold and the dynamic threshold, and
supporting evidence.  AutoDeny needs: status NotCovered, confidence at or
above ``auto_deny_min_confidence`` and a cited exclusion clause; it is
never used for ExecutiveReview tiers.  Any forced-review reason removes
both automatic modes.

Tier bounds and thresholds come from ``RoutingConfig``.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from claim_validation.config.settings import RoutingConfig, TierConfig
from claim_validation.schemas.claim import ClaimDecision, ClaimStatus, PolicyClause
from claim_validation.schemas.routing import ProcessingMode, RoutingDecision

logger = logging.getLogger(__name__)


def tier_for_amount(amount: Decimal, config: RoutingConfig) -> TierConfig:
    """First tier whose exclusive upper bound exceeds the amount."""
    for tier in config.tiers:
        if tier.upper_bound is None or amount < tier.upper_bound:
            return tier
    return config.tiers[-1]


class ClaimRouter:
    """Routes a validated decision to its processing mode."""

    def __init__(self, config: Optional[RoutingConfig] = None) -> None:
        self.config = config or RoutingConfig()

    def evaluate(
        self,
        *,
        claim_amount: Decimal,
        decision: ClaimDecision,
        evidence: Sequence[PolicyClause] = (),
        has_supporting_evidence: bool = False,
        confidence_threshold: float = 0.0,
        forced_review_reasons: Sequence[str] = (),
    ) -> RoutingDecision:
        """Produce the routing decision for a claim.

        Args:
            claim_amount: Claimed amount.
            decision: Decision after guardrails.
            evidence: Clauses supplied to the generator.
            has_supporting_evidence: Whether supporting documents were provided.
            confidence_threshold: Dynamic threshold for this decision.
            forced_review_reasons: Reasons other rules demand a human review.

        Returns:
            RoutingDecision with tier, mode, approvals, SLA and reasons.
        """
        tier = tier_for_amount(claim_amount, self.config)
        confidence = decision.confidence_score
        reasons: List[str] = [f"Amount {claim_amount:,.2f} falls in {tier.tier.value} tier"]
        reasons.extend(forced_review_reasons)

        mode = tier.processing_mode
        if not forced_review_reasons:
            if self._can_auto_approve(tier, decision, has_supporting_evidence, confidence_threshold):
                mode = ProcessingMode.AUTO_APPROVE
                reasons.append(
                    f"Covered with confidence {confidence:.2f} >= "
                    f"{max(tier.auto_approve_threshold, confidence_threshold):.2f} and supporting evidence"
                )
            elif self._can_auto_deny(tier, decision, evidence):
                mode = ProcessingMode.AUTO_DENY
                reasons.append(
                    f"NotCovered with confidence {confidence:.2f} >= "
                    f"{self.config.auto_deny_min_confidence:.2f} and cited exclusion"
                )

        if mode in (ProcessingMode.AUTO_APPROVE, ProcessingMode.AUTO_DENY):
            approvals, sla = 0, 0
        else:
            approvals, sla = tier.required_approvals, tier.review_sla_hours

        logger.debug(f"Routing: tier={tier.tier.value} mode={mode.value} approvals={approvals}")
        return RoutingDecision(
            tier=tier.tier,
            processing_mode=mode,
            required_approvals=approvals,
            review_sla_hours=sla,
            additional_checks=list(tier.additional_checks),
            confidence_threshold=confidence_threshold,
            reasons=reasons,
        )

    # ── Automatic modes ──────────────────────────────────────────────

    @staticmethod
    def _can_auto_approve(
        tier: TierConfig,
        decision: ClaimDecision,
        has_supporting_evidence: bool,
        confidence_threshold: float,
    ) -> bool:
        if tier.auto_approve_threshold is None:
            return False
        if decision.status != ClaimStatus.COVERED or not decision.clause_references:
            return False
        required = max(tier.auto_approve_threshold, confidence_threshold)
        return has_supporting_evidence and decision.confidence_score >= required

    def _can_auto_deny(
        self,
        tier: TierConfig,
        decision: ClaimDecision,
        evidence: Sequence[PolicyClause],
    ) -> bool:
        if tier.processing_mode == ProcessingMode.EXECUTIVE_REVIEW:
            return False
        if decision.status != ClaimStatus.NOT_COVERED:
            return False
        if decision.confidence_score < self.config.auto_deny_min_confidence:
            return False
        cited = set(decision.clause_references)
        return any(c.is_exclusion for c in evidence if c.clause_id in cited)
