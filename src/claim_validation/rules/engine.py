"""Business rule engine.

Evaluates all four sub-policies over a guardrail-passed decision and
merges their effects, most restrictive wins:

- dynamic confidence threshold  (``thresholds``)
- policy-type rules             (``policy_rules``)
- temporal validation           (``temporal``)
- fraud-risk scoring            (``fraud``)

then routes the result (``routing``).  Any forced-review reason moves
the status to ManualReview; the engine never moves a status away from
ManualReview.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from claim_validation.config.settings import PipelineConfig
from claim_validation.rules.fraud import FraudScorer
from claim_validation.rules.policy_rules import PolicyRuleOutcome, evaluate_policy_rules
from claim_validation.rules.routing import ClaimRouter
from claim_validation.rules.temporal import validate_dates
from claim_validation.rules.thresholds import confidence_rationale, dynamic_threshold
from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimRequest,
    ClaimStatus,
    PolicyClause,
    ValidationResult,
)
from claim_validation.schemas.fraud import (
    ClaimHistoryEntry,
    ExtractedClaimFields,
    FraudRiskAssessment,
)
from claim_validation.schemas.routing import ReviewFlag, RoutingDecision
from claim_validation.validation.citation_validator import HALLUCINATION_WARNING_PREFIX

logger = logging.getLogger(__name__)


@dataclass
class RuleOutcome:
    """Everything the engine decided about one claim."""

    decision: ClaimDecision
    routing: RoutingDecision
    fraud: FraudRiskAssessment
    temporal: ValidationResult
    policy: PolicyRuleOutcome
    confidence_threshold: float
    forced_review_reasons: List[str] = field(default_factory=list)

    @property
    def escalated(self) -> bool:
        return bool(self.forced_review_reasons)


def _merge_unique(*lists: Sequence) -> list:
    merged: list = []
    for items in lists:
        for item in items or []:
            if item not in merged:
                merged.append(item)
    return merged


def _language_warnings(warnings: Optional[Sequence[str]]) -> List[str]:
    return [
        w[len(HALLUCINATION_WARNING_PREFIX):]
        for w in warnings or []
        if w.startswith(HALLUCINATION_WARNING_PREFIX)
    ]


class BusinessRuleEngine:
    """Applies routing, thresholds, policy-type, temporal and fraud rules."""

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()
        self.router = ClaimRouter(self.config.routing)
        self.fraud_scorer = FraudScorer(self.config.fraud, self.config.routing)

    def apply(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        evidence: Sequence[PolicyClause],
        *,
        has_supporting_evidence: bool = False,
        history: Sequence[ClaimHistoryEntry] = (),
        extracted: Optional[ExtractedClaimFields] = None,
        today: Optional[date] = None,
    ) -> RuleOutcome:
        """Evaluate every sub-policy and return the merged outcome.

        Args:
            request: Claim request.
            decision: Decision after citation and contradiction checks.
            evidence: Clauses supplied to the generator.
            has_supporting_evidence: Whether supporting documents were provided.
            history: Recent claims on the same policy.
            extracted: Fields recovered from supporting documents.
            today: Reference date for temporal and frequency checks.

        Returns:
            RuleOutcome whose ``decision`` is a new value; the input is
            never modified.
        """
        threshold = dynamic_threshold(
            decision.status,
            request.claim_amount,
            len(decision.clause_references),
            has_supporting_evidence,
            self.config.confidence,
        )
        policy = evaluate_policy_rules(request, decision)
        temporal = validate_dates(request, self.config.temporal, today=today)
        fraud = self.fraud_scorer.assess(request, history, extracted, today=today)

        forced: List[str] = []
        if decision.status in (ClaimStatus.COVERED, ClaimStatus.NOT_COVERED, ClaimStatus.DENIED):
            if decision.confidence_score < threshold:
                forced.append(
                    f"Confidence {decision.confidence_score:.2f} below required {threshold:.2f}"
                )
        if policy.force_manual_review:
            forced.extend(policy.reasons)
        forced.extend(temporal.errors)
        if fraud.forces_manual_review:
            forced.append(f"Fraud risk {fraud.risk_level.value} ({fraud.risk_score:.2f})")

        routing = self.router.evaluate(
            claim_amount=request.claim_amount,
            decision=decision,
            evidence=evidence,
            has_supporting_evidence=has_supporting_evidence,
            confidence_threshold=threshold,
            forced_review_reasons=forced,
        )

        review_flags = list(policy.review_flags)
        if fraud.forces_manual_review and ReviewFlag.FRAUD_REVIEW not in review_flags:
            review_flags.append(ReviewFlag.FRAUD_REVIEW)

        status = decision.status
        if forced and status in (ClaimStatus.COVERED, ClaimStatus.NOT_COVERED, ClaimStatus.DENIED):
            logger.warning(
                f"Claim {request.claim_id}: {status.value} -> ManualReview by business rules "
                f"({len(forced)} reason(s))"
            )
            status = ClaimStatus.MANUAL_REVIEW

        warnings = _merge_unique(decision.validation_warnings, temporal.warnings, forced)
        updated = decision.model_copy(update={
            "status": status,
            "required_documents": _merge_unique(decision.required_documents, policy.required_documents),
            "review_flags": _merge_unique(decision.review_flags, review_flags),
            "validation_warnings": warnings or None,
            "confidence_rationale": confidence_rationale(
                decision.confidence_score, threshold, _language_warnings(decision.validation_warnings)
            ),
            "routing": routing,
            "fraud_risk": fraud,
        })

        return RuleOutcome(
            decision=updated,
            routing=routing,
            fraud=fraud,
            temporal=temporal,
            policy=policy,
            confidence_threshold=threshold,
            forced_review_reasons=forced,
        )
