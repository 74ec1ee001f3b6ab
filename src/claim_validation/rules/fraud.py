"""Fraud-risk scoring.

Weighted sum over independent signals, capped at 1.0:

    claim_frequency          >= 3 claims on the policy in the trailing 90 days
    round_amount             amount is a multiple of 1,000
    near_approval_threshold  amount within 5% below a routing tier bound
    escalating_amounts       recent amounts strictly increasing, this one higher still
    vague_description        fewer than 6 words
    overlong_description     more than 3,000 characters
    suspicious_phrase        per phrase, total capped at 0.20
    policy_number_mismatch   documents name a different policy number
    amount_mismatch          documents state an amount > 10% away from the claim

Score cut-offs map to risk levels Minimal -> Critical.  High and Critical
force manual review.
"""

import logging
import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from claim_validation.config.settings import FraudConfig, RoutingConfig
from claim_validation.schemas.claim import ClaimRequest
from claim_validation.schemas.fraud import (
    ClaimHistoryEntry,
    ExtractedClaimFields,
    FraudRiskAssessment,
    RiskFactor,
    RiskLevel,
)
from claim_validation.utils.number_parsing import largest_amount

logger = logging.getLogger(__name__)

POLICY_NUMBER_IN_TEXT = re.compile(
    r"\bpolicy\s*(?:number|no\.?|#)\s*[:#]?\s*([A-Z0-9][A-Z0-9-]{3,})",
    re.IGNORECASE,
)

_LEVEL_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


def _normalize_policy_number(value: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", value.upper())


def extract_claim_fields(document_texts: Iterable[str]) -> ExtractedClaimFields:
    """Recover the policy number and claimed total from document text.

    The first policy number found wins; the amount is the largest
    currency figure across all documents.
    """
    policy_number = None
    amount: Optional[Decimal] = None
    for text in document_texts:
        if policy_number is None:
            match = POLICY_NUMBER_IN_TEXT.search(text or "")
            if match:
                policy_number = match.group(1)
        total = largest_amount(text or "")
        if total is not None and (amount is None or total > amount):
            amount = total
    return ExtractedClaimFields(policy_number=policy_number, claim_amount=amount)


def risk_level_for(score: float, config: FraudConfig) -> RiskLevel:
    level = RiskLevel.MINIMAL
    for candidate in _LEVEL_ORDER:
        cutoff = config.level_cutoffs.get(candidate.value)
        if cutoff is not None and score >= cutoff:
            level = candidate
    return level


class FraudScorer:
    """Scores a claim's fraud risk from the request, history and documents."""

    def __init__(
        self,
        config: Optional[FraudConfig] = None,
        routing: Optional[RoutingConfig] = None,
    ) -> None:
        self.config = config or FraudConfig()
        self.routing = routing or RoutingConfig()

    def assess(
        self,
        request: ClaimRequest,
        history: Sequence[ClaimHistoryEntry] = (),
        extracted: Optional[ExtractedClaimFields] = None,
        today: Optional[date] = None,
    ) -> FraudRiskAssessment:
        """Score one claim.

        Args:
            request: Claim being validated.
            history: Earlier claims on the same policy (read-only snapshot).
            extracted: Fields recovered from supporting documents, if any.
            today: Reference date for the frequency window.

        Returns:
            FraudRiskAssessment with every fired factor.
        """
        today = request.submission_date or today or date.today()
        history = [h for h in history if h.claim_id != request.claim_id]
        factors: List[RiskFactor] = []

        for check in (
            self._claim_frequency(history, today),
            self._round_amount(request.claim_amount),
            self._near_approval_threshold(request.claim_amount),
            self._escalating_amounts(request.claim_amount, history),
            self._description_length(request.claim_description),
            self._suspicious_phrases(request.claim_description),
        ):
            if check is not None:
                factors.append(check)

        if extracted is not None:
            factors.extend(self._extraction_mismatch(request, extracted))

        score = min(1.0, round(sum(f.weight for f in factors), 4))
        level = risk_level_for(score, self.config)
        if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            logger.warning(
                f"Claim {request.claim_id}: fraud risk {level.value} ({score:.2f}) "
                f"from {', '.join(f.name for f in factors)}"
            )
        return FraudRiskAssessment(risk_score=score, risk_level=level, factors=factors)

    # ── Signals ──────────────────────────────────────────────────────

    def _weight(self, name: str) -> float:
        return self.config.weights.get(name, 0.0)

    def _claim_frequency(self, history: Sequence[ClaimHistoryEntry], today: date) -> Optional[RiskFactor]:
        since = today - timedelta(days=self.config.history_window_days)
        recent = [h for h in history if since <= h.submitted_at <= today]
        # The current claim counts toward the frequency
        count = len(recent) + 1
        if count < self.config.frequency_threshold:
            return None
        return RiskFactor(
            name="claim_frequency",
            weight=self._weight("claim_frequency"),
            detail=f"{count} claims on this policy in the last {self.config.history_window_days} days",
        )

    def _round_amount(self, amount: Decimal) -> Optional[RiskFactor]:
        unit = self.config.round_amount_unit
        if amount <= 0 or unit <= 0 or amount % unit != 0:
            return None
        return RiskFactor(
            name="round_amount",
            weight=self._weight("round_amount"),
            detail=f"Amount is an exact multiple of {unit:,}",
        )

    def _near_approval_threshold(self, amount: Decimal) -> Optional[RiskFactor]:
        margin = Decimal(str(self.config.near_threshold_margin))
        for tier in self.routing.tiers:
            bound = tier.upper_bound
            if bound is None:
                continue
            if bound * (1 - margin) <= amount < bound:
                return RiskFactor(
                    name="near_approval_threshold",
                    weight=self._weight("near_approval_threshold"),
                    detail=f"Amount just below the {tier.tier.value} tier bound of {bound:,}",
                )
        return None

    def _escalating_amounts(
        self, amount: Decimal, history: Sequence[ClaimHistoryEntry]
    ) -> Optional[RiskFactor]:
        ordered = sorted(history, key=lambda h: h.submitted_at)[-3:]
        if len(ordered) < 3:
            return None
        amounts = [h.claim_amount for h in ordered] + [amount]
        if all(a < b for a, b in zip(amounts, amounts[1:])):
            return RiskFactor(
                name="escalating_amounts",
                weight=self._weight("escalating_amounts"),
                detail="Claim amounts have increased with every recent claim",
            )
        return None

    def _description_length(self, description: str) -> Optional[RiskFactor]:
        words = len(description.split())
        if words < self.config.vague_description_min_words:
            return RiskFactor(
                name="vague_description",
                weight=self._weight("vague_description"),
                detail=f"Description has only {words} word(s)",
            )
        if len(description) > self.config.overlong_description_chars:
            return RiskFactor(
                name="overlong_description",
                weight=self._weight("overlong_description"),
                detail=f"Description is {len(description)} characters long",
            )
        return None

    def _suspicious_phrases(self, description: str) -> Optional[RiskFactor]:
        lowered = description.lower()
        matched = [p for p in self.config.suspicious_phrases if p.lower() in lowered]
        if not matched:
            return None
        weight = min(self.config.max_phrase_weight, self._weight("suspicious_phrase") * len(matched))
        return RiskFactor(
            name="suspicious_phrase",
            weight=weight,
            detail=f"Suspicious phrase(s): {', '.join(matched)}",
        )

    def _extraction_mismatch(
        self, request: ClaimRequest, extracted: ExtractedClaimFields
    ) -> List[RiskFactor]:
        factors: List[RiskFactor] = []
        if extracted.policy_number and (
            _normalize_policy_number(extracted.policy_number)
            != _normalize_policy_number(request.policy_number)
        ):
            factors.append(RiskFactor(
                name="policy_number_mismatch",
                weight=self._weight("policy_number_mismatch"),
                detail="Supporting documents reference a different policy number",
            ))

        if extracted.claim_amount is not None:
            claimed = request.claim_amount
            ratio = Decimal(str(self.config.amount_mismatch_ratio))
            if abs(extracted.claim_amount - claimed) > claimed * ratio:
                factors.append(RiskFactor(
                    name="amount_mismatch",
                    weight=self._weight("amount_mismatch"),
                    detail=(
                        f"Documents state {extracted.claim_amount:,.2f}, "
                        f"claim states {claimed:,.2f}"
                    ),
                ))
        return factors
