"""Contradiction detection between decision, evidence and request.

Five independent checks, each yielding zero or more ``Contradiction``:

    1. status_vs_citations      Denied without cited exclusion          -> High
                                Covered citing an exclusion             -> Critical
    2. exclusion_conflict       coverage and exclusion clauses cited    -> High
    3. confidence_vs_status     confidence below threshold, decided     -> High
                                very high confidence, ManualReview      -> Medium
    4. amount_vs_limit          claim above the largest cited limit     -> High
    5. document_consistency     document total differs by > 10%        -> High

Any High or Critical contradiction is a hard gate for the orchestrator.
"""

import re
from decimal import Decimal
from typing import List, Mapping, Optional, Sequence

from claim_validation.config.settings import ContradictionConfig, PipelineConfig
from claim_validation.rules.thresholds import dynamic_threshold
from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimRequest,
    ClaimStatus,
    Contradiction,
    ContradictionSeverity,
    PolicyClause,
)
from claim_validation.utils.number_parsing import (
    extract_currency_amounts,
    format_money,
    largest_amount,
)

LIMIT_LANGUAGE = re.compile(
    r"\blimit(?:s|ed)?\b|\bmaximum\b|\bup\s+to\b|\bnot\s+to\s+exceed\b|\bcap(?:ped)?\b",
    re.IGNORECASE,
)


def has_critical(contradictions: Sequence[Contradiction]) -> bool:
    """True when any contradiction is High or Critical."""
    return any(c.is_critical for c in contradictions)


class ContradictionDetector:
    """Cross-checks a decision against its evidence and the original request."""

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()

    @property
    def _settings(self) -> ContradictionConfig:
        return self.config.contradiction

    def detect(
        self,
        request: ClaimRequest,
        decision: ClaimDecision,
        evidence: Sequence[PolicyClause],
        supporting_docs: Optional[Mapping[str, str]] = None,
        *,
        threshold: Optional[float] = None,
    ) -> List[Contradiction]:
        """Run all checks.

        Args:
            request: Original claim request.
            decision: Decision after citation validation.
            evidence: Clauses supplied to the generator.
            supporting_docs: Extracted document text keyed by document id.
                Check 5 is skipped when empty.
            threshold: Confidence threshold for check 3. Computed from the
                decision when not given.

        Returns:
            Contradictions in check order.
        """
        cited = self._cited_clauses(decision, evidence)
        if threshold is None:
            threshold = dynamic_threshold(
                decision.status,
                request.claim_amount,
                len(decision.clause_references),
                bool(supporting_docs),
                self.config.confidence,
            )

        contradictions: List[Contradiction] = []
        contradictions.extend(self._check_status_vs_citations(decision, cited))
        contradictions.extend(self._check_exclusion_conflict(cited))
        contradictions.extend(self._check_confidence_vs_status(decision, threshold))
        contradictions.extend(self._check_amount_vs_limit(request, cited))
        if supporting_docs:
            contradictions.extend(self._check_document_consistency(request, supporting_docs))
        return contradictions

    def has_critical(self, contradictions: Sequence[Contradiction]) -> bool:
        return has_critical(contradictions)

    def summarize(self, contradictions: Sequence[Contradiction]) -> List[str]:
        """One line per contradiction, most severe first."""
        ordered = sorted(contradictions, key=lambda c: c.severity.rank, reverse=True)
        return [f"[{c.severity.value}] {c.description}: {c.source_a} vs {c.source_b}" for c in ordered]

    # ── Individual checks ────────────────────────────────────────────

    @staticmethod
    def _cited_clauses(decision: ClaimDecision, evidence: Sequence[PolicyClause]) -> List[PolicyClause]:
        by_id = {c.clause_id: c for c in evidence}
        return [by_id[cid] for cid in decision.clause_references if cid in by_id]

    def _check_status_vs_citations(
        self, decision: ClaimDecision, cited: List[PolicyClause]
    ) -> List[Contradiction]:
        """Check 1: the status must agree with the kind of clause cited."""
        has_exclusion = any(c.is_exclusion for c in cited)

        if decision.status == ClaimStatus.DENIED and not has_exclusion:
            return [Contradiction(
                source_a="Decision Status (Denied)",
                source_b="Cited Policy Clauses",
                description="Claim denied but no cited clause contains exclusion language",
                impact="Decision may lack proper justification",
                severity=ContradictionSeverity.HIGH,
            )]

        if decision.status == ClaimStatus.COVERED and has_exclusion:
            excluded = ", ".join(c.clause_id for c in cited if c.is_exclusion)
            return [Contradiction(
                source_a="Decision Status (Covered)",
                source_b=f"Policy Exclusion Clause ({excluded})",
                description="Claim marked as covered but an exclusion clause is cited",
                impact="May result in incorrect approval",
                severity=ContradictionSeverity.CRITICAL,
            )]

        return []

    def _check_exclusion_conflict(self, cited: List[PolicyClause]) -> List[Contradiction]:
        """Check 2: coverage and exclusion cited together is ambiguous."""
        coverage = [c for c in cited if not c.is_exclusion]
        exclusion = [c for c in cited if c.is_exclusion]
        if not coverage or not exclusion:
            return []
        return [Contradiction(
            source_a=f"Coverage Policy Clause ({coverage[0].clause_id})",
            source_b=f"Exclusion Policy Clause ({exclusion[0].clause_id})",
            description="Both coverage and exclusion clauses cited - requires policy interpretation",
            impact="Ambiguous policy application",
            severity=ContradictionSeverity.HIGH,
        )]

    def _check_confidence_vs_status(self, decision: ClaimDecision, threshold: float) -> List[Contradiction]:
        """Check 3: confidence must be consistent with the status."""
        confidence = decision.confidence_score
        status = decision.status
        contradictions: List[Contradiction] = []

        if status not in (ClaimStatus.MANUAL_REVIEW, ClaimStatus.ERROR) and confidence < threshold:
            contradictions.append(Contradiction(
                source_a=f"Low Confidence Score ({confidence:.2f} < {threshold:.2f})",
                source_b=f"Automated Decision ({status.value})",
                description="Confidence below the required threshold for an automated decision",
                impact="Risk of incorrect decision",
                severity=ContradictionSeverity.HIGH,
            ))

        if status == ClaimStatus.MANUAL_REVIEW and confidence > self._settings.high_confidence_manual_review:
            contradictions.append(Contradiction(
                source_a=f"High Confidence Score ({confidence:.2f})",
                source_b="Manual Review Status",
                description="Decision is confident but still requests manual review",
                impact="Potential candidate for automated decision",
                severity=ContradictionSeverity.MEDIUM,
            ))

        return contradictions

    def _check_amount_vs_limit(self, request: ClaimRequest, cited: List[PolicyClause]) -> List[Contradiction]:
        """Check 4: claim amount against the largest stated limit."""
        limit = None
        limit_clause = None
        for clause in cited:
            if not LIMIT_LANGUAGE.search(clause.text):
                continue
            for amount in extract_currency_amounts(clause.text):
                if limit is None or amount > limit:
                    limit, limit_clause = amount, clause

        if limit is None or request.claim_amount <= limit:
            return []

        excess = request.claim_amount - limit
        return [Contradiction(
            source_a=f"Claim Amount ({format_money(request.claim_amount)})",
            source_b=f"Policy Limit ({format_money(limit)}) in {limit_clause.clause_id}",
            description=f"Claim amount exceeds policy limit by {format_money(excess)}",
            impact="May require partial approval or denial",
            severity=ContradictionSeverity.HIGH,
        )]

    def _check_document_consistency(
        self, request: ClaimRequest, supporting_docs: Mapping[str, str]
    ) -> List[Contradiction]:
        """Check 5: each document's total against the claimed amount."""
        ratio = self._settings.document_discrepancy_ratio
        claimed = request.claim_amount
        contradictions: List[Contradiction] = []

        for doc_id, text in supporting_docs.items():
            total = largest_amount(text)
            if total is None:
                continue
            difference = abs(total - claimed)
            if difference > claimed * Decimal(str(ratio)):
                contradictions.append(Contradiction(
                    source_a=f"Claimed Amount ({format_money(claimed)})",
                    source_b=f"Document Amount ({format_money(total)}) in {doc_id}",
                    description=f"Claim amount differs from supporting document by {format_money(difference)}",
                    impact="Verify correct claim amount",
                    severity=ContradictionSeverity.HIGH,
                ))

        return contradictions
