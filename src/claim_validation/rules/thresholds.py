"""Dynamic confidence threshold.

The threshold a decision's confidence must clear depends on what the
decision says and how well it is supported:

    base          Covered 0.85 / NotCovered 0.90 / ManualReview 0.50 / other 0.85
    +0.05         claim amount above 10,000
    -0.03         >= 3 citations AND supporting evidence present
    +0.07         no supporting evidence
    +0.10         no citations at all

The result is clamped to [0.75, 0.98].  All numbers come from
``ConfidenceThresholdConfig``.
"""

from decimal import Decimal
from typing import Optional, Sequence

from claim_validation.config.settings import ConfidenceThresholdConfig
from claim_validation.schemas.claim import ClaimStatus


def dynamic_threshold(
    status: ClaimStatus,
    claim_amount: Decimal,
    citation_count: int,
    has_supporting_evidence: bool,
    config: Optional[ConfidenceThresholdConfig] = None,
) -> float:
    """Compute the adjusted confidence threshold for a decision."""
    config = config or ConfidenceThresholdConfig()
    status_value = status.value if isinstance(status, ClaimStatus) else str(status)
    threshold = config.base_by_status.get(status_value, config.default_base)

    if claim_amount > config.high_amount:
        threshold += config.high_amount_adjustment
    if citation_count >= config.well_cited_min_citations and has_supporting_evidence:
        threshold += config.well_cited_adjustment
    if not has_supporting_evidence:
        threshold += config.no_supporting_evidence_adjustment
    if citation_count == 0:
        threshold += config.no_citations_adjustment

    return round(min(config.ceiling, max(config.floor, threshold)), 4)


def confidence_rationale(confidence: float, threshold: float, language_warnings: Sequence[str] = ()) -> str:
    """Describe the gap between actual confidence and the threshold.

    Hedging and vague-reference findings from the citation check are
    appended after the gap.
    """
    gap = confidence - threshold
    if gap >= 0:
        rationale = f"Confidence {confidence:.2f} meets threshold {threshold:.2f} (margin {gap:+.2f})"
    else:
        rationale = f"Confidence {confidence:.2f} below threshold {threshold:.2f} (gap {gap:+.2f})"
    if language_warnings:
        rationale += f"; {len(language_warnings)} language warning(s): " + "; ".join(language_warnings)
    return rationale
