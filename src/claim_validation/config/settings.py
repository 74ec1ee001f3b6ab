"""Pipeline configuration schema and loader.

All tunable constants of the validation pipeline live in one
``PipelineConfig`` value that is passed explicitly through every stage.
Defaults reproduce the production rule set; a YAML file can override any
subset of keys:

    confidence:
      default_base: 0.88
    routing:
      auto_deny_min_confidence: 0.95

Missing keys fall back to the defaults below.
"""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from claim_validation.schemas.routing import AmountTier, ProcessingMode

logger = logging.getLogger(__name__)


# ── Sections ─────────────────────────────────────────────────────────


class ConfidenceThresholdConfig(BaseModel):
    """Dynamic confidence threshold parameters."""

    base_by_status: Dict[str, float] = Field(
        default_factory=lambda: {
            "Covered": 0.85,
            "NotCovered": 0.90,
            "ManualReview": 0.50,
        },
        description="Base threshold per decision status",
    )
    default_base: float = 0.85
    high_amount: Decimal = Decimal("10000")
    high_amount_adjustment: float = 0.05
    well_cited_min_citations: int = 3
    well_cited_adjustment: float = -0.03
    no_supporting_evidence_adjustment: float = 0.07
    no_citations_adjustment: float = 0.10
    floor: float = 0.75
    ceiling: float = 0.98

    @model_validator(mode="after")
    def check_bounds(self) -> "ConfidenceThresholdConfig":
        if not 0.0 <= self.floor <= self.ceiling <= 1.0:
            raise ValueError("confidence floor/ceiling must satisfy 0 <= floor <= ceiling <= 1")
        return self


class TierConfig(BaseModel):
    """One amount tier of the routing table."""

    tier: AmountTier
    upper_bound: Optional[Decimal] = Field(
        default=None, description="Exclusive upper bound; None for the open-ended top tier"
    )
    processing_mode: ProcessingMode = ProcessingMode.MANUAL_REVIEW
    required_approvals: int = 1
    review_sla_hours: int = 48
    auto_approve_threshold: Optional[float] = Field(
        default=None, description="Confidence needed to auto-approve; None disables auto-approve"
    )
    additional_checks: List[str] = Field(default_factory=list)


def _default_tiers() -> List[TierConfig]:
    return [
        TierConfig(
            tier=AmountTier.LOW,
            upper_bound=Decimal("500"),
            required_approvals=1,
            review_sla_hours=24,
            auto_approve_threshold=0.85,
        ),
        TierConfig(
            tier=AmountTier.MODERATE,
            upper_bound=Decimal("2000"),
            required_approvals=1,
            review_sla_hours=48,
            auto_approve_threshold=0.90,
        ),
        TierConfig(
            tier=AmountTier.HIGH,
            upper_bound=Decimal("10000"),
            required_approvals=1,
            review_sla_hours=72,
            additional_checks=["Senior adjuster review"],
        ),
        TierConfig(
            tier=AmountTier.VERY_HIGH,
            upper_bound=Decimal("50000"),
            required_approvals=2,
            review_sla_hours=120,
            additional_checks=["Senior adjuster review", "Supporting documentation audit"],
        ),
        TierConfig(
            tier=AmountTier.CRITICAL,
            upper_bound=None,
            processing_mode=ProcessingMode.EXECUTIVE_REVIEW,
            required_approvals=3,
            review_sla_hours=168,
            additional_checks=["Executive sign-off", "Special investigations screening"],
        ),
    ]


class RoutingConfig(BaseModel):
    """Tiered amount routing parameters."""

    tiers: List[TierConfig] = Field(default_factory=_default_tiers)
    auto_deny_min_confidence: float = 0.92

    @model_validator(mode="after")
    def check_tiers(self) -> "RoutingConfig":
        if not self.tiers:
            raise ValueError("routing.tiers must not be empty")
        if self.tiers[-1].upper_bound is not None:
            raise ValueError("the last routing tier must be open-ended (upper_bound: null)")
        bounds = [t.upper_bound for t in self.tiers[:-1]]
        if any(b is None for b in bounds) or bounds != sorted(bounds):
            raise ValueError("routing tier upper bounds must be ascending")
        return self


class FraudConfig(BaseModel):
    """Fraud-risk scoring parameters."""

    history_window_days: int = 90
    frequency_threshold: int = 3
    round_amount_unit: Decimal = Decimal("1000")
    near_threshold_margin: float = 0.05
    vague_description_min_words: int = 6
    overlong_description_chars: int = 3000
    amount_mismatch_ratio: float = 0.10
    suspicious_phrases: List[str] = Field(
        default_factory=lambda: [
            "cash only",
            "no receipt",
            "lost receipt",
            "receipt was lost",
            "pay urgently",
            "urgent payment",
            "friend of the",
            "no witnesses",
            "paid in cash",
        ]
    )
    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "claim_frequency": 0.25,
            "round_amount": 0.10,
            "near_approval_threshold": 0.15,
            "escalating_amounts": 0.15,
            "vague_description": 0.10,
            "overlong_description": 0.05,
            "suspicious_phrase": 0.10,
            "policy_number_mismatch": 0.30,
            "amount_mismatch": 0.20,
        }
    )
    max_phrase_weight: float = 0.20
    level_cutoffs: Dict[str, float] = Field(
        default_factory=lambda: {
            "Low": 0.20,
            "Medium": 0.40,
            "High": 0.60,
            "Critical": 0.80,
        },
        description="Minimum score for each risk level above Minimal",
    )


class ContradictionConfig(BaseModel):
    """Contradiction detector parameters."""

    high_confidence_manual_review: float = 0.85
    document_discrepancy_ratio: float = 0.10


class RetryConfig(BaseModel):
    """Bounded retry policy for external calls."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay_seconds: float = Field(default=0.5, ge=0.0)
    max_delay_seconds: float = Field(default=8.0, ge=0.0)
    timeout_seconds: float = Field(default=30.0, gt=0.0)


class RateLimitConfig(BaseModel):
    """Fixed-window rate limit per caller."""

    max_requests: int = Field(default=60, ge=1)
    window_seconds: float = Field(default=60.0, gt=0.0)


class TemporalConfig(BaseModel):
    """Date and filing window validation."""

    filing_window_days: Dict[str, int] = Field(
        default_factory=lambda: {
            "default": 365,
            "Health": 180,
            "Dental": 180,
            "Vision": 180,
        }
    )

    def window_for(self, policy_type: str) -> int:
        return self.filing_window_days.get(policy_type, self.filing_window_days.get("default", 365))


class RetrievalConfig(BaseModel):
    """Evidence retrieval parameters."""

    top_k: int = Field(default=5, ge=1)
    min_score: float = Field(default=0.0, ge=0.0, le=1.0)


class PipelineConfig(BaseModel):
    """Complete configuration for one pipeline instance."""

    confidence: ConfidenceThresholdConfig = Field(default_factory=ConfidenceThresholdConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    fraud: FraudConfig = Field(default_factory=FraudConfig)
    contradiction: ContradictionConfig = Field(default_factory=ContradictionConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    temporal: TemporalConfig = Field(default_factory=TemporalConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)


# ── Loader ───────────────────────────────────────────────────────────


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[Path] = None) -> PipelineConfig:
    """Load pipeline configuration, with optional YAML override.

    Unknown top-level sections are ignored with a warning.  An unreadable
    or invalid file falls back to defaults.

    Args:
        path: Path to a YAML override file. None returns defaults.

    Returns:
        PipelineConfig instance.
    """
    config = PipelineConfig()
    if path is None:
        return config

    path = Path(path)
    if not path.exists():
        logger.warning(f"Config file {path} not found, using defaults")
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        logger.warning(f"Could not read config from {path}, using defaults", exc_info=True)
        return config

    if not isinstance(data, dict):
        logger.warning(f"Config file {path} is not a mapping, using defaults")
        return config

    known = set(PipelineConfig.model_fields)
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config sections in {path}: {', '.join(unknown)}")
    overrides = {k: v for k, v in data.items() if k in known}

    try:
        config = PipelineConfig.model_validate(_deep_merge(config.model_dump(), overrides))
    except ValidationError:
        logger.warning(f"Invalid config in {path}, using defaults", exc_info=True)
        return PipelineConfig()

    logger.info(f"Loaded pipeline config override from {path}")
    return config
