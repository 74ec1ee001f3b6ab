"""Unit tests for the dynamic confidence threshold."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from claim_validation.config.settings import ConfidenceThresholdConfig
from claim_validation.rules.thresholds import confidence_rationale, dynamic_threshold
from claim_validation.schemas.claim import ClaimStatus


class TestDynamicThreshold:
    """Base per status plus additive adjustments, clamped."""

    @pytest.mark.parametrize("status,amount,citations,evidence,expected", [
        (ClaimStatus.COVERED, "400", 1, True, 0.85),
        (ClaimStatus.COVERED, "400", 1, False, 0.92),
        (ClaimStatus.COVERED, "400", 3, True, 0.82),
        (ClaimStatus.COVERED, "12000", 1, True, 0.90),
        (ClaimStatus.NOT_COVERED, "400", 1, True, 0.90),
        (ClaimStatus.DENIED, "400", 1, True, 0.85),
    ])
    def test_adjustments(self, status, amount, citations, evidence, expected):
        assert dynamic_threshold(status, Decimal(amount), citations, evidence) == pytest.approx(expected)

    def test_clamped_to_ceiling(self):
        # 0.90 + 0.05 + 0.07 + 0.10 would be 1.12
        assert dynamic_threshold(ClaimStatus.NOT_COVERED, Decimal("20000"), 0, False) == 0.98

    def test_clamped_to_floor(self):
        # 0.50 - 0.03 would be 0.47
        assert dynamic_threshold(ClaimStatus.MANUAL_REVIEW, Decimal("100"), 4, True) == 0.75

    def test_exactly_ten_thousand_is_not_high(self):
        assert dynamic_threshold(ClaimStatus.COVERED, Decimal("10000"), 1, True) == pytest.approx(0.85)

    def test_custom_config(self):
        config = ConfidenceThresholdConfig(default_base=0.6, floor=0.5, ceiling=1.0)
        assert dynamic_threshold(ClaimStatus.DENIED, Decimal("1"), 1, True, config) == pytest.approx(0.6)

    def test_invalid_bounds_rejected(self):
        with pytest.raises(ValidationError):
            ConfidenceThresholdConfig(floor=0.9, ceiling=0.8)


class TestRationale:
    """Human-readable gap description."""

    def test_meets(self):
        assert confidence_rationale(0.93, 0.85) == "Confidence 0.93 meets threshold 0.85 (margin +0.08)"

    def test_below(self):
        assert confidence_rationale(0.80, 0.92) == "Confidence 0.80 below threshold 0.92 (gap -0.12)"

    def test_language_warnings_appended(self):
        rationale = confidence_rationale(
            0.95, 0.85, ["Uncertainty phrase: 'i think'", "Uncertainty phrase: 'probably'"]
        )
        assert rationale == (
            "Confidence 0.95 meets threshold 0.85 (margin +0.10); 2 language warning(s): "
            "Uncertainty phrase: 'i think'; Uncertainty phrase: 'probably'"
        )
