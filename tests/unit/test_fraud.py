"""Unit tests for fraud-risk scoring."""

from datetime import date
from decimal import Decimal

import pytest

from claim_validation.config.settings import FraudConfig
from claim_validation.rules.fraud import FraudScorer, extract_claim_fields, risk_level_for
from claim_validation.schemas.fraud import ClaimHistoryEntry, ExtractedClaimFields, RiskLevel


@pytest.fixture
def scorer():
    return FraudScorer()


def _history(*rows):
    """rows: (claim_id, amount, submitted_at)"""
    return [
        ClaimHistoryEntry(
            claim_id=cid, policy_number="POL-2024-0042", claim_amount=Decimal(amount), submitted_at=when
        )
        for cid, amount, when in rows
    ]


def _names(assessment):
    return [f.name for f in assessment.factors]


class TestSignals:
    """Each signal fires on its own."""

    def test_clean_claim(self, scorer, claim_request):
        result = scorer.assess(claim_request)
        assert result.risk_score == 0.0
        assert result.risk_level == RiskLevel.MINIMAL
        assert result.factors == []

    def test_claim_frequency_counts_current_claim(self, scorer, claim_request):
        history = _history(("c1", "100", date(2024, 4, 1)), ("c2", "150", date(2024, 5, 1)))
        result = scorer.assess(claim_request, history)
        assert _names(result) == ["claim_frequency"]
        assert result.risk_level == RiskLevel.LOW

    def test_old_claims_outside_window(self, scorer, claim_request):
        history = _history(("c1", "100", date(2023, 1, 1)), ("c2", "150", date(2023, 2, 1)))
        assert "claim_frequency" not in _names(scorer.assess(claim_request, history))

    def test_current_claim_excluded_from_history(self, scorer, claim_request):
        history = _history((claim_request.claim_id, "400", date(2024, 5, 22)), ("c2", "150", date(2024, 5, 1)))
        assert "claim_frequency" not in _names(scorer.assess(claim_request, history))

    def test_round_amount(self, scorer, claim_request):
        result = scorer.assess(claim_request.model_copy(update={"claim_amount": Decimal("3000")}))
        assert _names(result) == ["round_amount"]
        assert result.factors[0].detail == "Amount is an exact multiple of 1,000"

    def test_near_approval_threshold(self, scorer, claim_request):
        result = scorer.assess(claim_request.model_copy(update={"claim_amount": Decimal("480")}))
        assert _names(result) == ["near_approval_threshold"]
        assert "Low tier bound" in result.factors[0].detail

    def test_escalating_amounts(self, scorer, claim_request):
        history = _history(
            ("c1", "100", date(2024, 3, 1)),
            ("c2", "200", date(2024, 4, 1)),
            ("c3", "300", date(2024, 5, 1)),
        )
        result = scorer.assess(claim_request, history)
        assert set(_names(result)) == {"claim_frequency", "escalating_amounts"}
        assert result.risk_score == pytest.approx(0.40)
        assert result.risk_level == RiskLevel.MEDIUM

    def test_vague_description(self, scorer, claim_request):
        result = scorer.assess(claim_request.model_copy(update={"claim_description": "Car dented."}))
        assert _names(result) == ["vague_description"]

    def test_suspicious_phrases_capped(self, scorer, claim_request):
        text = "Mechanic was paid in cash, there is no receipt and the lost receipt cannot be found."
        result = scorer.assess(claim_request.model_copy(update={"claim_description": text}))
        assert _names(result) == ["suspicious_phrase"]
        assert result.factors[0].weight == pytest.approx(0.20)


class TestDocumentMismatch:
    """Fields extracted from documents against the request."""

    def test_policy_and_amount_mismatch(self, scorer, claim_request):
        extracted = ExtractedClaimFields(policy_number="POL-9999-0001", claim_amount=Decimal("900"))
        result = scorer.assess(claim_request, extracted=extracted)
        assert _names(result) == ["policy_number_mismatch", "amount_mismatch"]
        assert result.risk_score == pytest.approx(0.50)

    def test_policy_number_formatting_ignored(self, scorer, claim_request):
        extracted = ExtractedClaimFields(policy_number="pol 2024 0042", claim_amount=Decimal("410"))
        assert scorer.assess(claim_request, extracted=extracted).factors == []

    def test_high_risk_forces_review(self, scorer, claim_request):
        history = _history(("c1", "100", date(2024, 4, 1)), ("c2", "150", date(2024, 5, 1)))
        extracted = ExtractedClaimFields(policy_number="POL-9999-0001", claim_amount=Decimal("900"))
        result = scorer.assess(claim_request, history, extracted)
        assert result.risk_score == pytest.approx(0.75)
        assert result.risk_level == RiskLevel.HIGH
        assert result.forces_manual_review is True


class TestHelpers:
    """Extraction and level mapping."""

    def test_extract_claim_fields(self):
        fields = extract_claim_fields([
            "Repair invoice. Policy number: POL-2024-0042. Total $380.00",
            "Second invoice total $420.50",
        ])
        assert fields.policy_number == "POL-2024-0042"
        assert fields.claim_amount == Decimal("420.50")

    def test_extract_nothing(self):
        fields = extract_claim_fields(["photo of the car"])
        assert fields.policy_number is None
        assert fields.claim_amount is None

    @pytest.mark.parametrize("score,level", [
        (0.0, RiskLevel.MINIMAL),
        (0.19, RiskLevel.MINIMAL),
        (0.2, RiskLevel.LOW),
        (0.45, RiskLevel.MEDIUM),
        (0.6, RiskLevel.HIGH),
        (0.95, RiskLevel.CRITICAL),
    ])
    def test_risk_levels(self, score, level):
        assert risk_level_for(score, FraudConfig()) == level
