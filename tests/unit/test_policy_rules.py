"""Unit tests for policy-type business rules."""

from decimal import Decimal

import pytest

from claim_validation.rules.policy_rules import evaluate_policy_rules
from claim_validation.schemas.claim import ClaimDecision, ClaimRequest, ClaimStatus, PolicyType
from claim_validation.schemas.routing import ReviewFlag


def _request(policy_type, description):
    return ClaimRequest(
        claim_id="clm_rules",
        policy_number="POL-9",
        policy_type=policy_type,
        claim_amount=Decimal("800"),
        claim_description=description,
    )


def _decision(explanation="Covered under [c1]."):
    return ClaimDecision(
        status=ClaimStatus.COVERED, explanation=explanation, clause_references=["c1"], confidence_score=0.9
    )


class TestRequiredDocuments:
    """Each line of business lists its documents."""

    def test_health_documents(self):
        outcome = evaluate_policy_rules(_request(PolicyType.HEALTH, "Broken wrist treated in ER."), _decision())
        assert outcome.required_documents == ["Medical records", "Itemized bill", "Physician statement"]
        assert outcome.force_manual_review is False
        assert outcome.review_flags == []

    @pytest.mark.parametrize("policy_type", [PolicyType.MOTOR, PolicyType.HOME])
    def test_no_rules(self, policy_type):
        outcome = evaluate_policy_rules(_request(policy_type, "Experimental cosmetic suicide"), _decision())
        assert outcome.required_documents == []
        assert outcome.force_manual_review is False


class TestRedFlags:
    """Keywords trigger reviews, documents and forced review."""

    def test_experimental_treatment(self):
        outcome = evaluate_policy_rules(
            _request(PolicyType.HEALTH, "Experimental gene therapy for my condition."), _decision()
        )
        assert outcome.force_manual_review is True
        assert outcome.review_flags == [ReviewFlag.MEDICAL_REVIEW]
        assert outcome.reasons == ["Health red flag: 'experimental'"]

    @pytest.mark.parametrize("text", ["pre-existing", "pre existing", "preexisting"])
    def test_hyphenated_keyword_variants(self, text):
        outcome = evaluate_policy_rules(_request(PolicyType.HEALTH, f"Knee injury, {text} condition."), _decision())
        assert ReviewFlag.MEDICAL_REVIEW in outcome.review_flags
        assert outcome.force_manual_review is False

    def test_life_homicide(self):
        outcome = evaluate_policy_rules(
            _request(PolicyType.LIFE, "Insured died; police are investigating a homicide."), _decision()
        )
        assert outcome.force_manual_review is True
        assert outcome.review_flags == [ReviewFlag.LEGAL_REVIEW, ReviewFlag.FRAUD_REVIEW]
        assert outcome.required_documents[-1] == "Police report"

    def test_explanation_is_scanned(self):
        outcome = evaluate_policy_rules(
            _request(PolicyType.DENTAL, "Replacement tooth after an accident."),
            _decision("Implant covered under [c1] with pre-authorization."),
        )
        assert "Pre-authorization" in outcome.required_documents

    def test_word_boundary(self):
        outcome = evaluate_policy_rules(
            _request(PolicyType.VISION, "New glasses; old pair unlasikable joke aside."), _decision()
        )
        assert outcome.force_manual_review is False
