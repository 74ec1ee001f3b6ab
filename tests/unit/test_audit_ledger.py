"""Unit tests for the hash-chained audit ledger."""

import json
from datetime import date
from decimal import Decimal

import pytest

from claim_validation.schemas.audit_record import AuditRecordType, ClaimAuditRecord
from claim_validation.schemas.claim import ClaimDecision, ClaimDecisionUpdate, ClaimStatus
from claim_validation.services.audit_ledger import GENESIS_HASH, AuditLedger


def _record(claim_request, claim_id="clm_test_001", **update):
    request = claim_request.model_copy(update={"claim_id": claim_id, **update})
    return ClaimAuditRecord(
        claim_id=claim_id,
        policy_number=request.policy_number,
        request=request,
        decision=ClaimDecision.manual_review("Needs a look"),
    )


# -- Append and chain ----------------------------------------------------------


class TestAppend:
    """Records are chained and assigned ids."""

    def test_first_record_links_to_genesis(self, ledger, claim_request):
        stored = ledger.append(_record(claim_request))
        assert stored.record_id.startswith("aud_")
        assert stored.created_at.endswith("Z")
        assert stored.previous_hash == GENESIS_HASH
        assert len(stored.record_hash) == 64

    def test_chain(self, ledger, claim_request):
        first = ledger.append(_record(claim_request, "clm_1"))
        second = ledger.append(_record(claim_request, "clm_2"))
        assert second.previous_hash == first.record_hash
        assert ledger.count() == 2

    def test_round_trip(self, ledger, claim_request):
        ledger.append(_record(claim_request))
        record = ledger.latest_for_claim("clm_test_001")
        assert record.request.claim_amount == Decimal("400")
        assert record.decision.status == ClaimStatus.MANUAL_REVIEW

    def test_no_temp_file_left(self, ledger, claim_request):
        ledger.append(_record(claim_request))
        assert [p.name for p in ledger.storage_dir.iterdir()] == ["claim_audit.jsonl"]


# -- Integrity -----------------------------------------------------------------


class TestVerifyIntegrity:
    """Tampering is detected."""

    def test_empty_ledger_is_valid(self, ledger):
        report = ledger.verify_integrity()
        assert report.valid is True
        assert report.total_records == 0

    def test_intact(self, ledger, claim_request):
        for i in range(3):
            ledger.append(_record(claim_request, f"clm_{i}"))
        assert ledger.verify_integrity().valid is True

    def test_modified_record(self, ledger, claim_request):
        ledger.append(_record(claim_request, "clm_1"))
        ledger.append(_record(claim_request, "clm_2"))
        lines = ledger.ledger_file.read_text(encoding="utf-8").splitlines()
        data = json.loads(lines[0])
        data["decision"]["status"] = "Covered"
        lines[0] = json.dumps(data)
        ledger.ledger_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

        report = ledger.verify_integrity()
        assert report.valid is False
        assert report.break_reason.startswith("hash_mismatch at record 0")

    def test_deleted_record(self, ledger, claim_request):
        for i in range(3):
            ledger.append(_record(claim_request, f"clm_{i}"))
        lines = ledger.ledger_file.read_text(encoding="utf-8").splitlines()
        del lines[1]
        ledger.ledger_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

        report = ledger.verify_integrity()
        assert report.valid is False
        assert report.break_reason.startswith("chain_break at record 1")

    def test_garbage_line(self, ledger, claim_request):
        ledger.append(_record(claim_request))
        with open(ledger.ledger_file, "a", encoding="utf-8") as f:
            f.write("not json\n")
        report = ledger.verify_integrity()
        assert report.valid is False
        assert report.break_reason.startswith("parse_error")


# -- Reviews and history -------------------------------------------------------


class TestReviewAndHistory:
    """Specialist reviews and the claim history view."""

    def test_record_review(self, ledger, claim_request):
        ledger.append(_record(claim_request))
        update = ClaimDecisionUpdate(
            claim_id="clm_test_001", new_status=ClaimStatus.COVERED, specialist_id="adj_42",
            specialist_notes="Invoice checked",
        )
        stored = ledger.record_review(update)

        assert stored.record_type == AuditRecordType.SPECIALIST_REVIEW
        assert stored.decision.status == ClaimStatus.COVERED
        assert stored.prior_decision.status == ClaimStatus.MANUAL_REVIEW
        assert stored.review.specialist_id == "adj_42"
        assert ledger.verify_integrity().valid

    def test_review_unknown_claim(self, ledger):
        update = ClaimDecisionUpdate(claim_id="nope", new_status=ClaimStatus.COVERED, specialist_id="adj_42")
        with pytest.raises(KeyError):
            ledger.record_review(update)

    def test_recent_claims(self, ledger, claim_request):
        ledger.append(_record(claim_request, "clm_old", submission_date=date(2023, 1, 1)))
        ledger.append(_record(claim_request, "clm_a", submission_date=date(2024, 5, 1)))
        ledger.append(_record(claim_request, "clm_a", submission_date=date(2024, 5, 1)))
        ledger.append(_record(claim_request, "clm_other", policy_number="POL-OTHER"))

        history = ledger.recent_claims("POL-2024-0042", since=date(2024, 3, 1))
        assert [h.claim_id for h in history] == ["clm_a"]
        assert history[0].status == "ManualReview"

    def test_reviews_not_counted_as_claims(self, ledger, claim_request):
        ledger.append(_record(claim_request))
        ledger.record_review(ClaimDecisionUpdate(
            claim_id="clm_test_001", new_status=ClaimStatus.DENIED, specialist_id="adj_1",
        ))
        history = ledger.recent_claims("POL-2024-0042", since=date(2024, 1, 1))
        assert len(history) == 1
        assert history[0].status == "ManualReview"
