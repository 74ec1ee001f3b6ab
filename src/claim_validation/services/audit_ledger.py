"""Append-only claim audit ledger with hash chaining.

Every validation run, finalization and specialist review is stored as one
JSON line.  Each record carries the SHA-256 hash of the previous record,
so any modification or deletion breaks the chain and is reported by
``verify_integrity()``.

The ledger doubles as the read-only claim history used by fraud scoring
(``recent_claims``).

Usage:
    ledger = AuditLedger(Path("output/audit"))
    ledger.append(ClaimAuditRecord(claim_id="clm_1", policy_number="POL-1"))

    report = ledger.verify_integrity()
    if not report.valid:
        raise ValueError(f"Chain broken at {report.break_at_record_id}")
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from claim_validation.rules.temporal import parse_date
from claim_validation.schemas.audit_record import (
    AuditRecordType,
    ClaimAuditRecord,
    IntegrityReport,
)
from claim_validation.schemas.claim import ClaimDecisionUpdate
from claim_validation.schemas.fraud import ClaimHistoryEntry

logger = logging.getLogger(__name__)

GENESIS_HASH = "GENESIS"
LEDGER_FILE_NAME = "claim_audit.jsonl"


class AuditLedger:
    """Hash-chained JSONL audit sink and claim history provider."""

    def __init__(self, storage_dir: Path):
        """Initialize the ledger.

        Args:
            storage_dir: Directory holding the ledger file
        """
        self.storage_dir = Path(storage_dir)
        self.ledger_file = self.storage_dir / LEDGER_FILE_NAME
        self._lock = threading.Lock()
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    # ── Hashing ──────────────────────────────────────────────────────

    @staticmethod
    def _compute_hash(record: ClaimAuditRecord) -> str:
        """SHA-256 over the record without its own hash; previous_hash is included."""
        data = record.model_dump(mode="json")
        data.pop("record_hash", None)
        serialized = json.dumps(data, sort_keys=True, ensure_ascii=True, default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    def _iter_lines(self) -> Iterator[Tuple[int, str]]:
        if not self.ledger_file.exists():
            return
        with open(self.ledger_file, "r", encoding="utf-8") as f:
            for idx, line in enumerate(f):
                line = line.strip()
                if line:
                    yield idx, line

    def _get_last_hash(self) -> str:
        last_hash = GENESIS_HASH
        for _, line in self._iter_lines():
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if data.get("record_hash"):
                last_hash = data["record_hash"]
        return last_hash

    # ── Writing ──────────────────────────────────────────────────────

    def append(self, record: ClaimAuditRecord) -> ClaimAuditRecord:
        """Append a record atomically and return it with id, timestamp and hashes.

        Raises:
            IOError: If the write fails. The ledger file is left unchanged.
        """
        with self._lock:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            record = record.model_copy(update={
                "record_id": record.record_id or f"aud_{uuid.uuid4().hex[:12]}",
                "created_at": record.created_at or datetime.utcnow().isoformat() + "Z",
                "previous_hash": self._get_last_hash(),
            })
            record = record.model_copy(update={"record_hash": self._compute_hash(record)})
            line = json.dumps(record.model_dump(mode="json"), ensure_ascii=False, default=str) + "\n"

            # Temp file + rename so a failed write never leaves a partial record
            tmp_file = self.ledger_file.with_suffix(".jsonl.tmp")
            try:
                existing = ""
                if self.ledger_file.exists():
                    existing = self.ledger_file.read_text(encoding="utf-8")
                with open(tmp_file, "w", encoding="utf-8") as f:
                    f.write(existing)
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
                tmp_file.replace(self.ledger_file)
            except OSError as e:
                if tmp_file.exists():
                    tmp_file.unlink()
                raise IOError(f"Failed to append to audit ledger: {e}") from e

        logger.debug(f"Appended {record.record_type.value} record {record.record_id} for claim {record.claim_id}")
        return record

    def record_review(self, update: ClaimDecisionUpdate) -> ClaimAuditRecord:
        """Append a specialist review of a previously audited claim.

        Raises:
            KeyError: If the ledger has no record for ``update.claim_id``.
        """
        prior = self.latest_for_claim(update.claim_id)
        if prior is None:
            raise KeyError(f"No audit record for claim {update.claim_id}")

        decision = None
        if prior.decision is not None:
            decision = prior.decision.model_copy(update={"status": update.new_status})

        return self.append(ClaimAuditRecord(
            record_type=AuditRecordType.SPECIALIST_REVIEW,
            claim_id=update.claim_id,
            policy_number=prior.policy_number,
            request=prior.request,
            decision=decision,
            prior_decision=prior.decision,
            review=update,
        ))

    # ── Reading ──────────────────────────────────────────────────────

    def records(self) -> List[ClaimAuditRecord]:
        """All parseable records in append order."""
        results: List[ClaimAuditRecord] = []
        try:
            for _, line in self._iter_lines():
                try:
                    results.append(ClaimAuditRecord.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValueError):
                    continue
        except OSError as e:
            logger.error(f"Failed to read audit ledger: {e}")
        return results

    def for_claim(self, claim_id: str) -> List[ClaimAuditRecord]:
        return [r for r in self.records() if r.claim_id == claim_id]

    def latest_for_claim(self, claim_id: str) -> Optional[ClaimAuditRecord]:
        matches = self.for_claim(claim_id)
        return matches[-1] if matches else None

    def count(self) -> int:
        try:
            return sum(1 for _ in self._iter_lines())
        except OSError:
            return 0

    def recent_claims(self, policy_number: str, since: date) -> List[ClaimHistoryEntry]:
        """Claims on a policy submitted on or after ``since``, latest record per claim."""
        latest = {}
        for record in self.records():
            if record.policy_number != policy_number or record.request is None:
                continue
            if record.record_type == AuditRecordType.SPECIALIST_REVIEW:
                continue
            submitted = record.request.submission_date or parse_date((record.created_at or "")[:10])
            if submitted is None or submitted < since:
                continue
            latest[record.claim_id] = ClaimHistoryEntry(
                claim_id=record.claim_id,
                policy_number=record.policy_number,
                claim_amount=record.request.claim_amount,
                submitted_at=submitted,
                status=record.decision.status.value if record.decision else None,
            )
        return sorted(latest.values(), key=lambda h: h.submitted_at)

    # ── Verification ─────────────────────────────────────────────────

    def verify_integrity(self) -> IntegrityReport:
        """Walk the chain and check every record's hash and back-link."""
        with self._lock:
            try:
                lines = list(self._iter_lines())
            except OSError as e:
                return IntegrityReport(valid=False, total_records=0, break_reason=f"io_error: {e}")

            expected_previous = GENESIS_HASH
            for position, (idx, line) in enumerate(lines):
                try:
                    data = json.loads(line)
                    record = ClaimAuditRecord.model_validate(data)
                except (json.JSONDecodeError, ValueError) as e:
                    return IntegrityReport(
                        valid=False,
                        total_records=len(lines),
                        break_reason=f"parse_error at line {idx}: {e}",
                    )

                if record.previous_hash != expected_previous:
                    return IntegrityReport(
                        valid=False,
                        total_records=len(lines),
                        break_at_record_id=record.record_id,
                        break_reason=(
                            f"chain_break at record {position}: expected previous hash "
                            f"{expected_previous[:16]}..., got {record.previous_hash[:16]}..."
                        ),
                    )

                computed = self._compute_hash(record)
                if record.record_hash != computed:
                    return IntegrityReport(
                        valid=False,
                        total_records=len(lines),
                        break_at_record_id=record.record_id,
                        break_reason=(
                            f"hash_mismatch at record {position}: stored "
                            f"{record.record_hash[:16]}..., computed {computed[:16]}..."
                        ),
                    )
                expected_previous = record.record_hash

            return IntegrityReport(valid=True, total_records=len(lines))
