"""Pydantic models for the claim audit ledger.

Each validation run appends one ``ClaimAuditRecord``.  Records are hash
chained (``previous_hash`` -> ``record_hash``) so tampering or deletion is
detectable with ``AuditLedger.verify_integrity()``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from claim_validation.schemas.claim import ClaimDecision, ClaimDecisionUpdate, ClaimRequest


class AuditRecordType(str, Enum):
    """Kinds of records stored in the ledger."""

    VALIDATION = "validation"
    FINALIZATION = "finalization"
    SPECIALIST_REVIEW = "specialist_review"


class StageRecord(BaseModel):
    """Outcome of one pipeline stage, kept for audit."""

    state: str = Field(description="Pipeline state reached, e.g. 'CitationChecked'")
    valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    detail: Dict[str, Any] = Field(default_factory=dict)


class ClaimAuditRecord(BaseModel):
    """Append-only audit record for a claim validation run."""

    record_id: str = Field(default="", description="Assigned on append")
    record_type: AuditRecordType = AuditRecordType.VALIDATION
    claim_id: str
    policy_number: str
    created_at: Optional[str] = Field(default=None, description="ISO timestamp, assigned on append")
    request: Optional[ClaimRequest] = None
    decision: Optional[ClaimDecision] = None
    prior_decision: Optional[ClaimDecision] = None
    review: Optional[ClaimDecisionUpdate] = None
    evidence_clause_ids: List[str] = Field(default_factory=list)
    supporting_document_ids: List[str] = Field(default_factory=list)
    stages: List[StageRecord] = Field(default_factory=list)
    state_history: List[str] = Field(default_factory=list)
    previous_hash: str = ""
    record_hash: str = ""


class IntegrityReport(BaseModel):
    """Result of walking the ledger hash chain."""

    valid: bool
    total_records: int
    break_at_record_id: Optional[str] = None
    break_reason: Optional[str] = None
    verified_at: str = Field(default_factory=lambda: datetime.utcnow().isoformat() + "Z")
