"""External collaborators: interfaces, adapters and the factory that wires them."""

from claim_validation.services.audit_ledger import AuditLedger
from claim_validation.services.interfaces import (
    AuditSink,
    ClaimHistoryProvider,
    DecisionGenerator,
    DocumentExtractionService,
    EmbeddingService,
    RetrievalService,
)

__all__ = [
    "AuditLedger",
    "AuditSink",
    "ClaimHistoryProvider",
    "DecisionGenerator",
    "DocumentExtractionService",
    "EmbeddingService",
    "RetrievalService",
]
