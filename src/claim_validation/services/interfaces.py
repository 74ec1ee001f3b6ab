"""Collaborator interfaces consumed by the validation pipeline.

The orchestrator is written entirely against these protocols.  Exactly
one implementation per protocol is chosen at start-up
(``services.factory``), so providers can be swapped without touching
pipeline code.

Implementations should raise ``TransientServiceError``, ``TimeoutError``
or ``ConnectionError`` for failures worth retrying; anything else fails
the call immediately.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, List, Optional, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from claim_validation.schemas.audit_record import ClaimAuditRecord
    from claim_validation.schemas.claim import ClaimDecision, ClaimRequest, PolicyClause, PolicyType
    from claim_validation.schemas.fraud import ClaimHistoryEntry


@runtime_checkable
class EmbeddingService(Protocol):
    """Turns claim text into a fixed-dimension vector."""

    def embed(self, text: str) -> List[float]:
        """Embed text.

        Args:
            text: Claim description.

        Returns:
            Embedding vector.
        """
        ...


@runtime_checkable
class RetrievalService(Protocol):
    """Vector search over policy clauses."""

    def retrieve(self, vector: Sequence[float], policy_type: "PolicyType") -> List["PolicyClause"]:
        """Return clauses ranked by relevance; may be empty."""
        ...


@runtime_checkable
class DecisionGenerator(Protocol):
    """Produces a structured coverage decision from request and evidence.

    Implementations must instruct the model to cite only the supplied
    clauses and to answer ManualReview when uncertain.  Output that cannot
    be parsed raises ``GeneratorOutputError``.
    """

    def generate(
        self,
        request: "ClaimRequest",
        evidence: Sequence["PolicyClause"],
        supporting_documents: Optional[Sequence[str]] = None,
    ) -> "ClaimDecision":
        ...


@runtime_checkable
class DocumentExtractionService(Protocol):
    """Returns the plain text of a stored supporting document."""

    def extract(self, document_id: str) -> str:
        ...


@runtime_checkable
class AuditSink(Protocol):
    """Append-only store for audit records.

    Implementations must write each record atomically (no partial
    records).
    """

    def append(self, record: "ClaimAuditRecord") -> "ClaimAuditRecord":
        """Append a record and return it with its assigned id and hash.

        Raises:
            IOError: If the write fails.
        """
        ...


@runtime_checkable
class ClaimHistoryProvider(Protocol):
    """Read-only snapshot of earlier claims, used for fraud scoring."""

    def recent_claims(self, policy_number: str, since: date) -> List["ClaimHistoryEntry"]:
        ...
