"""Error taxonomy and pipeline states for claim validation runs.

Provides stable codes for classifying every non-happy outcome. These codes
are returned to callers and written to the audit ledger for consistent
categorization.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes surfaced to callers."""

    SECURITY_VIOLATION = "SECURITY_VIOLATION"  # Threat scan or malformed input
    EVIDENCE_GAP = "EVIDENCE_GAP"  # Retrieval returned no usable clauses
    VALIDATION_FAILURE = "VALIDATION_FAILURE"  # Citation or contradiction check failed
    SERVICE_FAILURE = "SERVICE_FAILURE"  # External call exhausted its retry budget
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"  # Caller over its window quota
    CANCELLED = "CANCELLED"  # Caller went away mid-run


class PipelineState(str, Enum):
    """States of a single validation run."""

    RECEIVED = "Received"
    THREAT_CHECKED = "ThreatChecked"
    EMBEDDED = "Embedded"
    RETRIEVED = "Retrieved"
    GENERATED = "Generated"
    CITATION_CHECKED = "CitationChecked"
    CONTRADICTION_CHECKED = "ContradictionChecked"
    RULE_APPLIED = "RuleApplied"
    REDACTED = "Redacted"
    AUDITED = "Audited"
    DONE = "Done"

    # Terminal failure states
    REJECTED = "Rejected"
    ERRORED = "Errored"
