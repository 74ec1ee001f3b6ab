"""Output guardrails: citation validation and contradiction detection."""

from claim_validation.validation.citation_validator import CitationValidator
from claim_validation.validation.contradiction_detector import ContradictionDetector, has_critical

__all__ = ["CitationValidator", "ContradictionDetector", "has_critical"]
