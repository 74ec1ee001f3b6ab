"""Citation validation for generated claim decisions.

The generator is instructed to cite only clauses it was given.  This
module checks that it did:

    Rule 1  non-error decisions carry at least one citation          (error)
    Rule 2  every cited id exists in the evidence set                (error, per id)
    Rule 3  Covered cites at least one non-exclusion clause          (error)
    Rule 4  hedging, personal-knowledge and vague policy references  (warning)

plus quality warnings for low confidence with many citations, an
explanation that never points at its citations, and Denied decisions
without citations.

A failed result makes the orchestrator discard the generated decision.
"""

import re
from typing import Iterable, List, Sequence

from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimStatus,
    PolicyClause,
    ValidationResult,
)

LOW_CONFIDENCE = 0.5
MANY_CITATIONS = 5
REFERENCE_PREVIEW_CHARS = 100
HALLUCINATION_WARNING_PREFIX = "Potential hallucination indicator: "

UNCERTAINTY_PHRASES = (
    "i think",
    "i believe",
    "probably",
    "maybe",
    "possibly",
    "it seems",
    "appears to be",
    "likely",
    "might be",
    "could be",
    "generally",
    "typically",
    "usually",
    "in most cases",
)

PERSONAL_KNOWLEDGE_PHRASES = (
    "i know that",
    "i understand",
    "in my experience",
    "i recall",
    "i remember",
    "based on my knowledge",
)

VAGUE_REFERENCE_PHRASES = (
    "according to the policy",
    "the policy states",
    "policy guidelines",
    "standard practice",
    "insurance regulations",
    "common practice",
)

# [clause_id], "clause 4.2", "section: 7", "policy_health_001"
CITATION_TOKEN = re.compile(
    r"\[[^\]]+\]|\b(?:clause|section)\s*[:#]?\s*[\w.-]*\d|\b\w*policy_\w+",
    re.IGNORECASE,
)


def _phrase_regex(phrases: Iterable[str]) -> List[tuple]:
    return [(p, re.compile(r"\b" + re.escape(p) + r"\b", re.IGNORECASE)) for p in phrases]


_UNCERTAINTY = _phrase_regex(UNCERTAINTY_PHRASES)
_PERSONAL = _phrase_regex(PERSONAL_KNOWLEDGE_PHRASES)
_VAGUE = _phrase_regex(VAGUE_REFERENCE_PHRASES)


def has_specific_citation(text: str, clause_ids: Sequence[str] = ()) -> bool:
    """True when text names a clause explicitly."""
    if not text:
        return False
    if CITATION_TOKEN.search(text):
        return True
    lowered = text.lower()
    return any(cid.lower() in lowered for cid in clause_ids if cid)


class CitationValidator:
    """Checks that a decision is grounded in the evidence it was given."""

    def validate(self, decision: ClaimDecision, evidence: Sequence[PolicyClause]) -> ValidationResult:
        """Validate the citations of a generated decision.

        Args:
            decision: Decision as returned by the generator.
            evidence: Clauses that were supplied to the generator.

        Returns:
            ValidationResult; ``valid`` is False on any hard failure.
        """
        errors: List[str] = []
        warnings: List[str] = []
        by_id = {c.clause_id: c for c in evidence}
        citations = list(decision.clause_references)

        if decision.status != ClaimStatus.ERROR and not citations:
            errors.append(
                "Decision is missing required citations. All decisions must be backed by policy clauses."
            )

        for cid in self.missing_citations(citations, evidence):
            errors.append(
                f"Cited clause '{cid}' not found in retrieved policy clauses. "
                "This may indicate fabrication."
            )

        if decision.status == ClaimStatus.COVERED and citations:
            cited = [by_id[cid] for cid in citations if cid in by_id]
            if cited and not any(not c.is_exclusion for c in cited):
                errors.append(
                    "'Covered' decisions must cite at least one clause that grants coverage."
                )

        if decision.confidence_score < LOW_CONFIDENCE and len(citations) > MANY_CITATIONS:
            warnings.append(
                f"Low confidence ({decision.confidence_score:.2f}) with many citations "
                f"({len(citations)}) may indicate over-fitting or fabrication."
            )

        if citations and not has_specific_citation(decision.explanation, citations):
            warnings.append("Explanation does not reference the cited policy clauses.")

        warnings.extend(
            f"{HALLUCINATION_WARNING_PREFIX}{indicator}"
            for indicator in self.detect_hallucination_indicators(decision.explanation, citations)
        )

        if decision.status == ClaimStatus.DENIED and not citations:
            warnings.append(
                "'Denied' decisions should cite policy exclusions or limitations for transparency."
            )

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def missing_citations(self, citations: Iterable[str], evidence: Sequence[PolicyClause]) -> List[str]:
        """Cited ids absent from the evidence set, in citation order."""
        known = {c.clause_id for c in evidence}
        missing: List[str] = []
        for cid in citations:
            if cid not in known and cid not in missing:
                missing.append(cid)
        return missing

    def are_citations_valid(self, citations: Sequence[str], evidence: Sequence[PolicyClause]) -> bool:
        return bool(citations) and not self.missing_citations(citations, evidence)

    def detect_hallucination_indicators(self, explanation: str, clause_ids: Sequence[str] = ()) -> List[str]:
        """Hedging and unsupported-reference phrases found in an explanation."""
        if not explanation:
            return []

        indicators: List[str] = []
        for phrase, pattern in _UNCERTAINTY:
            if pattern.search(explanation):
                indicators.append(f"Uncertainty phrase: '{phrase}'")
        for phrase, pattern in _PERSONAL:
            if pattern.search(explanation):
                indicators.append(f"Personal knowledge claim: '{phrase}'")

        vague = any(pattern.search(explanation) for _, pattern in _VAGUE)
        if vague and not has_specific_citation(explanation, clause_ids):
            indicators.append("Vague policy reference without specific clause citation")
        return indicators

    def enhance_explanation(self, explanation: str, cited_clauses: Sequence[PolicyClause]) -> str:
        """Append a "Policy References" block listing the cited clauses."""
        if not explanation or not cited_clauses:
            return explanation

        lines = [explanation, "", "Policy References:"]
        for clause in cited_clauses:
            preview = clause.text
            if len(preview) > REFERENCE_PREVIEW_CHARS:
                preview = preview[:REFERENCE_PREVIEW_CHARS] + "..."
            lines.append(f"- [{clause.clause_id}] {preview}")
        return "\n".join(lines)
