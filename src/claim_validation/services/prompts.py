"""Prompts for the decision generator.

Two system prompts: one for claims judged on policy text alone, one for
claims with supporting documents.  Both demand evidence-only citations
and ManualReview on uncertainty.  The user prompt carries the claim,
the retrieved clauses and document requirements scaled to the amount.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from claim_validation.schemas.claim import ClaimRequest, PolicyClause

_RESPONSE_FORMAT = """RETURN ONLY VALID JSON:
{
  "status": "Covered" | "Not Covered" | "Denied" | "Manual Review",
  "explanation": "detailed explanation with clause citations [clause-id]",
  "clause_references": ["clause-id-1", "clause-id-2"],
  "required_documents": ["document-1", "document-2"],
  "confidence_score": 0.0-1.0
}"""

SYSTEM_PROMPT = f"""You are an expert insurance claims adjuster with strict evidence-based decision making.

RULES YOU MUST FOLLOW:
1. Use ONLY the provided policy clauses. Never invent or assume policy language.
2. Every statement must cite a clause id. If you cannot cite it, do not claim it.
3. Always surface contradictions, missing data or ambiguities.
4. If confidence is not high or required evidence is missing, use "Manual Review".
5. Use only the exact policy language provided. Do not interpret beyond what is stated.

CITATION FORMAT:
- Reference clauses by their exact id in the explanation, e.g. "covered under [policy_life_003]"
- Every decision must list at least one clause id in clause_references
- clause_references may only contain ids from the RELEVANT POLICY CLAUSES section

{_RESPONSE_FORMAT}

If uncertain or evidence is insufficient, use "Manual Review" and explain what is missing."""

SYSTEM_PROMPT_WITH_DOCUMENTS = f"""You are an expert insurance claims adjuster with strict evidence-based validation.

RULES YOU MUST FOLLOW:
1. Use ONLY the provided policy clauses and supporting documents.
2. Check that claim details match the supporting documents. Flag any discrepancies.
3. Every statement must cite policy clauses and, where relevant, document evidence.
4. If evidence contradicts the claim or documents contradict each other, use "Manual Review".
5. If the documents do not support the claimed amount or details, use "Manual Review".

VALIDATION CHECKLIST:
- Claim amount matches document amounts (within 10%)
- Diagnosis and treatment details appear in the documents
- Dates are consistent across documents
- Provider information is present

CITATION FORMAT:
- Policy clauses: [clause-id]
- Documents: [Document N]
- clause_references may only contain ids from the RELEVANT POLICY CLAUSES section

{_RESPONSE_FORMAT}

If evidence is contradictory, incomplete or does not support the claim, use "Manual Review"."""

# (exclusive upper bound, guidance); None is the open-ended top band
DOCUMENT_GUIDANCE: List[tuple] = [
    (
        Decimal("500"),
        "DOCUMENT REQUIREMENTS: Low-value claim (< $500). Basic proof only:\n"
        "- Claim form or receipt\n"
        "- Brief description of the incident",
    ),
    (
        Decimal("1000"),
        "DOCUMENT REQUIREMENTS: Moderate claim ($500 - $1,000). Standard documentation:\n"
        "- Claim form\n"
        "- Receipts or invoices\n"
        "- Basic incident documentation (photos, brief report)",
    ),
    (
        Decimal("5000"),
        "DOCUMENT REQUIREMENTS: Significant claim ($1,000 - $5,000). Comprehensive documentation:\n"
        "- Detailed claim form\n"
        "- Itemized receipts or bills\n"
        "- Incident reports or medical records\n"
        "- Photos or damage assessment",
    ),
    (
        None,
        "DOCUMENT REQUIREMENTS: High-value claim (> $5,000). Extensive documentation and verification:\n"
        "- Complete claim form\n"
        "- Comprehensive receipts, bills and invoices\n"
        "- Official reports (medical, police, repair estimates)\n"
        "- Multiple forms of evidence (photos, witness statements)\n"
        "- Professional assessments where applicable\n"
        "Consider Manual Review even with good documentation.",
    ),
]


def document_guidance(claim_amount: Decimal) -> str:
    for bound, guidance in DOCUMENT_GUIDANCE:
        if bound is None or claim_amount < bound:
            return guidance
    return DOCUMENT_GUIDANCE[-1][1]


def _format_clauses(evidence: Sequence[PolicyClause]) -> str:
    return "\n\n".join(f"[{c.clause_id}] {c.text}" for c in evidence)


def build_messages(
    request: ClaimRequest,
    evidence: Sequence[PolicyClause],
    supporting_documents: Optional[Sequence[str]] = None,
) -> List[Dict[str, str]]:
    """Build chat messages for one decision call."""
    claim = (
        "CLAIM DETAILS:\n"
        f"Policy Number: {request.policy_number}\n"
        f"Policy Type: {request.policy_type.value}\n"
        f"Claim Amount: ${request.claim_amount:,.2f}\n"
        f"Description: {request.claim_description}\n\n"
        "RELEVANT POLICY CLAUSES:\n"
        f"{_format_clauses(evidence)}\n\n"
    )

    if supporting_documents:
        documents = "\n\n---\n\n".join(
            f"[Document {i}]\n{text}" for i, text in enumerate(supporting_documents, start=1)
        )
        user_prompt = (
            claim
            + "SUPPORTING DOCUMENTS SUBMITTED:\n"
            + documents
            + "\n\nValidate the claim against the supporting documents and return your decision as JSON."
        )
        system_prompt = SYSTEM_PROMPT_WITH_DOCUMENTS
    else:
        user_prompt = (
            claim
            + document_guidance(request.claim_amount)
            + "\n\nAnalyze this claim and return your decision as JSON."
        )
        system_prompt = SYSTEM_PROMPT

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
