"""Policy-type specific business rules.

Each line of business carries a list of documents every claim needs and
a set of red-flag keywords.  A red flag found in the claim description
(or the decision explanation) can add documents, demand a specialist
review, or send the claim straight to manual review.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from claim_validation.schemas.claim import ClaimDecision, ClaimRequest, PolicyType
from claim_validation.schemas.routing import ReviewFlag


@dataclass(frozen=True)
class RedFlagRule:
    """What a red-flag keyword triggers."""

    keyword: str
    review_flags: Tuple[ReviewFlag, ...] = ()
    force_manual_review: bool = False
    extra_documents: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PolicyTypeRules:
    required_documents: Tuple[str, ...]
    red_flags: Tuple[RedFlagRule, ...] = ()


@dataclass
class PolicyRuleOutcome:
    """Merged effect of the policy-type rules on one claim."""

    required_documents: List[str] = field(default_factory=list)
    review_flags: List[ReviewFlag] = field(default_factory=list)
    force_manual_review: bool = False
    reasons: List[str] = field(default_factory=list)


_MEDICAL = (ReviewFlag.MEDICAL_REVIEW,)
_LEGAL = (ReviewFlag.LEGAL_REVIEW,)

POLICY_RULES: Dict[PolicyType, PolicyTypeRules] = {
    PolicyType.HEALTH: PolicyTypeRules(
        required_documents=("Medical records", "Itemized bill", "Physician statement"),
        red_flags=(
            RedFlagRule("experimental", _MEDICAL, force_manual_review=True),
            RedFlagRule("cosmetic", _MEDICAL, force_manual_review=True),
            RedFlagRule("pre-existing", _MEDICAL),
            RedFlagRule("out-of-network", extra_documents=("Referral authorization",)),
        ),
    ),
    PolicyType.LIFE: PolicyTypeRules(
        required_documents=("Death certificate", "Beneficiary identification", "Policy document"),
        red_flags=(
            RedFlagRule("suicide", _LEGAL, force_manual_review=True),
            RedFlagRule("self-inflicted", _LEGAL, force_manual_review=True),
            RedFlagRule(
                "homicide",
                (ReviewFlag.LEGAL_REVIEW, ReviewFlag.FRAUD_REVIEW),
                force_manual_review=True,
                extra_documents=("Police report",),
            ),
            RedFlagRule("contestability", _LEGAL),
        ),
    ),
    PolicyType.DENTAL: PolicyTypeRules(
        required_documents=("Dental records", "Itemized bill"),
        red_flags=(
            RedFlagRule("cosmetic", _MEDICAL, force_manual_review=True),
            RedFlagRule("implant", extra_documents=("Pre-authorization",)),
            RedFlagRule("orthodontic", _MEDICAL),
        ),
    ),
    PolicyType.VISION: PolicyTypeRules(
        required_documents=("Optometrist prescription", "Itemized receipt"),
        red_flags=(
            RedFlagRule("lasik", force_manual_review=True),
            RedFlagRule("cosmetic", _MEDICAL, force_manual_review=True),
        ),
    ),
    PolicyType.DISABILITY: PolicyTypeRules(
        required_documents=("Physician statement", "Employer statement", "Income verification"),
        red_flags=(
            RedFlagRule("pre-existing", _MEDICAL),
            RedFlagRule("self-inflicted", _LEGAL, force_manual_review=True),
            RedFlagRule("mental health", _MEDICAL),
        ),
    ),
}


def _keyword_pattern(keyword: str) -> re.Pattern:
    # "pre-existing" also matches "pre existing" and "preexisting"
    body = r"[-\s]?".join(re.escape(part) for part in re.split(r"[-\s]", keyword))
    return re.compile(r"\b" + body + r"\b", re.IGNORECASE)


def evaluate_policy_rules(request: ClaimRequest, decision: ClaimDecision) -> PolicyRuleOutcome:
    """Apply the rules table for the request's policy type.

    Returns an empty outcome for lines of business without rules
    (Motor, Home).
    """
    outcome = PolicyRuleOutcome()
    rules = POLICY_RULES.get(request.policy_type)
    if rules is None:
        return outcome

    outcome.required_documents.extend(rules.required_documents)
    text = f"{request.claim_description}\n{decision.explanation}"

    for rule in rules.red_flags:
        if not _keyword_pattern(rule.keyword).search(text):
            continue
        outcome.reasons.append(f"{request.policy_type.value} red flag: '{rule.keyword}'")
        for flag in rule.review_flags:
            if flag not in outcome.review_flags:
                outcome.review_flags.append(flag)
        for doc in rule.extra_documents:
            if doc not in outcome.required_documents:
                outcome.required_documents.append(doc)
        if rule.force_manual_review:
            outcome.force_manual_review = True

    return outcome
