"""Sensitive-data detection and redaction.

Two passes over free text:

1. Health phrases ("diagnosis:", "prescription:", "patient name:", provider
   names) have their value replaced with ``[REDACTED]``.
2. Structured identifiers are replaced with fixed-width masks that keep a
   little structure for debugging:

       123-45-6789           -> ***-**-****
       SSN 123 45 6789       -> SSN ***-**-****    (label kept)
       555-123-4567          -> 555-***-****       (area code kept)
       +1 (212) 555 0100     -> (212) ***-****
       jane@example.com      -> ***@example.com    (domain kept)
       4111 1111 1111 1234   -> ****-****-****-1234
       01/15/1985            -> **/**/****
       ZIP 94107             -> ZIP 941**          (region kept)

Every mask holds fewer identifier characters than the text it replaces, and
the identifier pass repeats until nothing changes, so
``redact(redact(x)) == redact(x)``.
"""

import re
from typing import Dict, List, Tuple

# ── Identifier patterns (applied in this order) ──────────────────────

CREDIT_CARD_PATTERN = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?(\d{4})\b")
# Dashed numbers anywhere, other layouts only after an SSN label
SSN_PATTERN = re.compile(
    r"\b((?i:ssn|social\s+security(?:\s+(?:number|no\.?))?)\s*[:#]?\s*)\d{3}[-\s]?\d{2}[-\s]?\d{4}(?!\d)"
    r"|(?<!\d)\d{3}-\d{2}-\d{4}(?!\d)"
)
PHONE_PATTERN = re.compile(
    r"(?:(?<![\w+])\+?1[-.\s]?)?"
    r"(?:\((\d{3})\)[-.\s]?|(?:(?<!\d)|(?<=\+1))(\d{3})[-.\s]?)"
    r"\d{3}[-.\s]?\d{4}(?!\d)"
)
EMAIL_PATTERN = re.compile(
    r"(?<![\w.%+@-])[a-zA-Z0-9][a-zA-Z0-9._%+-]*@([a-zA-Z0-9-]+(?:\.[a-zA-Z0-9-]+)*\.[a-zA-Z]{2,})\b"
)
DATE_OF_BIRTH_PATTERN = re.compile(
    r"\b(?:0?[1-9]|1[0-2])[/-](?:0?[1-9]|[12]\d|3[01])[/-](?:19|20)\d{2}\b"
)
# Needs a ZIP label or a ", ST " address tail; bare five-digit amounts stay
POSTAL_CODE_PATTERN = re.compile(
    r"((?:\b(?i:zip|postal)(?:\s*(?i:code))?\s*[:#]?\s*)|(?:,\s*[A-Z]{2}\s+))(\d{3})\d{2}(?:-\d{4})?(?!\d)"
)

# ── Health phrase patterns ───────────────────────────────────────────

PHI_PATTERNS: List[Tuple[str, re.Pattern, str]] = [
    (
        "patient_name",
        re.compile(r"\b((?:patient|member|insured)\s+name)\s*:\s*[^.,;\n]+", re.IGNORECASE),
        r"\1: [REDACTED]",
    ),
    (
        "diagnosis",
        re.compile(r"\b(diagnosis|diagnosed\s+with)\s*:\s*[^.,;\n]+", re.IGNORECASE),
        r"\1: [REDACTED]",
    ),
    (
        "medication",
        re.compile(r"\b(prescription|medication|drug)\s*:\s*[^.,;\n]+", re.IGNORECASE),
        r"\1: [REDACTED]",
    ),
    (
        "procedure",
        re.compile(r"\b(procedure|treatment|surgery)\s*:\s*[^.,;\n]+", re.IGNORECASE),
        r"\1: [REDACTED]",
    ),
    (
        "provider",
        # Label is case-insensitive, the name itself must be capitalized
        re.compile(r"\b((?i:doctor|physician|provider|dr\.?))\s+(?:(?i:name)\s*:\s*)?[A-Z][a-z]+\s+[A-Z][a-z]+"),
        r"\1 [REDACTED]",
    ),
]

IDENTIFIER_PATTERNS: Dict[str, re.Pattern] = {
    "credit_card": CREDIT_CARD_PATTERN,
    "ssn": SSN_PATTERN,
    "phone": PHONE_PATTERN,
    "email": EMAIL_PATTERN,
    "date_of_birth": DATE_OF_BIRTH_PATTERN,
    "postal_code": POSTAL_CODE_PATTERN,
}


def _mask_ssn(match: re.Match) -> str:
    return f"{match.group(1) or ''}***-**-****"


def _mask_phone(match: re.Match) -> str:
    if match.group(1):
        return f"({match.group(1)}) ***-****"
    return f"{match.group(2)}-***-****"


def _mask_email(match: re.Match) -> str:
    return f"***@{match.group(1)}"


def _mask_card(match: re.Match) -> str:
    return f"****-****-****-{match.group(1)}"


def _mask_postal(match: re.Match) -> str:
    return f"{match.group(1)}{match.group(2)}**"


def mask_identifier(value: str, keep: int = 4) -> str:
    """Mask an identifier, keeping only its last ``keep`` characters."""
    if not value:
        return "****"
    if len(value) > keep:
        return f"****{value[-keep:]}"
    return "****"


class SensitiveDataMasker:
    """Detects and redacts personal and health information."""

    def detect_types(self, text: str) -> Dict[str, int]:
        """Count matches per sensitive-data category.

        Only categories with at least one match are returned.  Values are
        never returned or logged, only counts.
        """
        if not text:
            return {}
        counts: Dict[str, int] = {}
        for category, pattern in IDENTIFIER_PATTERNS.items():
            n = sum(1 for _ in pattern.finditer(text))
            if n:
                counts[category] = n
        for category, pattern, _ in PHI_PATTERNS:
            n = len(pattern.findall(text))
            if n:
                counts[category] = n
        return counts

    def contains_sensitive_data(self, text: str) -> bool:
        return bool(self.detect_types(text))

    def redact(self, text: str) -> str:
        """Redact health phrases, then structured identifiers."""
        if not text:
            return text
        for _, pattern, replacement in PHI_PATTERNS:
            text = pattern.sub(replacement, text)
        return self.redact_identifiers(text)

    def redact_identifiers(self, text: str) -> str:
        """Replace structured identifiers with fixed-width masks.

        A mask can sit next to leftover digits that now form a new match, so
        passes repeat until the text is stable.
        """
        if not text:
            return text
        while True:
            masked = self._mask_once(text)
            if masked == text:
                return masked
            text = masked

    @staticmethod
    def _mask_once(text: str) -> str:
        text = CREDIT_CARD_PATTERN.sub(_mask_card, text)
        text = SSN_PATTERN.sub(_mask_ssn, text)
        text = PHONE_PATTERN.sub(_mask_phone, text)
        text = EMAIL_PATTERN.sub(_mask_email, text)
        text = DATE_OF_BIRTH_PATTERN.sub("**/**/****", text)
        text = POSTAL_CODE_PATTERN.sub(_mask_postal, text)
        return text

    def mask_policy_number(self, policy_number: str) -> str:
        return mask_identifier(policy_number)

    def mask_member_id(self, member_id: str) -> str:
        return mask_identifier(member_id)
