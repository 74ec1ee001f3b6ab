"""Pattern-based threat scanner for claim input.

Runs a fixed library of pattern families over untrusted text before any
external service sees it:

    instruction_override   "ignore previous instructions", "new role:", "system:"
    role_manipulation      "you are now", "act as", "pretend to be"
    code_injection         "<script", "eval(", "__import__", comment markers
    sql_injection          "drop table", "'; --", "union select"
    path_traversal         "../"
    hidden_unicode         zero-width and bidi control characters
    oversized_input        > 10,000 characters
    special_characters     > 30% non-alphanumeric, non-space characters
    character_repetition   one character repeated more than 20 times
    encoded_payload        long base64-shaped input

The scanner is total and side-effect free: identical input always yields
identical output, and nothing is logged from here.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple

from claim_validation.schemas.claim import ValidationResult

MAX_INPUT_LENGTH = 10_000
MAX_SPECIAL_CHAR_RATIO = 0.30
MAX_DESCRIPTION_LENGTH = 5_000
MIN_DESCRIPTION_LENGTH = 10
ENCODED_PAYLOAD_MIN_LENGTH = 100

# ── Pattern library ──────────────────────────────────────────────────

INSTRUCTION_OVERRIDE_PHRASES = (
    "ignore previous instructions",
    "ignore all previous",
    "disregard all",
    "disregard previous",
    "forget everything",
    "forget all previous",
    "new instructions:",
    "new role:",
    "system:",
    "system prompt",
    "admin mode",
    "developer mode",
    "sudo mode",
    "jailbreak",
)

ROLE_MANIPULATION_PHRASES = (
    "you are now",
    "act as",
    "pretend to be",
    "roleplay as",
    "imagine you are",
)

CODE_INJECTION_MARKERS = (
    "<script",
    "javascript:",
    "eval(",
    "exec(",
    "execute(",
    "system(",
    "__import__",
    "import os",
    "subprocess",
    "base64.b64decode",
    "<!--",
)

SQL_INJECTION_PATTERNS = (
    ("drop table", re.compile(r"\bdrop\s+table\b", re.IGNORECASE)),
    ("delete from", re.compile(r"\bdelete\s+from\b", re.IGNORECASE)),
    ("insert into", re.compile(r"\binsert\s+into\b", re.IGNORECASE)),
    ("union select", re.compile(r"\bunion\s+(?:all\s+)?select\b", re.IGNORECASE)),
    ("'; --", re.compile(r"['\"]\s*;\s*--")),
    ("or 1=1", re.compile(r"\bor\s+1\s*=\s*1\b", re.IGNORECASE)),
)

HIDDEN_UNICODE = re.compile("[\u200b-\u200f\u202a-\u202e\u2060-\u2069\ufeff]")
CHARACTER_REPETITION = re.compile(r"(.)\1{20,}", re.DOTALL)
BASE64_SHAPE = re.compile(r"^(?:[A-Za-z0-9+/]{4})*(?:[A-Za-z0-9+/]{2}==|[A-Za-z0-9+/]{3}=)?$")
SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)


def _phrase_pattern(phrase: str) -> re.Pattern:
    # Word boundary only where the phrase starts/ends with a word character
    prefix = r"\b" if phrase[0].isalnum() else ""
    suffix = r"\b" if phrase[-1].isalnum() else ""
    body = r"\s+".join(re.escape(part) for part in phrase.split(" "))
    return re.compile(prefix + body + suffix, re.IGNORECASE)


_OVERRIDE_PATTERNS = [(p, _phrase_pattern(p)) for p in INSTRUCTION_OVERRIDE_PHRASES]
_ROLE_PATTERNS = [(p, _phrase_pattern(p)) for p in ROLE_MANIPULATION_PHRASES]


@dataclass(frozen=True)
class ThreatMatch:
    """A single matched threat signal."""

    category: str
    description: str


class ThreatScanner:
    """Detects adversarial or malicious claim input."""

    def __init__(
        self,
        max_length: int = MAX_INPUT_LENGTH,
        max_special_ratio: float = MAX_SPECIAL_CHAR_RATIO,
    ) -> None:
        self.max_length = max_length
        self.max_special_ratio = max_special_ratio

    def scan(self, text: str) -> Tuple[bool, List[str]]:
        """Scan text for threats.

        Args:
            text: Untrusted input.

        Returns:
            Tuple of (is_clean, threats). ``is_clean`` is False iff at least
            one threat string was produced.
        """
        threats = [m.description for m in self.scan_detailed(text)]
        return (not threats, threats)

    def scan_detailed(self, text: str) -> List[ThreatMatch]:
        """Scan text and return categorized matches in library order."""
        matches: List[ThreatMatch] = []
        if not text:
            return matches

        lowered = text.lower()

        for phrase, pattern in _OVERRIDE_PATTERNS:
            if pattern.search(text):
                matches.append(ThreatMatch(
                    "instruction_override",
                    f"Detected instruction override pattern: '{phrase}'",
                ))

        for phrase, pattern in _ROLE_PATTERNS:
            if pattern.search(text):
                matches.append(ThreatMatch(
                    "role_manipulation",
                    f"Detected role manipulation pattern: '{phrase}'",
                ))

        for marker in CODE_INJECTION_MARKERS:
            if marker in lowered:
                matches.append(ThreatMatch(
                    "code_injection",
                    f"Detected code injection marker: '{marker}'",
                ))

        for label, pattern in SQL_INJECTION_PATTERNS:
            if pattern.search(text):
                matches.append(ThreatMatch(
                    "sql_injection",
                    f"Detected SQL injection pattern: '{label}'",
                ))

        if "../" in text or "..\\" in text:
            matches.append(ThreatMatch("path_traversal", "Detected path traversal sequence: '../'"))

        if HIDDEN_UNICODE.search(text):
            matches.append(ThreatMatch(
                "hidden_unicode",
                "Contains hidden unicode control characters that may be used for obfuscation",
            ))

        if len(text) > self.max_length:
            matches.append(ThreatMatch(
                "oversized_input",
                f"Input exceeds safe length limit (length: {len(text)}, limit: {self.max_length})",
            ))

        special = sum(1 for c in text if not c.isalnum() and not c.isspace())
        ratio = special / len(text)
        if ratio > self.max_special_ratio:
            matches.append(ThreatMatch(
                "special_characters",
                f"Excessive special characters detected ({ratio:.0%} of input)",
            ))

        if CHARACTER_REPETITION.search(text):
            matches.append(ThreatMatch(
                "character_repetition",
                "Contains excessive character repetition (potential denial of service)",
            ))

        compact = text.replace("\n", "").replace("\r", "")
        if len(compact) > ENCODED_PAYLOAD_MIN_LENGTH and BASE64_SHAPE.match(compact):
            matches.append(ThreatMatch(
                "encoded_payload",
                "Input appears to be base64 encoded (potential obfuscation)",
            ))

        return matches

    def threat_categories(self, text: str) -> List[str]:
        """Distinct matched categories, in first-seen order."""
        seen: List[str] = []
        for match in self.scan_detailed(text):
            if match.category not in seen:
                seen.append(match.category)
        return seen

    def contains_threat(self, text: str) -> bool:
        is_clean, _ = self.scan(text)
        return not is_clean

    def validate_description(self, description: str) -> ValidationResult:
        """Validate a claim description as model input.

        Threats and length violations are errors; very short descriptions
        only warn.
        """
        if not description or not description.strip():
            return ValidationResult(valid=False, errors=["Claim description cannot be empty"])

        is_clean, threats = self.scan(description)
        if not is_clean:
            return ValidationResult(valid=False, errors=threats)

        if len(description) > MAX_DESCRIPTION_LENGTH:
            return ValidationResult(
                valid=False,
                errors=[f"Claim description exceeds maximum length ({MAX_DESCRIPTION_LENGTH} characters)"],
            )

        warnings = []
        if len(description.strip()) < MIN_DESCRIPTION_LENGTH:
            warnings.append(
                f"Claim description is very short (minimum {MIN_DESCRIPTION_LENGTH} characters recommended)"
            )
        return ValidationResult(valid=True, warnings=warnings)

    def sanitize(self, text: str) -> str:
        """Strip hidden characters and script blocks, normalize whitespace, truncate."""
        if not text:
            return text
        text = HIDDEN_UNICODE.sub("", text)
        text = SCRIPT_BLOCK.sub("", text)
        text = re.sub(r"\s+", " ", text)
        return text[: self.max_length].strip()
