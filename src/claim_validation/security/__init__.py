"""Input guardrails: threat scanning, sensitive-data masking, rate limiting."""

from claim_validation.security.pii_masker import SensitiveDataMasker
from claim_validation.security.rate_limiter import FixedWindowRateLimiter
from claim_validation.security.threat_scanner import ThreatScanner

__all__ = ["FixedWindowRateLimiter", "SensitiveDataMasker", "ThreatScanner"]
