"""Validation pipeline: per-run context, retry policy, orchestrator and batch dispatch."""

from claim_validation.pipeline.batch import BatchItem, BatchResult, validate_claims
from claim_validation.pipeline.context import ValidationContext
from claim_validation.pipeline.orchestrator import ClaimValidationOrchestrator
from claim_validation.pipeline.retry import call_with_retry, is_transient

__all__ = [
    "BatchItem",
    "BatchResult",
    "ClaimValidationOrchestrator",
    "ValidationContext",
    "call_with_retry",
    "is_transient",
    "validate_claims",
]
