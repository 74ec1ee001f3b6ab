"""Exceptions raised by the claim validation pipeline.

Only rejections and cancellation escape ``validate_claim``; every other
failure is folded into a decision-shaped value with a stable error code.
"""

from typing import Any, Dict, List, Optional

from claim_validation.schemas.run_errors import ErrorCode


class ClaimValidationError(Exception):
    """Base error for the claim validation package."""


class ClaimRejectedError(ClaimValidationError):
    """Request refused before any pipeline work ran."""

    code: ErrorCode = ErrorCode.SECURITY_VIOLATION

    def __init__(self, message: str, reasons: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.reasons = list(reasons or [])

    def to_response(self) -> Dict[str, Any]:
        """Rejection payload safe to return to a client."""
        return {
            "status": "Rejected",
            "code": self.code.value,
            "message": self.message,
            "reasons": self.reasons,
        }


class SecurityViolationError(ClaimRejectedError):
    """Threat scan or malformed-input failure.

    ``reasons`` holds matched pattern categories, never the offending text.
    """

    code = ErrorCode.SECURITY_VIOLATION


class RateLimitExceededError(ClaimRejectedError):
    """Caller exceeded its request quota for the current window."""

    code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(self, message: str, retry_after_seconds: float = 0.0):
        super().__init__(message, reasons=["rate_limit"])
        self.retry_after_seconds = retry_after_seconds

    def to_response(self) -> Dict[str, Any]:
        response = super().to_response()
        response["retry_after_seconds"] = round(self.retry_after_seconds, 3)
        return response


class ServiceFailureError(ClaimValidationError):
    """External collaborator call failed after exhausting its retry budget."""

    def __init__(self, operation: str, attempts: int, cause: BaseException):
        super().__init__(f"{operation} failed after {attempts} attempt(s): {type(cause).__name__}")
        self.operation = operation
        self.attempts = attempts
        self.cause = cause


class TransientServiceError(ClaimValidationError):
    """Collaborator failure worth retrying (timeout, throttling, 5xx)."""


class GeneratorOutputError(ClaimValidationError):
    """Decision generator returned output that could not be parsed."""

    def __init__(self, message: str, raw_output: Optional[str] = None):
        super().__init__(message)
        self.raw_output = raw_output


class ValidationCancelledError(ClaimValidationError):
    """Run cancelled cooperatively at a suspension point."""

    code = ErrorCode.CANCELLED


class InvalidStateTransitionError(ClaimValidationError):
    """Pipeline attempted a transition the state machine does not allow."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid pipeline transition {current} -> {target}")
        self.current = current
        self.target = target
