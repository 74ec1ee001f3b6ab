"""Timeout and retry policy for external collaborator calls.

Every call to the embedding, retrieval, generation and audit
collaborators goes through ``call_with_retry``:

- each attempt is bounded by ``RetryConfig.timeout_seconds``
- transient failures (timeouts, throttling, 5xx) are retried with
  exponential backoff up to ``RetryConfig.max_attempts``
- anything else fails fast
- an attempt that overran its timeout is not retried when
  ``retry_timeouts`` is off (audit appends)
- cancellation is honoured before each attempt and during backoff

Exhausted or non-retryable failures surface as ``ServiceFailureError``.
"""

import concurrent.futures
import logging
import threading
import time
from typing import Callable, Optional, TypeVar

from claim_validation.config.settings import RetryConfig
from claim_validation.exceptions import (
    GeneratorOutputError,
    ServiceFailureError,
    TransientServiceError,
    ValidationCancelledError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_KEYWORDS = ("rate", "429", "500", "502", "503", "504", "timeout", "timed out")

# Shared pool that bounds each attempt; a call that overruns keeps its
# worker until it returns, the caller does not wait for it.
_CALL_EXECUTOR = concurrent.futures.ThreadPoolExecutor(
    max_workers=32, thread_name_prefix="claimval-call"
)


class AttemptTimeoutError(TimeoutError):
    """An attempt overran its timeout; its call may still complete later."""


def is_transient(exc: BaseException) -> bool:
    """Whether a failed attempt is worth retrying."""
    if isinstance(exc, (TransientServiceError, TimeoutError, ConnectionError, concurrent.futures.TimeoutError)):
        return True
    error_str = str(exc).lower()
    return any(keyword in error_str for keyword in RETRYABLE_KEYWORDS)


def backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number ``attempt`` (0-based): base * 2^attempt, capped."""
    return min(config.max_delay_seconds, config.base_delay_seconds * (2 ** attempt))


def _run_with_timeout(fn: Callable[[], T], timeout: float) -> T:
    future = _CALL_EXECUTOR.submit(fn)
    try:
        return future.result(timeout=timeout)
    except concurrent.futures.TimeoutError as e:
        future.cancel()
        raise AttemptTimeoutError(f"call timed out after {timeout:.1f}s") from e


def _raise_if_cancelled(cancel_event: Optional[threading.Event], operation: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ValidationCancelledError(f"{operation} cancelled")


def call_with_retry(
    fn: Callable[[], T],
    operation: str,
    config: Optional[RetryConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
    retry_timeouts: bool = True,
) -> T:
    """Call ``fn`` with a per-attempt timeout and bounded retries.

    Args:
        fn: Zero-argument callable performing the external call.
        operation: Name used in logs and in the raised error.
        config: Retry budget and timeout.
        cancel_event: When set, the call stops at the next suspension point.
        sleep: Backoff sleeper, injectable for tests. Ignored while a
            ``cancel_event`` is given; the event's ``wait`` is used instead
            so cancellation interrupts the backoff.
        retry_timeouts: Retry an attempt that overran its timeout. Off for
            appends, whose abandoned attempt may still land.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        ServiceFailureError: Retries exhausted or a non-retryable failure.
        GeneratorOutputError: Passed through unchanged; malformed output is
            a validation problem, not a service failure.
        ValidationCancelledError: ``cancel_event`` was set.
    """
    config = config or RetryConfig()
    last_error: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        _raise_if_cancelled(cancel_event, operation)
        try:
            return _run_with_timeout(fn, config.timeout_seconds)
        except (GeneratorOutputError, ValidationCancelledError):
            raise
        except Exception as e:
            last_error = e
            if isinstance(e, AttemptTimeoutError) and not retry_timeouts:
                logger.error(f"{operation} timed out with an unknown outcome, not retrying")
                raise ServiceFailureError(operation, attempt + 1, e) from e
            if not is_transient(e):
                logger.error(f"{operation} failed with non-retryable error: {type(e).__name__}: {e}")
                raise ServiceFailureError(operation, attempt + 1, e) from e

            if attempt < config.max_attempts - 1:
                wait_time = backoff_delay(attempt, config)
                logger.warning(
                    f"{operation} failed (attempt {attempt + 1}/{config.max_attempts}): "
                    f"{type(e).__name__}. Retrying in {wait_time:.2f} seconds..."
                )
                if cancel_event is not None:
                    if cancel_event.wait(wait_time):
                        raise ValidationCancelledError(f"{operation} cancelled") from e
                else:
                    sleep(wait_time)

    logger.error(f"{operation} failed after {config.max_attempts} attempts: {type(last_error).__name__}")
    raise ServiceFailureError(operation, config.max_attempts, last_error) from last_error
