"""Worker-per-request dispatch of many claims.

Each claim runs on its own worker thread against one shared orchestrator.
Results come back in input order regardless of completion order.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from claim_validation.exceptions import ClaimRejectedError, ValidationCancelledError
from claim_validation.pipeline.orchestrator import DEFAULT_CALLER_ID, ClaimValidationOrchestrator
from claim_validation.schemas.claim import ClaimDecision, ClaimRequest
from claim_validation.schemas.run_errors import ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class BatchItem:
    """One claim to validate with its supporting documents."""

    request: ClaimRequest
    supporting_document_ids: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Outcome of one claim in a batch: a decision or a rejection payload."""

    claim_id: str
    decision: Optional[ClaimDecision] = None
    rejection: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.decision is not None


def validate_claims(
    orchestrator: ClaimValidationOrchestrator,
    items: Sequence[BatchItem],
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    caller_id: str = DEFAULT_CALLER_ID,
    cancel_event: Optional[threading.Event] = None,
    on_progress: Optional[Callable[[int], None]] = None,
) -> List[BatchResult]:
    """Validate claims concurrently.

    Args:
        orchestrator: Shared orchestrator; it holds no per-run state.
        items: Claims to validate.
        max_workers: Upper bound on concurrent workers.
        caller_id: Identity every request is rate limited against.
        cancel_event: Cancels runs that have not finished yet.
        on_progress: Called with 1 after each claim completes.

    Returns:
        One BatchResult per item, in input order.
    """
    if not items:
        return []

    progress_lock = threading.Lock()

    def validate_one(index: int, item: BatchItem) -> Tuple[int, BatchResult]:
        claim_id = item.request.claim_id
        try:
            decision = orchestrator.validate_claim(
                item.request,
                item.supporting_document_ids,
                caller_id=caller_id,
                cancel_event=cancel_event,
            )
            result = BatchResult(claim_id=claim_id, decision=decision)
        except ClaimRejectedError as e:
            result = BatchResult(claim_id=claim_id, rejection=e.to_response())
        except ValidationCancelledError as e:
            result = BatchResult(
                claim_id=claim_id,
                rejection={"status": "Cancelled", "code": ErrorCode.CANCELLED.value, "message": str(e)},
            )

        if on_progress:
            with progress_lock:
                on_progress(1)
        return index, result

    workers = max(1, min(max_workers, len(items)))
    results: List[Optional[BatchResult]] = [None] * len(items)
    logger.info(f"Validating {len(items)} claims with {workers} workers")

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="claimval-batch") as executor:
        futures = {executor.submit(validate_one, i, item): i for i, item in enumerate(items)}

        for future in as_completed(futures):
            idx = futures[future]
            try:
                index, result = future.result()
                results[index] = result
            except Exception as e:
                # validate_claim folds service failures into decisions; this is a bug path.
                logger.error(f"Unexpected error validating claim {items[idx].request.claim_id}: {e}")
                results[idx] = BatchResult(
                    claim_id=items[idx].request.claim_id,
                    decision=ClaimDecision(
                        status="Error",
                        explanation="The claim could not be processed. Please retry the request later.",
                        confidence_score=0.0,
                        error_code=ErrorCode.SERVICE_FAILURE,
                    ),
                )

    completed = sum(1 for r in results if r is not None and r.ok)
    logger.info(f"Batch complete: {completed}/{len(items)} decisions, {len(items) - completed} rejected")
    return results
