"""Claim validation orchestrator.

Wraps the single generative decision call in the guardrail stages and
business rules that make its output safe to act on:

    rate limit -> threat scan -> embed -> retrieve -> [extract documents]
    -> generate -> citation check -> contradiction check -> business rules
    -> redact -> audit

Only rejections (``ClaimRejectedError``) and cancellation
(``ValidationCancelledError``) escape ``validate_claim``.  Every other
outcome is a ``ClaimDecision``:

- retrieval found nothing      -> ManualReview, EVIDENCE_GAP
- citations or output invalid  -> ManualReview, confidence 0, VALIDATION_FAILURE
- High/Critical contradiction  -> ManualReview
- collaborator out of retries  -> Error, SERVICE_FAILURE

Usage:
    orchestrator = ClaimValidationOrchestrator(embedding, retrieval, generator)
    decision = orchestrator.validate_claim(request, ["doc_1"])
"""

import logging
import threading
import time
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from claim_validation.config.settings import PipelineConfig
from claim_validation.exceptions import (
    GeneratorOutputError,
    RateLimitExceededError,
    SecurityViolationError,
    ServiceFailureError,
)
from claim_validation.pipeline.context import ValidationContext
from claim_validation.pipeline.retry import call_with_retry
from claim_validation.rules.engine import BusinessRuleEngine
from claim_validation.rules.fraud import extract_claim_fields
from claim_validation.rules.thresholds import dynamic_threshold
from claim_validation.schemas.audit_record import AuditRecordType, ClaimAuditRecord
from claim_validation.schemas.claim import (
    ClaimDecision,
    ClaimRequest,
    ClaimStatus,
    PolicyClause,
    ValidationResult,
)
from claim_validation.schemas.fraud import ClaimHistoryEntry
from claim_validation.schemas.routing import ProcessingMode
from claim_validation.schemas.run_errors import ErrorCode, PipelineState
from claim_validation.security.pii_masker import SensitiveDataMasker
from claim_validation.security.rate_limiter import FixedWindowRateLimiter
from claim_validation.security.threat_scanner import ThreatScanner
from claim_validation.services.interfaces import (
    AuditSink,
    ClaimHistoryProvider,
    DecisionGenerator,
    DocumentExtractionService,
    EmbeddingService,
    RetrievalService,
)
from claim_validation.validation.citation_validator import CitationValidator
from claim_validation.validation.contradiction_detector import ContradictionDetector

logger = logging.getLogger(__name__)

DEFAULT_CALLER_ID = "anonymous"

EVIDENCE_GAP_EXPLANATION = "No relevant policy clauses found for this claim type"
EVIDENCE_GAP_DOCUMENTS = ["Policy Document", "Claim Evidence"]
VALIDATION_FAILURE_EXPLANATION = (
    "The generated decision could not be verified against the retrieved policy "
    "clauses and requires manual review."
)
SERVICE_FAILURE_EXPLANATION = (
    "The claim could not be processed because a required service is unavailable. "
    "Please retry the request later."
)
CONTRADICTION_PREFIX = "Contradictions detected; manual review required:"


class ClaimValidationOrchestrator:
    """Runs the validation pipeline for one claim at a time.

    Instances hold only collaborators and configuration, so one
    orchestrator can serve concurrent requests; all per-run state lives
    in a ``ValidationContext``.
    """

    def __init__(
        self,
        embedding: EmbeddingService,
        retrieval: RetrievalService,
        generator: DecisionGenerator,
        *,
        extraction: Optional[DocumentExtractionService] = None,
        audit: Optional[AuditSink] = None,
        history: Optional[ClaimHistoryProvider] = None,
        config: Optional[PipelineConfig] = None,
        scanner: Optional[ThreatScanner] = None,
        masker: Optional[SensitiveDataMasker] = None,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.embedding = embedding
        self.retrieval = retrieval
        self.generator = generator
        self.extraction = extraction
        self.audit = audit
        self.history = history
        self.config = config or PipelineConfig()

        self.scanner = scanner or ThreatScanner()
        self.masker = masker or SensitiveDataMasker()
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter(self.config.rate_limit)
        self.citation_validator = CitationValidator()
        self.contradiction_detector = ContradictionDetector(self.config)
        self.rule_engine = BusinessRuleEngine(self.config)

        self._sleep = sleep
        self._today = today or date.today

    # ── Public operations ────────────────────────────────────────────

    def validate_claim(
        self,
        request: ClaimRequest,
        supporting_document_ids: Optional[Sequence[str]] = None,
        *,
        caller_id: str = DEFAULT_CALLER_ID,
        cancel_event: Optional[threading.Event] = None,
    ) -> ClaimDecision:
        """Validate a claim and return the guarded decision.

        Args:
            request: Claim to validate.
            supporting_document_ids: Stored documents for the consistency
                check. Missing or unreadable documents are skipped.
            caller_id: Identity the rate limit is counted against.
            cancel_event: Set by the caller to stop the run at the next
                external call.

        Returns:
            ClaimDecision. Never raises for service or validation failures.

        Raises:
            RateLimitExceededError: Caller is over quota. No pipeline work ran.
            SecurityViolationError: Threat scan or malformed input. No
                external service was called.
            ValidationCancelledError: ``cancel_event`` was set. No audit
                record was written.
        """
        return self._run(
            request,
            supporting_document_ids,
            record_type=AuditRecordType.VALIDATION,
            caller_id=caller_id,
            cancel_event=cancel_event,
        )

    def finalize_claim(
        self,
        request: ClaimRequest,
        prior_decision: ClaimDecision,
        supporting_document_ids: Sequence[str],
        *,
        caller_id: str = DEFAULT_CALLER_ID,
        cancel_event: Optional[threading.Event] = None,
    ) -> ClaimDecision:
        """Re-validate a claim with its full evidentiary set.

        The run starts from a clean slate: the prior decision is stored in
        the audit record for comparison but none of its status, warnings
        or downgrades carry over.
        """
        logger.info(
            f"Finalizing claim {request.claim_id} (prior status {prior_decision.status.value}, "
            f"{len(supporting_document_ids)} document(s))"
        )
        return self._run(
            request,
            supporting_document_ids,
            record_type=AuditRecordType.FINALIZATION,
            prior_decision=prior_decision,
            caller_id=caller_id,
            cancel_event=cancel_event,
        )

    # ── Pipeline ─────────────────────────────────────────────────────

    def _run(
        self,
        request: ClaimRequest,
        supporting_document_ids: Optional[Sequence[str]],
        *,
        record_type: AuditRecordType,
        caller_id: str,
        cancel_event: Optional[threading.Event],
        prior_decision: Optional[ClaimDecision] = None,
    ) -> ClaimDecision:
        ctx = ValidationContext(
            request=request,
            supporting_document_ids=list(supporting_document_ids or []),
            cancel_event=cancel_event,
        )
        logger.info(
            f"Validating claim {request.claim_id} (policy {self.masker.mask_policy_number(request.policy_number)}, "
            f"{request.policy_type.value}, amount {request.claim_amount})"
        )

        self._admit(ctx, caller_id)
        self._check_sensitive_data(ctx)

        try:
            evidence = self._retrieve_evidence(ctx)
        except ServiceFailureError as e:
            return self._fail(ctx, e, record_type, prior_decision)

        if not evidence:
            decision = ctx.apply_decision(self._evidence_gap_decision(request))
            logger.warning(f"Claim {request.claim_id}: no policy clauses retrieved, routing to manual review")
            return self._complete(ctx, decision, record_type, prior_decision)

        ctx.supporting_docs = self._extract_documents(ctx)

        try:
            generated, generation_error = self._generate(ctx)
        except ServiceFailureError as e:
            return self._fail(ctx, e, record_type, prior_decision)

        decision = self._check_citations(ctx, generated, generation_error)
        decision = self._check_contradictions(ctx, decision)
        decision = self._apply_rules(ctx, decision)
        return self._complete(ctx, decision, record_type, prior_decision)

    # ── Admission ────────────────────────────────────────────────────

    def _admit(self, ctx: ValidationContext, caller_id: str) -> None:
        """Rate limit then threat scan; both reject before any external call."""
        try:
            self.rate_limiter.check(caller_id)
        except RateLimitExceededError:
            ctx.transition(PipelineState.REJECTED)
            raise

        request = ctx.request
        categories: List[str] = list(self.scanner.threat_categories(request.claim_description))
        for category in self.scanner.threat_categories(request.policy_number):
            # Identifiers are mostly punctuation-separated codes
            if category != "special_characters" and category not in categories:
                categories.append(category)

        description_check = self.scanner.validate_description(request.claim_description)
        if not description_check.valid and "malformed_input" not in categories:
            categories.append("malformed_input")

        if categories:
            ctx.transition(PipelineState.REJECTED)
            logger.warning(f"Claim {ctx.claim_id} rejected by input checks: {', '.join(categories)}")
            raise SecurityViolationError("Claim rejected by input security checks", reasons=categories)

        ctx.transition(PipelineState.THREAT_CHECKED)
        ctx.record_stage(description_check)

    def _check_sensitive_data(self, ctx: ValidationContext) -> None:
        counts = self.masker.detect_types(ctx.request.claim_description)
        if counts:
            summary = ", ".join(f"{category}={count}" for category, count in sorted(counts.items()))
            logger.warning(f"Claim {ctx.claim_id}: sensitive data in description ({summary})")
            ctx.stages[-1].detail["sensitive_data"] = counts

    # ── External calls ───────────────────────────────────────────────

    def _call(self, ctx: ValidationContext, operation: str, fn):
        ctx.check_cancelled()
        return call_with_retry(
            fn,
            operation,
            self.config.retry,
            cancel_event=ctx.cancel_event,
            sleep=self._sleep,
        )

    def _retrieve_evidence(self, ctx: ValidationContext) -> List[PolicyClause]:
        request = ctx.request
        vector = self._call(ctx, "embed", lambda: self.embedding.embed(request.claim_description))
        ctx.transition(PipelineState.EMBEDDED)
        ctx.record_stage(detail={"dimensions": len(vector)})

        clauses = self._call(ctx, "retrieve", lambda: self.retrieval.retrieve(vector, request.policy_type))
        ctx.evidence = list(clauses or [])
        ctx.transition(PipelineState.RETRIEVED)
        ctx.record_stage(detail={"clause_ids": [c.clause_id for c in ctx.evidence]})
        logger.debug(f"Claim {ctx.claim_id}: retrieved {len(ctx.evidence)} clause(s)")
        return ctx.evidence

    def _extract_documents(self, ctx: ValidationContext) -> Dict[str, str]:
        """Extract supporting documents; failures skip the document."""
        if self.extraction is None or not ctx.supporting_document_ids:
            return {}

        texts: Dict[str, str] = {}
        for document_id in ctx.supporting_document_ids:
            try:
                texts[document_id] = self._call(
                    ctx, "extract", lambda doc=document_id: self.extraction.extract(doc)
                )
            except ServiceFailureError as e:
                logger.warning(f"Claim {ctx.claim_id}: skipping document {document_id}: {e}")
        return texts

    def _generate(self, ctx: ValidationContext):
        """Call the generator. Unparseable output is returned as an error, not raised."""
        documents = list(ctx.supporting_docs.values()) or None
        generated: Optional[ClaimDecision] = None
        generation_error: Optional[GeneratorOutputError] = None
        try:
            generated = self._call(
                ctx, "generate", lambda: self.generator.generate(ctx.request, ctx.evidence, documents)
            )
        except GeneratorOutputError as e:
            logger.warning(f"Claim {ctx.claim_id}: generator output rejected: {e}")
            generation_error = e

        ctx.transition(PipelineState.GENERATED)
        ctx.record_stage(detail={"parsed": generated is not None})
        return generated, generation_error

    # ── Guardrails ───────────────────────────────────────────────────

    def _check_citations(
        self,
        ctx: ValidationContext,
        generated: Optional[ClaimDecision],
        generation_error: Optional[GeneratorOutputError],
    ) -> ClaimDecision:
        if generated is None:
            result = ValidationResult(
                valid=False,
                errors=[f"Generator output could not be parsed: {generation_error}"],
            )
            original = {"raw_output": self.masker.redact((generation_error.raw_output or "")[:2000])}
        else:
            result = self.citation_validator.validate(generated, ctx.evidence)
            original = {
                "status": generated.status.value,
                "confidence_score": generated.confidence_score,
                "clause_references": list(generated.clause_references),
                "explanation": self.masker.redact(generated.explanation),
            }

        ctx.transition(PipelineState.CITATION_CHECKED)
        ctx.record_stage(result, detail={"generated": original})

        if result.valid:
            decision = generated
            if result.warnings:
                warnings = list(generated.validation_warnings or []) + result.warnings
                decision = generated.model_copy(update={"validation_warnings": warnings})
            return ctx.apply_decision(decision)

        logger.warning(
            f"Claim {ctx.claim_id}: citation validation failed ({len(result.errors)} error(s)), "
            f"downgrading to ManualReview"
        )
        return ctx.apply_decision(ClaimDecision.manual_review(
            VALIDATION_FAILURE_EXPLANATION,
            error_code=ErrorCode.VALIDATION_FAILURE,
            validation_warnings=result.errors + result.warnings,
        ))

    def _check_contradictions(self, ctx: ValidationContext, decision: ClaimDecision) -> ClaimDecision:
        request = ctx.request
        threshold = dynamic_threshold(
            decision.status,
            request.claim_amount,
            len(decision.clause_references),
            bool(ctx.supporting_document_ids),
            self.config.confidence,
        )
        contradictions = self.contradiction_detector.detect(
            request, decision, ctx.evidence, ctx.supporting_docs, threshold=threshold
        )

        ctx.transition(PipelineState.CONTRADICTION_CHECKED)
        ctx.record_stage(
            ValidationResult(
                valid=not self.contradiction_detector.has_critical(contradictions),
                warnings=[c.summary() for c in contradictions],
            ),
            detail={"threshold": threshold, "count": len(contradictions)},
        )

        if not contradictions:
            return decision

        update = {"contradictions": list(decision.contradictions or []) + contradictions}
        if self.contradiction_detector.has_critical(contradictions):
            lines = self.contradiction_detector.summarize(contradictions)
            update["explanation"] = "\n".join(
                [CONTRADICTION_PREFIX, *[f"- {line}" for line in lines], "", decision.explanation]
            ).strip()
            update["status"] = ClaimStatus.MANUAL_REVIEW
            if decision.error_code is None:
                update["error_code"] = ErrorCode.VALIDATION_FAILURE
            logger.warning(
                f"Claim {ctx.claim_id}: {len(lines)} contradiction(s), "
                f"{decision.status.value} -> ManualReview"
            )
        return ctx.apply_decision(decision.model_copy(update=update))

    def _apply_rules(self, ctx: ValidationContext, decision: ClaimDecision) -> ClaimDecision:
        request = ctx.request
        today = self._today()
        extracted = extract_claim_fields(ctx.supporting_docs.values()) if ctx.supporting_docs else None
        outcome = self.rule_engine.apply(
            request,
            decision,
            ctx.evidence,
            has_supporting_evidence=bool(ctx.supporting_document_ids),
            history=self._history(ctx, today),
            extracted=extracted,
            today=today,
        )

        ctx.transition(PipelineState.RULE_APPLIED)
        ctx.record_stage(
            outcome.temporal,
            detail={
                "processing_mode": outcome.routing.processing_mode.value,
                "tier": outcome.routing.tier.value,
                "confidence_threshold": outcome.confidence_threshold,
                "fraud_risk": outcome.fraud.risk_level.value,
                "forced_review_reasons": outcome.forced_review_reasons,
            },
        )
        return ctx.apply_decision(outcome.decision)

    def _history(self, ctx: ValidationContext, today: date) -> List[ClaimHistoryEntry]:
        """Recent claims on the policy; an unavailable history scores as empty."""
        if self.history is None:
            return []
        since = today - timedelta(days=self.config.fraud.history_window_days)
        try:
            return [
                entry for entry in self.history.recent_claims(ctx.request.policy_number, since)
                if entry.claim_id != ctx.claim_id
            ]
        except Exception as e:
            logger.warning(f"Claim {ctx.claim_id}: claim history unavailable, fraud frequency skipped: {e}")
            return []

    # ── Completion ───────────────────────────────────────────────────

    @staticmethod
    def _evidence_gap_decision(request: ClaimRequest) -> ClaimDecision:
        return ClaimDecision.manual_review(
            EVIDENCE_GAP_EXPLANATION,
            error_code=ErrorCode.EVIDENCE_GAP,
            required_documents=list(EVIDENCE_GAP_DOCUMENTS),
            missing_evidence=[f"No {request.policy_type.value} policy clauses were retrieved"],
        )

    def _redact(self, decision: ClaimDecision) -> ClaimDecision:
        """Mask sensitive data in every free-text field returned to the caller."""
        return decision.model_copy(update={
            "explanation": self.masker.redact(decision.explanation),
            "required_documents": [self.masker.redact(d) for d in decision.required_documents],
            "missing_evidence": (
                [self.masker.redact(m) for m in decision.missing_evidence]
                if decision.missing_evidence is not None else None
            ),
            "validation_warnings": (
                [self.masker.redact(w) for w in decision.validation_warnings]
                if decision.validation_warnings is not None else None
            ),
        })

    def _enforce_invariants(self, ctx: ValidationContext, decision: ClaimDecision) -> ClaimDecision:
        """Last-line guard: dangling citations, uncited coverage and critical contradictions."""
        evidence_ids = {c.clause_id for c in ctx.evidence}
        references = [cid for cid in decision.clause_references if cid in evidence_ids]
        reasons: List[str] = []
        if len(references) != len(decision.clause_references):
            reasons.append("Decision cited clauses outside the retrieved evidence")
        if decision.status == ClaimStatus.COVERED and not references:
            reasons.append("Covered decision has no supporting citation")
        if decision.has_critical_contradictions and decision.status != ClaimStatus.MANUAL_REVIEW:
            reasons.append("Decision has unresolved critical contradictions")

        if not reasons or decision.status == ClaimStatus.ERROR:
            return decision

        logger.error(f"Claim {ctx.claim_id}: final guard downgraded decision: {'; '.join(reasons)}")
        update = {
            "status": ClaimStatus.MANUAL_REVIEW,
            "clause_references": references,
            "validation_warnings": list(decision.validation_warnings or []) + reasons,
        }
        if decision.routing is not None and decision.routing.processing_mode.restrictiveness == 0:
            update["routing"] = decision.routing.model_copy(update={
                "processing_mode": ProcessingMode.MANUAL_REVIEW,
                "required_approvals": max(1, decision.routing.required_approvals),
                "reasons": list(decision.routing.reasons) + reasons,
            })
        return ctx.apply_decision(decision.model_copy(update=update))

    def _complete(
        self,
        ctx: ValidationContext,
        decision: ClaimDecision,
        record_type: AuditRecordType,
        prior_decision: Optional[ClaimDecision],
    ) -> ClaimDecision:
        decision = self._enforce_invariants(ctx, self._redact(decision))
        ctx.transition(PipelineState.REDACTED)
        ctx.record_stage()

        ctx.check_cancelled()
        ctx.transition(PipelineState.AUDITED)
        self._write_audit(ctx, decision, record_type, prior_decision)
        ctx.transition(PipelineState.DONE)

        logger.info(
            f"Claim {ctx.claim_id}: {decision.status.value} "
            f"(confidence {decision.confidence_score:.2f}, {ctx.elapsed_ms}ms)"
        )
        return decision

    def _fail(
        self,
        ctx: ValidationContext,
        failure: ServiceFailureError,
        record_type: AuditRecordType,
        prior_decision: Optional[ClaimDecision],
    ) -> ClaimDecision:
        """Fold an exhausted collaborator call into an Error decision."""
        ctx.transition(PipelineState.ERRORED)
        ctx.record_stage(
            ValidationResult(valid=False, errors=[str(failure)]),
            detail={
                "operation": failure.operation,
                "attempts": failure.attempts,
                "cause": type(failure.cause).__name__,
            },
        )
        decision = ClaimDecision(
            status=ClaimStatus.ERROR,
            explanation=SERVICE_FAILURE_EXPLANATION,
            confidence_score=0.0,
            error_code=ErrorCode.SERVICE_FAILURE,
        )
        logger.error(f"Claim {ctx.claim_id}: {failure}")
        ctx.decision = decision
        ctx.check_cancelled()
        self._write_audit(ctx, decision, record_type, prior_decision)
        return decision

    def _write_audit(
        self,
        ctx: ValidationContext,
        decision: ClaimDecision,
        record_type: AuditRecordType,
        prior_decision: Optional[ClaimDecision],
    ) -> None:
        """Append the run to the audit sink. Failure is logged, never raised."""
        if self.audit is None:
            return

        record = ClaimAuditRecord(
            record_type=record_type,
            claim_id=ctx.claim_id,
            policy_number=ctx.request.policy_number,
            request=ctx.request,
            decision=decision,
            prior_decision=prior_decision,
            evidence_clause_ids=[c.clause_id for c in ctx.evidence],
            supporting_document_ids=list(ctx.supporting_document_ids),
            stages=list(ctx.stages),
            state_history=list(ctx.state_history),
        )
        try:
            call_with_retry(
                lambda: self.audit.append(record),
                "audit",
                self.config.retry,
                sleep=self._sleep,
                retry_timeouts=False,
            )
        except ServiceFailureError as e:
            logger.error(
                f"Audit write failed for claim {ctx.claim_id}: {e}",
                extra={"alert": "audit_write_failed", "claim_id": ctx.claim_id},
            )
