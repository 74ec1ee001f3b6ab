"""OpenAI-backed embedding and decision-generation adapters."""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import openai
from pydantic import ValidationError

from claim_validation.exceptions import GeneratorOutputError, TransientServiceError
from claim_validation.schemas.claim import ClaimDecision, ClaimRequest, PolicyClause
from claim_validation.services.openai_client import (
    get_chat_model,
    get_embedding_model,
    get_openai_client,
)
from claim_validation.services.prompts import build_messages

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)

# Generator keys in any casing: "ClauseReferences", "clauseReferences", "clause_references"
_FIELD_ALIASES = {
    "status": "status",
    "explanation": "explanation",
    "clausereferences": "clause_references",
    "requireddocuments": "required_documents",
    "confidencescore": "confidence_score",
    "confidence": "confidence_score",
}


def _call(operation: str, fn, *args, **kwargs):
    """Invoke an SDK call, mapping retryable SDK errors to TransientServiceError."""
    try:
        return fn(*args, **kwargs)
    except _TRANSIENT_ERRORS as e:
        raise TransientServiceError(f"{operation}: {type(e).__name__}") from e


def parse_generated_decision(content: Optional[str]) -> ClaimDecision:
    """Parse generator output into a ClaimDecision.

    Accepts bare JSON or JSON wrapped in a markdown code block, with keys
    in PascalCase, camelCase or snake_case.

    Raises:
        GeneratorOutputError: If the content is not a valid decision.
    """
    if not content or not content.strip():
        raise GeneratorOutputError("Generator returned empty output", raw_output=content)

    text = content
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]

    try:
        data = json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise GeneratorOutputError(f"Generator output is not valid JSON: {e}", raw_output=content) from e

    if not isinstance(data, dict):
        raise GeneratorOutputError("Generator output is not a JSON object", raw_output=content)

    fields: Dict[str, Any] = {}
    for key, value in data.items():
        target = _FIELD_ALIASES.get(re.sub(r"[_\s]", "", str(key)).lower())
        if target:
            fields[target] = value

    if "status" not in fields:
        raise GeneratorOutputError("Generator output has no status", raw_output=content)

    try:
        return ClaimDecision.model_validate(fields)
    except (ValidationError, ValueError) as e:
        raise GeneratorOutputError(f"Generator output failed validation: {e}", raw_output=content) from e


class OpenAIEmbeddingService:
    """Embeds claim descriptions with the OpenAI embeddings API."""

    def __init__(self, client: Any = None, model: Optional[str] = None, timeout: float = 30.0) -> None:
        self.client = client or get_openai_client(timeout=timeout)
        self.model = model or get_embedding_model()

    def embed(self, text: str) -> List[float]:
        response = _call("embed", self.client.embeddings.create, model=self.model, input=text)
        return list(response.data[0].embedding)


class OpenAIDecisionGenerator:
    """Generates coverage decisions with a JSON-mode chat completion."""

    def __init__(
        self,
        client: Any = None,
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        timeout: float = 30.0,
    ) -> None:
        self.client = client or get_openai_client(timeout=timeout)
        self.model = model or get_chat_model()
        self.temperature = temperature
        self.max_tokens = max_tokens

    def generate(
        self,
        request: ClaimRequest,
        evidence: Sequence[PolicyClause],
        supporting_documents: Optional[Sequence[str]] = None,
    ) -> ClaimDecision:
        messages = build_messages(request, evidence, supporting_documents)
        response = _call(
            "generate",
            self.client.chat.completions.create,
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(f"Decision generated with {usage.total_tokens} tokens")

        content = response.choices[0].message.content
        return parse_generated_decision(content)
