"""Unit tests for the OpenAI embedding and decision-generation adapters."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from claim_validation.exceptions import GeneratorOutputError, TransientServiceError
from claim_validation.schemas.claim import ClaimStatus
from claim_validation.services.openai_services import (
    OpenAIDecisionGenerator,
    OpenAIEmbeddingService,
    parse_generated_decision,
)

DECISION_JSON = (
    '{"Status": "Covered", "Explanation": "Covered under [motor_policy_001].", '
    '"ClauseReferences": ["motor_policy_001"], "RequiredDocuments": ["Invoice"], '
    '"ConfidenceScore": 0.91}'
)


def _chat_response(content, total_tokens=120):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


def _connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))


# -- Parsing -------------------------------------------------------------------


class TestParseGeneratedDecision:
    """Generator output is parsed leniently but validated strictly."""

    def test_pascal_case(self):
        decision = parse_generated_decision(DECISION_JSON)
        assert decision.status == ClaimStatus.COVERED
        assert decision.clause_references == ["motor_policy_001"]
        assert decision.required_documents == ["Invoice"]
        assert decision.confidence_score == 0.91

    def test_snake_case_and_spoken_status(self):
        decision = parse_generated_decision(
            '{"status": "Not Covered", "clause_references": [], "confidence_score": 0.4}'
        )
        assert decision.status == ClaimStatus.NOT_COVERED
        assert decision.confidence_score == 0.4

    def test_confidence_alias(self):
        decision = parse_generated_decision('{"status": "Manual Review", "confidence": 0.2}')
        assert decision.status == ClaimStatus.MANUAL_REVIEW
        assert decision.confidence_score == 0.2

    def test_markdown_fence(self):
        decision = parse_generated_decision(f"Here you go:\n```json\n{DECISION_JSON}\n```")
        assert decision.status == ClaimStatus.COVERED

    def test_unknown_keys_ignored(self):
        decision = parse_generated_decision('{"status": "Denied", "reasoning_steps": ["a", "b"]}')
        assert decision.status == ClaimStatus.DENIED

    @pytest.mark.parametrize("content,message", [
        (None, "empty output"),
        ("   ", "empty output"),
        ("The claim looks fine to me.", "not valid JSON"),
        ('["Covered"]', "not a JSON object"),
        ('{"explanation": "no verdict"}', "has no status"),
        ('{"status": "Maybe"}', "failed validation"),
        ('{"status": "Covered", "confidence_score": 1.7}', "failed validation"),
    ])
    def test_rejected(self, content, message):
        with pytest.raises(GeneratorOutputError) as exc_info:
            parse_generated_decision(content)
        assert message in str(exc_info.value)
        assert exc_info.value.raw_output == content


# -- Embedding -----------------------------------------------------------------


class TestOpenAIEmbeddingService:
    def test_embed(self):
        client = MagicMock()
        client.embeddings.create.return_value = SimpleNamespace(
            data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])]
        )
        service = OpenAIEmbeddingService(client=client, model="text-embedding-3-small")

        assert service.embed("bumper dent") == [0.1, 0.2, 0.3]
        client.embeddings.create.assert_called_once_with(model="text-embedding-3-small", input="bumper dent")

    def test_transient_sdk_error_is_mapped(self):
        client = MagicMock()
        client.embeddings.create.side_effect = _connection_error()
        service = OpenAIEmbeddingService(client=client, model="m")

        with pytest.raises(TransientServiceError) as exc_info:
            service.embed("text")
        assert str(exc_info.value) == "embed: APIConnectionError"
        assert isinstance(exc_info.value.__cause__, openai.APIConnectionError)

    def test_other_errors_propagate(self):
        client = MagicMock()
        client.embeddings.create.side_effect = ValueError("bad input")
        with pytest.raises(ValueError):
            OpenAIEmbeddingService(client=client, model="m").embed("text")


# -- Generation ----------------------------------------------------------------


class TestOpenAIDecisionGenerator:
    def test_generate(self, claim_request, evidence):
        client = MagicMock()
        client.chat.completions.create.return_value = _chat_response(DECISION_JSON)
        generator = OpenAIDecisionGenerator(client=client, model="gpt-4o-mini")

        decision = generator.generate(claim_request, evidence)

        assert decision.status == ClaimStatus.COVERED
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 4096
        assert kwargs["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]
        assert "[motor_policy_007]" in kwargs["messages"][1]["content"]

    def test_documents_reach_the_prompt(self, claim_request, evidence):
        client = MagicMock()
        client.chat.completions.create.return_value = _chat_response(DECISION_JSON)
        OpenAIDecisionGenerator(client=client, model="m").generate(
            claim_request, evidence, ["Invoice total $400.00"]
        )
        user = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "[Document 1]\nInvoice total $400.00" in user

    def test_unparseable_output(self, claim_request, evidence):
        client = MagicMock()
        client.chat.completions.create.return_value = _chat_response("I cannot decide.")
        with pytest.raises(GeneratorOutputError):
            OpenAIDecisionGenerator(client=client, model="m").generate(claim_request, evidence)

    def test_timeout_is_transient(self, claim_request, evidence):
        client = MagicMock()
        client.chat.completions.create.side_effect = openai.APITimeoutError(
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        )
        with pytest.raises(TransientServiceError) as exc_info:
            OpenAIDecisionGenerator(client=client, model="m").generate(claim_request, evidence)
        assert str(exc_info.value) == "generate: APITimeoutError"

    def test_amount_formatting(self, claim_request, evidence):
        client = MagicMock()
        client.chat.completions.create.return_value = _chat_response(DECISION_JSON)
        request = claim_request.model_copy(update={"claim_amount": Decimal("12500")})
        OpenAIDecisionGenerator(client=client, model="m").generate(request, evidence)
        user = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "Claim Amount: $12,500.00" in user
