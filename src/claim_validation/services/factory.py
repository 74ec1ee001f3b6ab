"""Selects one implementation per collaborator at process start.

The pipeline only sees the protocols in ``services.interfaces``; this
module decides which concrete adapters stand behind them.

Environment variables (read by ``ServiceConfig.from_env``):
    CLAIMVAL_MODEL_PROVIDER   - "openai" (default)
    CLAIMVAL_CLAUSE_INDEX     - path to the JSON clause index
    CLAIMVAL_DOCUMENTS_DIR    - directory of extracted document text
    CLAIMVAL_AUDIT_DIR        - audit ledger directory (default: output/audit)
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, field_validator

from claim_validation.config.settings import PipelineConfig
from claim_validation.services.audit_ledger import AuditLedger
from claim_validation.services.document_store import FileDocumentStore
from claim_validation.services.interfaces import (
    AuditSink,
    ClaimHistoryProvider,
    DecisionGenerator,
    DocumentExtractionService,
    EmbeddingService,
    RetrievalService,
)
from claim_validation.services.local_index import LocalClauseIndex

logger = logging.getLogger(__name__)


class ModelProvider(str, Enum):
    """Supported embedding / generation providers."""

    OPENAI = "openai"


class ServiceConfig(BaseModel):
    """Which adapters to build and where their data lives."""

    model_provider: ModelProvider = ModelProvider.OPENAI
    clause_index_path: Optional[Path] = None
    documents_dir: Optional[Path] = None
    audit_dir: Path = Path("output/audit")

    model_config = {"extra": "forbid"}

    @field_validator("clause_index_path", "documents_dir", "audit_dir", mode="before")
    @classmethod
    def convert_paths(cls, v):
        """Convert string paths to Path objects."""
        if isinstance(v, str):
            return Path(v) if v else None
        return v

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        values = {
            "model_provider": os.getenv("CLAIMVAL_MODEL_PROVIDER", ModelProvider.OPENAI.value),
            "clause_index_path": os.getenv("CLAIMVAL_CLAUSE_INDEX"),
            "documents_dir": os.getenv("CLAIMVAL_DOCUMENTS_DIR"),
        }
        audit_dir = os.getenv("CLAIMVAL_AUDIT_DIR")
        if audit_dir:
            values["audit_dir"] = audit_dir
        return cls(**values)


@dataclass
class ServiceBundle:
    """The collaborators one orchestrator is wired with."""

    embedding: EmbeddingService
    retrieval: RetrievalService
    generator: DecisionGenerator
    extraction: Optional[DocumentExtractionService]
    audit: AuditSink
    history: Optional[ClaimHistoryProvider]


class ServiceFactory:
    """Creates collaborator implementations from a ServiceConfig."""

    @staticmethod
    def create_embedding(config: ServiceConfig, pipeline: PipelineConfig) -> EmbeddingService:
        if config.model_provider == ModelProvider.OPENAI:
            from claim_validation.services.openai_services import OpenAIEmbeddingService

            return OpenAIEmbeddingService(timeout=pipeline.retry.timeout_seconds)
        raise ValueError(f"Unsupported model provider: {config.model_provider}")

    @staticmethod
    def create_generator(config: ServiceConfig, pipeline: PipelineConfig) -> DecisionGenerator:
        if config.model_provider == ModelProvider.OPENAI:
            from claim_validation.services.openai_services import OpenAIDecisionGenerator

            return OpenAIDecisionGenerator(timeout=pipeline.retry.timeout_seconds)
        raise ValueError(f"Unsupported model provider: {config.model_provider}")

    @staticmethod
    def create_retrieval(config: ServiceConfig, pipeline: PipelineConfig) -> RetrievalService:
        if config.clause_index_path is None:
            raise ValueError("No clause index configured. Set CLAIMVAL_CLAUSE_INDEX or pass --index.")
        return LocalClauseIndex.from_file(
            config.clause_index_path,
            top_k=pipeline.retrieval.top_k,
            min_score=pipeline.retrieval.min_score,
        )

    @staticmethod
    def create_extraction(config: ServiceConfig) -> Optional[DocumentExtractionService]:
        if config.documents_dir is None:
            return None
        return FileDocumentStore(config.documents_dir)

    @staticmethod
    def create_audit(config: ServiceConfig) -> AuditLedger:
        return AuditLedger(config.audit_dir)


def build_services(config: ServiceConfig, pipeline: Optional[PipelineConfig] = None) -> ServiceBundle:
    """Build every collaborator for one orchestrator.

    Raises:
        ValueError: If a required collaborator cannot be configured.
    """
    pipeline = pipeline or PipelineConfig()
    ledger = ServiceFactory.create_audit(config)
    bundle = ServiceBundle(
        embedding=ServiceFactory.create_embedding(config, pipeline),
        retrieval=ServiceFactory.create_retrieval(config, pipeline),
        generator=ServiceFactory.create_generator(config, pipeline),
        extraction=ServiceFactory.create_extraction(config),
        audit=ledger,
        history=ledger,
    )
    logger.info(
        f"Services ready: provider={config.model_provider.value}, "
        f"index={config.clause_index_path}, audit={config.audit_dir}"
    )
    return bundle
