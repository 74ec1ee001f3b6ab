"""Shared helpers for CLI commands."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler

from claim_validation.config.settings import PipelineConfig, load_config
from claim_validation.pipeline.orchestrator import ClaimValidationOrchestrator
from claim_validation.services.factory import ServiceConfig, build_services
from claim_validation.startup import StartupState
from claim_validation.startup import ensure_initialized as _ensure_initialized

logger = logging.getLogger(__name__)


def ensure_initialized() -> StartupState:
    """Load .env and resolve process settings."""
    return _ensure_initialized()


def setup_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging with Rich handler."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = RichHandler(
        console=None,  # Use default stderr
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Suppress noisy third-party loggers
    for name in ("openai", "openai._base_client", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def read_text(text: Optional[str], file: Optional[Path]) -> str:
    """Text from an argument, a file, or stdin ("-").

    Raises:
        SystemExit: If no input was given or the file is unreadable.
    """
    from claim_validation.cli._console import print_err

    if file is not None:
        try:
            return file.read_text(encoding="utf-8")
        except OSError as e:
            print_err(f"Cannot read {file}: {e}")
            raise SystemExit(1)
    if text == "-":
        return sys.stdin.read()
    if text is None:
        print_err("Provide TEXT, --file, or '-' for stdin")
        raise SystemExit(1)
    return text


def load_json(path: Path) -> Any:
    """Parse a JSON file, exiting with a readable error on failure."""
    from claim_validation.cli._console import print_err

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print_err(f"Cannot load {path}: {e}")
        raise SystemExit(1)


def resolve_pipeline_config(config_path: Optional[Path]) -> PipelineConfig:
    """--config, else the file found at startup, else defaults."""
    state = ensure_initialized()
    return load_config(config_path or state.config_path)


def resolve_service_config(
    *,
    index: Optional[Path] = None,
    documents: Optional[Path] = None,
    audit_dir: Optional[Path] = None,
) -> ServiceConfig:
    """Environment settings overridden by command-line options."""
    service_config = ServiceConfig.from_env()
    updates = {}
    if index is not None:
        updates["clause_index_path"] = index
    if documents is not None:
        updates["documents_dir"] = documents
    if audit_dir is not None:
        updates["audit_dir"] = audit_dir
    return service_config.model_copy(update=updates)


def build_orchestrator(
    *,
    index: Optional[Path],
    documents: Optional[Path],
    audit_dir: Optional[Path],
    config_path: Optional[Path],
) -> ClaimValidationOrchestrator:
    """Wire an orchestrator from environment and command-line options.

    Raises:
        SystemExit: If a collaborator cannot be configured.
    """
    from claim_validation.cli._console import print_err

    pipeline = resolve_pipeline_config(config_path)
    service_config = resolve_service_config(index=index, documents=documents, audit_dir=audit_dir)
    try:
        bundle = build_services(service_config, pipeline)
    except (ValueError, OSError) as e:
        print_err(f"Cannot configure services: {e}")
        raise SystemExit(1)

    return ClaimValidationOrchestrator(
        bundle.embedding,
        bundle.retrieval,
        bundle.generator,
        extraction=bundle.extraction,
        audit=bundle.audit,
        history=bundle.history,
        config=pipeline,
    )
