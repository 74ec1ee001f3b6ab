"""Centralized initialization for claim_validation entry points.

Provides a single point of initialization for:
- Environment variables (.env loading)
- Pipeline configuration file resolution
- Audit ledger directory

The CLI and any embedding application should call ensure_initialized()
before building services.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLAIMVAL_CONFIG"
AUDIT_DIR_ENV_VAR = "CLAIMVAL_AUDIT_DIR"
DEFAULT_CONFIG_NAME = "claim_validation.yaml"


@dataclass
class StartupState:
    """Process-level settings resolved at initialization."""

    project_root: Path
    env_loaded: bool
    config_path: Optional[Path] = None
    audit_dir: Optional[Path] = None


# Module-level state
_initialized: bool = False
_state: Optional[StartupState] = None


def _find_project_root(start_path: Optional[Path] = None) -> Path:
    """Find the project root by looking for a .env or pyproject.toml.

    Searches upward from the current working directory by default.
    """
    current = (start_path or Path.cwd()).resolve()
    for parent in [current] + list(current.parents):
        if (parent / ".env").exists() or (parent / "pyproject.toml").exists():
            return parent
    return current


def _load_env(project_root: Path) -> bool:
    """Load .env from the project root without overriding the environment."""
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
        logger.debug(f"Loaded .env from {env_path}")
        return True
    logger.debug(f"No .env found at {env_path}")
    return False


def _resolve_config_path(project_root: Path) -> Optional[Path]:
    """CLAIMVAL_CONFIG, else claim_validation.yaml in the project root, else None."""
    configured = os.getenv(CONFIG_ENV_VAR)
    if configured:
        path = Path(configured)
        if not path.is_absolute():
            path = project_root / path
        if not path.exists():
            logger.warning(f"{CONFIG_ENV_VAR} points to a missing file: {path}")
        return path

    default = project_root / DEFAULT_CONFIG_NAME
    return default if default.exists() else None


def ensure_initialized() -> StartupState:
    """Ensure the process is initialized (idempotent).

    Loads .env and resolves the config file on first call. Subsequent
    calls return cached state.
    """
    global _initialized, _state

    if _initialized and _state is not None:
        return _state

    project_root = _find_project_root()
    env_loaded = _load_env(project_root)
    audit_dir = os.getenv(AUDIT_DIR_ENV_VAR)
    _state = StartupState(
        project_root=project_root,
        env_loaded=env_loaded,
        config_path=_resolve_config_path(project_root),
        audit_dir=Path(audit_dir) if audit_dir else None,
    )
    _initialized = True
    return _state


def get_state() -> StartupState:
    """Get the current startup state.

    Raises:
        RuntimeError: If not initialized. Call ensure_initialized() first.
    """
    if not _initialized or _state is None:
        raise RuntimeError("startup not initialized. Call ensure_initialized() first.")
    return _state


def reset_for_testing() -> None:
    """Reset initialization state for test isolation.

    Should only be used in tests.
    """
    global _initialized, _state
    _initialized = False
    _state = None
