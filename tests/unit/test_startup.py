"""Tests for process initialization."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from claim_validation import startup


@pytest.fixture(autouse=True)
def reset_startup():
    startup.reset_for_testing()
    yield
    startup.reset_for_testing()


@pytest.fixture
def project(tmp_path, monkeypatch):
    root = tmp_path / "project"
    (root / "sub").mkdir(parents=True)
    (root / "pyproject.toml").write_text("[project]\nname = 'x'\n", encoding="utf-8")
    monkeypatch.chdir(root / "sub")
    return root


class TestFindProjectRoot:
    def test_walks_up_to_marker(self, project):
        assert startup._find_project_root(project / "sub") == project.resolve()

    def test_env_file_is_a_marker(self, tmp_path):
        (tmp_path / ".env").write_text("", encoding="utf-8")
        assert startup._find_project_root(tmp_path) == tmp_path.resolve()


class TestEnsureInitialized:
    """Idempotent .env loading and config resolution."""

    def test_state(self, project):
        (project / ".env").write_text("CLAIMVAL_TEST_MARKER=from-dotenv\n", encoding="utf-8")
        (project / "claim_validation.yaml").write_text("retry:\n  max_attempts: 2\n", encoding="utf-8")

        with patch.dict("os.environ", {}, clear=True):
            state = startup.ensure_initialized()
            assert os.environ["CLAIMVAL_TEST_MARKER"] == "from-dotenv"

        assert state.project_root == project.resolve()
        assert state.env_loaded is True
        assert state.config_path == project.resolve() / "claim_validation.yaml"
        assert state.audit_dir is None

    def test_environment_wins_over_dotenv(self, project):
        (project / ".env").write_text("CLAIMVAL_TEST_MARKER=from-dotenv\n", encoding="utf-8")
        with patch.dict("os.environ", {"CLAIMVAL_TEST_MARKER": "from-shell"}, clear=True):
            startup.ensure_initialized()
            assert os.environ["CLAIMVAL_TEST_MARKER"] == "from-shell"

    def test_cached(self, project):
        with patch.dict("os.environ", {}, clear=True):
            first = startup.ensure_initialized()
            assert startup.ensure_initialized() is first
            assert startup.get_state() is first

    def test_config_and_audit_from_environment(self, project):
        env = {"CLAIMVAL_CONFIG": "conf/override.yaml", "CLAIMVAL_AUDIT_DIR": "/var/audit"}
        with patch.dict("os.environ", env, clear=True):
            state = startup.ensure_initialized()
        assert state.env_loaded is False
        assert state.config_path == project.resolve() / "conf" / "override.yaml"
        assert state.audit_dir == Path("/var/audit")

    def test_no_config_file(self, project):
        with patch.dict("os.environ", {}, clear=True):
            assert startup.ensure_initialized().config_path is None

    def test_get_state_before_init(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            startup.get_state()
