"""Pytest configuration for all cliforge tests.

Ensures the project root is on sys.path and isolates every test from the
real state and config homes.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
_root = Path(__file__).resolve().parents[1]
if _root not in [Path(p) for p in sys.path]:
    sys.path.insert(0, str(_root))

from cliforge.state.history import HistoryLog  # noqa: E402
from cliforge.state.manager import StateManager  # noqa: E402

CLI_NAME = "testcli"


@pytest.fixture(autouse=True)
def isolated_homes(tmp_path, monkeypatch):
    """Point XDG state/config homes at a per-test temporary directory."""
    state_home = tmp_path / "state-home"
    config_home = tmp_path / "config-home"
    monkeypatch.setenv("XDG_STATE_HOME", str(state_home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.delenv("TESTCLI_STATE_DIR", raising=False)
    monkeypatch.delenv("TESTCLI_MAX_HISTORY", raising=False)
    return {"state": state_home, "config": config_home}


@pytest.fixture
def state_path(tmp_path) -> Path:
    return tmp_path / "state" / "state.yaml"


@pytest.fixture
def history_path(tmp_path) -> Path:
    return tmp_path / "state" / "history.json"


@pytest.fixture
def manager(state_path) -> StateManager:
    """A StateManager backed by a not-yet-existing file."""
    return StateManager(CLI_NAME, path=state_path)


@pytest.fixture
def history(history_path) -> HistoryLog:
    return HistoryLog(CLI_NAME, path=history_path)
