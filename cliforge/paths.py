"""Filesystem locations for cliforge state and configuration.

Follows the XDG base directory convention:
- state:  $XDG_STATE_HOME  or ~/.local/state
- config: $XDG_CONFIG_HOME or ~/.config
"""

import os
from pathlib import Path

STATE_FILE_NAME = "state.yaml"
HISTORY_FILE_NAME = "history.json"
CONFIG_FILE_NAME = "config.yaml"


def state_home() -> Path:
    """Return the platform state home directory."""
    env_dir = os.environ.get("XDG_STATE_HOME")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".local" / "state"


def config_home() -> Path:
    """Return the platform config home directory."""
    env_dir = os.environ.get("XDG_CONFIG_HOME")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".config"


def state_dir(cli_name: str, override: Path | None = None) -> Path:
    """Directory holding a tool's state and history files."""
    if override is not None:
        return Path(override)
    return state_home() / cli_name


def state_file_path(cli_name: str, override: Path | None = None) -> Path:
    return state_dir(cli_name, override) / STATE_FILE_NAME


def history_file_path(cli_name: str, override: Path | None = None) -> Path:
    return state_dir(cli_name, override) / HISTORY_FILE_NAME


def config_file_path(cli_name: str) -> Path:
    return config_home() / cli_name / CONFIG_FILE_NAME
