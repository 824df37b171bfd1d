"""Configuration management for cliforge."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cliforge.paths import config_file_path
from cliforge.state.history import DEFAULT_MAX_HISTORY_ENTRIES
from cliforge.state.recent import DEFAULT_MAX_RECENT_ENTRIES

logger = logging.getLogger(__name__)


def env_prefix(cli_name: str) -> str:
    """Environment variable prefix for a tool, e.g. "my-cli" -> "MY_CLI"."""
    return cli_name.upper().replace("-", "_")


@dataclass
class CliforgeConfig:
    """Static configuration of the runtime-state layer for one tool.

    Attributes:
        cli_name: Tool name; selects the state and config directories
        state_dir: Directory for state.yaml/history.json (None = state home)
        max_history_entries: Capacity of the history log
        max_recent_per_list: Capacity of newly created recent lists
        defaults: The "config" tier of the defaults chain
        env_vars: Maps default keys to environment variable overrides
    """

    cli_name: str
    state_dir: Path | None = None
    max_history_entries: int = DEFAULT_MAX_HISTORY_ENTRIES
    max_recent_per_list: int = DEFAULT_MAX_RECENT_ENTRIES
    defaults: dict[str, str] = field(default_factory=dict)
    env_vars: dict[str, str] = field(default_factory=dict)

    @classmethod
    def _load_config_file(cls, path: Path) -> dict[str, Any]:
        """Load a YAML config file; problems are logged and yield {}."""
        if not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config file {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {path}: top level is not a mapping")
            return {}
        return data

    @staticmethod
    def _int_setting(value: Any, default: int, name: str) -> int:
        if value is None:
            return default
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid {name} {value!r}, using {default}")
            return default
        return parsed if parsed > 0 else default

    @staticmethod
    def _string_map(value: Any, name: str) -> dict[str, str]:
        if not value:
            return {}
        if not isinstance(value, dict):
            logger.warning(f"Ignoring {name}: expected a mapping")
            return {}
        return {str(k): str(v) for k, v in value.items() if v is not None}

    @classmethod
    def load(cls, cli_name: str, path: Path | None = None) -> "CliforgeConfig":
        """Load configuration from the config file and environment.

        Priority: environment variable > config file > built-in default.

        Args:
            cli_name: Tool name
            path: Explicit config file (defaults to <config-home>/<cli>/config.yaml)
        """
        data = cls._load_config_file(path or config_file_path(cli_name))
        prefix = env_prefix(cli_name)

        state_dir = os.environ.get(f"{prefix}_STATE_DIR") or data.get("state_dir")
        max_history = os.environ.get(f"{prefix}_MAX_HISTORY") or data.get("max_history_entries")

        return cls(
            cli_name=cli_name,
            state_dir=Path(state_dir).expanduser() if state_dir else None,
            max_history_entries=cls._int_setting(
                max_history, DEFAULT_MAX_HISTORY_ENTRIES, "max_history_entries"
            ),
            max_recent_per_list=cls._int_setting(
                data.get("max_recent_per_list"), DEFAULT_MAX_RECENT_ENTRIES, "max_recent_per_list"
            ),
            defaults=cls._string_map(data.get("defaults"), "defaults"),
            env_vars=cls._string_map(data.get("env"), "env"),
        )
