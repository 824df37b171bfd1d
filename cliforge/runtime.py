"""Wiring of the runtime-state components for one tool.

The command layer opens a Runtime once per invocation and passes it (or its
members) to whatever needs state. There is no module-level singleton.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from cliforge.config import CliforgeConfig
from cliforge.paths import history_file_path, state_file_path
from cliforge.state.context import ContextManager
from cliforge.state.defaults import DefaultsProvider, DefaultsResolver
from cliforge.state.history import HistoryEntry, HistoryLog
from cliforge.state.manager import StateManager

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Owner of one StateManager, HistoryLog, ContextManager and resolver."""

    config: CliforgeConfig
    state: StateManager
    history: HistoryLog
    contexts: ContextManager
    defaults: DefaultsResolver

    @classmethod
    def open(
        cls,
        cli_name: str,
        config: CliforgeConfig | None = None,
        state_dir: Path | None = None,
        builtin_defaults: dict[str, str] | None = None,
    ) -> "Runtime":
        """Load configuration, state and history for cli_name.

        Args:
            cli_name: Tool name
            config: Preloaded configuration (default: CliforgeConfig.load)
            state_dir: Overrides the configured state directory
            builtin_defaults: The tool's compiled-in defaults

        Raises:
            CliforgeParseError: if the state or history file is corrupt.
        """
        config = config or CliforgeConfig.load(cli_name)
        directory = state_dir or config.state_dir

        state = StateManager(
            cli_name,
            path=state_file_path(cli_name, directory),
            max_recent_per_list=config.max_recent_per_list,
        )
        history = HistoryLog(
            cli_name,
            max_entries=config.max_history_entries,
            path=history_file_path(cli_name, directory),
        )
        provider = DefaultsProvider(
            state,
            config_defaults=config.defaults,
            builtin_defaults=builtin_defaults,
        )
        logger.debug(f"Opened runtime for {cli_name!r} at {state.state_path.parent}")
        return cls(
            config=config,
            state=state,
            history=history,
            contexts=ContextManager(state),
            defaults=DefaultsResolver(provider, env_vars=config.env_vars),
        )

    def record(self, command: str, exit_code: int, duration: timedelta) -> HistoryEntry:
        """Record a finished command in history and session, saving both."""
        entry = self.history.record_command(
            command, exit_code, duration, context=self.state.current_context_name
        )
        self.state.set_session_command(command)
        self.state.save()
        return entry

    def save(self) -> None:
        self.state.save()
        self.history.save()
