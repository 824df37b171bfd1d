"""Command execution history.

An append-only, capacity-bounded log stored as JSON, separately from the
state file:

    ~/.local/state/{cli_name}/history.json

    {"history": [...], "max_entries": 1000, "version": "1.0"}

Entry IDs are dense and 1-based. When the log overflows, the oldest entries
are dropped and the remaining ones are renumbered.
"""

import logging
import os
import threading
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable

from cliforge.exceptions import CliforgeNotFoundError, CliforgeParseError
from cliforge.paths import history_file_path
from cliforge.state.storage import dump_time, load_time, read_json, write_json

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_ENTRIES = 1000
HISTORY_VERSION = "1.0"


@dataclass
class HistoryEntry:
    """A single recorded command execution."""

    command: str
    exit_code: int = 0
    duration_ms: int = 0
    user: str = ""
    context: str = ""
    working_dir: str = ""
    timestamp: datetime | None = None
    id: int = 0
    success: bool = field(init=False, default=True)

    def __post_init__(self):
        self.success = self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "command": self.command,
            "timestamp": dump_time(self.timestamp),
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "user": self.user,
            "context": self.context,
            "working_dir": self.working_dir,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        # success is always derived from exit_code
        return cls(
            id=int(data.get("id") or 0),
            command=str(data["command"]),
            timestamp=load_time(data.get("timestamp")),
            exit_code=int(data.get("exit_code") or 0),
            duration_ms=int(data.get("duration_ms") or 0),
            user=str(data.get("user") or ""),
            context=str(data.get("context") or ""),
            working_dir=str(data.get("working_dir") or ""),
        )


@dataclass
class HistoryStats:
    """Summary statistics over the history log."""

    total_commands: int = 0
    successful_commands: int = 0
    failed_commands: int = 0
    average_duration_ms: int = 0
    first_command: datetime | None = None
    last_command: datetime | None = None


@dataclass
class CommandFrequency:
    """How often a base command (first word) appears in the history."""

    command: str
    count: int


class HistoryLog:
    """Thread-safe command history with atomic JSON persistence."""

    def __init__(
        self,
        cli_name: str,
        max_entries: int = DEFAULT_MAX_HISTORY_ENTRIES,
        path: Path | None = None,
        autoload: bool = True,
    ):
        """Create a history log for cli_name.

        Args:
            cli_name: Tool name, used to locate the state directory
            max_entries: Capacity; non-positive values use the default
            path: Explicit history file path (defaults to the state home)
            autoload: Load the history file immediately. A missing file is
                fine; a corrupt one raises CliforgeParseError.
        """
        if max_entries <= 0:
            max_entries = DEFAULT_MAX_HISTORY_ENTRIES

        self.cli_name = cli_name
        self._path = Path(path) if path is not None else history_file_path(cli_name)
        self._entries: list[HistoryEntry] = []
        self._max_entries = max_entries
        self._lock = threading.RLock()

        if autoload:
            self.load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def max_entries(self) -> int:
        with self._lock:
            return self._max_entries

    # ==================== Persistence ====================

    def load(self) -> None:
        """Load the history file; a missing file keeps the log as is.

        A capacity stored in the file replaces the constructor's value.

        Raises:
            CliforgeParseError: if the file exists but is malformed.
            CliforgeIOError: if the file cannot be read.
        """
        with self._lock:
            data = read_json(self._path)
            if data is None:
                return

            try:
                entries = [HistoryEntry.from_dict(item) for item in data.get("history") or []]
                stored_max = int(data.get("max_entries") or 0)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise CliforgeParseError("Invalid history file", self._path) from e

            self._entries = entries
            if stored_max > 0:
                self._max_entries = stored_max
            # Keep IDs sequential even if the file was edited by hand
            self._trim()
            self._renumber()
            logger.debug(f"Loaded {len(self._entries)} history entries from {self._path}")

    def save(self) -> None:
        """Atomically write the history file.

        Raises:
            CliforgeIOError: if the directory, temp file or rename fails.
        """
        with self._lock:
            write_json(
                self._path,
                {
                    "history": [entry.to_dict() for entry in self._entries],
                    "max_entries": self._max_entries,
                    "version": HISTORY_VERSION,
                },
            )

    # ==================== Mutation ====================

    def add(self, entry: HistoryEntry) -> HistoryEntry:
        """Append an entry, assigning its ID and timestamp.

        The log keeps its own copy, so later changes to entry do not reach it.

        Returns:
            A copy of the stored entry with its assigned ID.
        """
        with self._lock:
            # replace() re-derives success from exit_code
            stored = replace(
                entry,
                id=self._entries[-1].id + 1 if self._entries else 1,
                timestamp=entry.timestamp or datetime.now(),
            )

            self._entries.append(stored)
            if self._trim():
                self._renumber()
            return replace(stored)

    def record_command(
        self,
        command: str,
        exit_code: int,
        duration: timedelta,
        context: str = "",
    ) -> HistoryEntry:
        """Record a command run by the current user here, then save.

        Raises:
            CliforgeIOError: if saving fails; the entry stays in memory.
        """
        entry = HistoryEntry(
            command=command,
            exit_code=exit_code,
            duration_ms=int(duration.total_seconds() * 1000),
            user=os.environ.get("USER") or os.environ.get("USERNAME") or "",
            context=context,
            working_dir=os.getcwd(),
        )
        with self._lock:
            stored = self.add(entry)
            self.save()
        return stored

    def clear(self) -> None:
        """Empty the log in memory. Call save() to persist the clear."""
        with self._lock:
            self._entries = []

    def set_max_entries(self, max_entries: int) -> None:
        """Resize the log, trimming the oldest entries if needed."""
        if max_entries <= 0:
            max_entries = DEFAULT_MAX_HISTORY_ENTRIES

        with self._lock:
            self._max_entries = max_entries
            if self._trim():
                self._renumber()

    def _trim(self) -> bool:
        overflow = len(self._entries) - self._max_entries
        if overflow <= 0:
            return False
        del self._entries[:overflow]
        logger.debug(f"Trimmed {overflow} oldest history entries")
        return True

    def _renumber(self) -> None:
        for i, entry in enumerate(self._entries, start=1):
            entry.id = i

    # ==================== Queries ====================

    def get(self, entry_id: int) -> HistoryEntry:
        """A copy of the entry with the given ID.

        Raises:
            CliforgeNotFoundError: if no entry has that ID.
        """
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return replace(entry)
        raise CliforgeNotFoundError("history entry", entry_id)

    def get_all(self) -> list[HistoryEntry]:
        """Copies of every entry, oldest first."""
        return self.filter(lambda entry: True)

    def get_recent(self, n: int) -> list[HistoryEntry]:
        """The last n entries, oldest first; all of them if n <= 0."""
        with self._lock:
            selected = self._entries if n <= 0 else self._entries[-n:]
            return [replace(entry) for entry in selected]

    def search(self, pattern: str) -> list[HistoryEntry]:
        """Entries whose command contains pattern, case-insensitively."""
        needle = pattern.lower()
        return self.filter(lambda entry: needle in entry.command.lower())

    def filter(self, predicate: Callable[[HistoryEntry], bool]) -> list[HistoryEntry]:
        with self._lock:
            return [replace(entry) for entry in self._entries if predicate(entry)]

    def get_by_context(self, context: str) -> list[HistoryEntry]:
        return self.filter(lambda entry: entry.context == context)

    def get_successful(self) -> list[HistoryEntry]:
        return self.filter(lambda entry: entry.success)

    def get_failed(self) -> list[HistoryEntry]:
        return self.filter(lambda entry: not entry.success)

    def get_since(self, since: datetime) -> list[HistoryEntry]:
        """Entries recorded strictly after since."""
        return self.filter(lambda entry: entry.timestamp is not None and entry.timestamp > since)

    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> HistoryStats:
        with self._lock:
            stats = HistoryStats(total_commands=len(self._entries))
            if not self._entries:
                return stats

            total_duration = 0
            for entry in self._entries:
                if entry.success:
                    stats.successful_commands += 1
                else:
                    stats.failed_commands += 1
                total_duration += entry.duration_ms

                if entry.timestamp is None:
                    continue
                if stats.first_command is None or entry.timestamp < stats.first_command:
                    stats.first_command = entry.timestamp
                if stats.last_command is None or entry.timestamp > stats.last_command:
                    stats.last_command = entry.timestamp

            stats.average_duration_ms = total_duration // stats.total_commands
            return stats

    def get_most_used_commands(self, limit: int = 0) -> list[CommandFrequency]:
        """Base commands (first word) by descending frequency.

        Ties keep the order in which commands first appeared.
        """
        with self._lock:
            counts = Counter(
                entry.command.split()[0] for entry in self._entries if entry.command.split()
            )

        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        if limit > 0:
            ranked = ranked[:limit]
        return [CommandFrequency(command=cmd, count=count) for cmd, count in ranked]
