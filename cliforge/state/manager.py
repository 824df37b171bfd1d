"""Persistent CLI runtime state.

The StateManager owns the whole state aggregate (contexts, recent values,
resource preferences and session data) and is the only component allowed to
mutate it. The aggregate is stored as YAML:

    ~/.local/state/{cli_name}/state.yaml

Every public method holds the manager's lock for its whole duration,
including the file I/O inside load() and save(). Getters hand out copies,
so callers can never mutate the aggregate behind the manager's back.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from cliforge.exceptions import (
    CliforgeAlreadyExistsError,
    CliforgeInvalidOperationError,
    CliforgeNotFoundError,
    CliforgeParseError,
)
from cliforge.paths import state_file_path
from cliforge.state.context import DEFAULT_CONTEXT, Context
from cliforge.state.recent import DEFAULT_MAX_RECENT_ENTRIES, RecentTracker
from cliforge.state.storage import dump_time, load_time, read_yaml, write_yaml

logger = logging.getLogger(__name__)


# ==================== Data Classes ====================


@dataclass
class ResourcePreference:
    """Preferences for one resource instance, keyed by (type, id)."""

    last_used: datetime | None = None
    favorite: bool = False
    metadata: dict[str, str] = field(default_factory=dict)
    use_count: int = 0

    def copy(self) -> "ResourcePreference":
        return ResourcePreference(
            last_used=self.last_used,
            favorite=self.favorite,
            metadata=dict(self.metadata),
            use_count=self.use_count,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_used": dump_time(self.last_used),
            "favorite": self.favorite,
            "metadata": dict(self.metadata),
            "use_count": self.use_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourcePreference":
        return cls(
            last_used=load_time(data.get("last_used")),
            favorite=bool(data.get("favorite", False)),
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
            use_count=int(data.get("use_count") or 0),
        )


@dataclass
class Session:
    """Data about the current CLI session."""

    last_command: str = ""
    last_command_time: datetime | None = None
    working_dir: str = "."

    def copy(self) -> "Session":
        return Session(
            last_command=self.last_command,
            last_command_time=self.last_command_time,
            working_dir=self.working_dir,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_command": self.last_command,
            "last_command_time": dump_time(self.last_command_time),
            "working_dir": self.working_dir,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return cls(
            last_command=str(data.get("last_command") or ""),
            last_command_time=load_time(data.get("last_command_time")),
            working_dir=str(data.get("working_dir") or "."),
        )


# resource type -> resource id -> preference
Preferences = dict[str, dict[str, ResourcePreference]]


@dataclass
class State:
    """The complete persisted CLI state."""

    current_context: str = DEFAULT_CONTEXT
    contexts: dict[str, Context] = field(default_factory=dict)
    recent: RecentTracker = field(default_factory=RecentTracker)
    preferences: Preferences = field(default_factory=dict)
    session: Session = field(default_factory=Session)
    last_modified: datetime = field(default_factory=datetime.now)

    @classmethod
    def default(cls, max_recent_per_list: int = DEFAULT_MAX_RECENT_ENTRIES) -> "State":
        """A fresh state holding only the "default" context."""
        return cls(
            contexts={DEFAULT_CONTEXT: Context(name=DEFAULT_CONTEXT)},
            recent=RecentTracker(max_recent_per_list),
        )

    def ensure_invariants(self) -> None:
        """Backfill the default context and repair a stale current pointer."""
        if DEFAULT_CONTEXT not in self.contexts:
            self.contexts[DEFAULT_CONTEXT] = Context(name=DEFAULT_CONTEXT)
        if self.current_context not in self.contexts:
            if self.current_context:
                logger.warning(
                    f"Current context {self.current_context!r} no longer exists, "
                    f"falling back to {DEFAULT_CONTEXT!r}"
                )
            self.current_context = DEFAULT_CONTEXT

    def copy(self) -> "State":
        return State(
            current_context=self.current_context,
            contexts={name: ctx.clone() for name, ctx in self.contexts.items()},
            recent=self.recent.copy(),
            preferences={
                rtype: {rid: pref.copy() for rid, pref in by_id.items()}
                for rtype, by_id in self.preferences.items()
            },
            session=self.session.copy(),
            last_modified=self.last_modified,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_context": self.current_context,
            "contexts": {name: ctx.to_dict() for name, ctx in self.contexts.items()},
            "recent": self.recent.to_dict(),
            "preferences": {
                rtype: {rid: pref.to_dict() for rid, pref in by_id.items()}
                for rtype, by_id in self.preferences.items()
            },
            "session": self.session.to_dict(),
            "last_modified": dump_time(self.last_modified),
        }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], max_recent_per_list: int = DEFAULT_MAX_RECENT_ENTRIES
    ) -> "State":
        """Build a state from decoded YAML, defaulting any missing section."""
        contexts = {}
        for name, ctx_data in (data.get("contexts") or {}).items():
            ctx = Context.from_dict(ctx_data or {})
            # The map key is authoritative
            ctx.name = str(name)
            contexts[ctx.name] = ctx

        # The configured capacity applies to new lists, not the stored one
        recent = RecentTracker.from_dict(data.get("recent"), max_recent_per_list)

        preferences: Preferences = {}
        for rtype, by_id in (data.get("preferences") or {}).items():
            preferences[str(rtype)] = {
                str(rid): ResourcePreference.from_dict(pref or {})
                for rid, pref in (by_id or {}).items()
            }

        state = cls(
            current_context=str(data.get("current_context") or DEFAULT_CONTEXT),
            contexts=contexts,
            recent=recent,
            preferences=preferences,
            session=Session.from_dict(data.get("session") or {}),
            last_modified=load_time(data.get("last_modified")) or datetime.now(),
        )
        state.ensure_invariants()
        return state


# ==================== Manager ====================


class StateManager:
    """Loads, saves and guards the CLI state aggregate.

    Example:
        >>> mgr = StateManager("mycli")
        >>> mgr.create_context("prod", Context(name="prod", fields={"region": "us-east-1"}))
        >>> mgr.set_current_context("prod")
        >>> mgr.add_recent_value("clusters", "cluster-abc-123")
        >>> mgr.save()
    """

    def __init__(
        self,
        cli_name: str,
        path: Path | None = None,
        max_recent_per_list: int = DEFAULT_MAX_RECENT_ENTRIES,
        autoload: bool = True,
    ):
        """Create a manager for cli_name.

        Args:
            cli_name: Tool name, used to locate the state directory
            path: Explicit state file path (defaults to the state home)
            max_recent_per_list: Capacity of newly created recent lists
            autoload: Load the state file immediately. A missing file is fine;
                a corrupt one raises CliforgeParseError.
        """
        self.cli_name = cli_name
        self._path = Path(path) if path is not None else state_file_path(cli_name)
        self._max_recent = max_recent_per_list
        self._state = State.default(max_recent_per_list)
        self._lock = threading.RLock()

        if autoload:
            self.load()

    @property
    def state_path(self) -> Path:
        return self._path

    # ==================== Persistence ====================

    def load(self) -> None:
        """Load the state file.

        A missing file leaves a fresh default state in place.

        Raises:
            CliforgeParseError: if the file exists but is malformed.
            CliforgeIOError: if the file cannot be read.
        """
        with self._lock:
            data = read_yaml(self._path)
            if data is None:
                self._state = State.default(self._max_recent)
                return

            try:
                state = State.from_dict(data, self._max_recent)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise CliforgeParseError("Invalid state file", self._path) from e

            self._state = state
            logger.debug(
                f"Loaded state from {self._path} "
                f"({len(state.contexts)} contexts, current={state.current_context!r})"
            )

    def save(self) -> None:
        """Atomically write the state file.

        On failure the in-memory state is kept as is; call save() again to
        reconcile.

        Raises:
            CliforgeIOError: if the directory, temp file or rename fails.
        """
        with self._lock:
            self._state.last_modified = datetime.now()
            write_yaml(self._path, self._state.to_dict())

    def reset(self) -> None:
        """Replace the in-memory state with fresh defaults (not persisted)."""
        with self._lock:
            self._state = State.default(self._max_recent)

    def get_state(self) -> State:
        """A deep copy of the whole aggregate, for inspection and debugging."""
        with self._lock:
            return self._state.copy()

    # ==================== Contexts ====================

    @property
    def current_context_name(self) -> str:
        with self._lock:
            return self._state.current_context

    def get_current_context(self) -> Context:
        with self._lock:
            return self._state.contexts[self._state.current_context].clone()

    def set_current_context(self, name: str) -> None:
        """Make an existing context current.

        Raises:
            CliforgeInvalidOperationError: if the context does not exist; the
                current context is left unchanged.
        """
        with self._lock:
            self._require_switchable(name)
            self._state.current_context = name

    def switch_context(self, name: str) -> None:
        """Mark a context used and make it current in one step."""
        with self._lock:
            self._require_switchable(name)
            self._state.contexts[name].mark_used()
            self._state.current_context = name
            logger.debug(f"Switched to context {name!r}")

    def _require_switchable(self, name: str) -> None:
        if name not in self._state.contexts:
            raise CliforgeInvalidOperationError(
                f"cannot switch to context {name!r}: it does not exist", context=name
            )

    def create_context(self, name: str, ctx: Context) -> None:
        """Store a new context under name.

        Raises:
            CliforgeAlreadyExistsError: if the name is taken.
        """
        with self._lock:
            if name in self._state.contexts:
                raise CliforgeAlreadyExistsError("context", name)
            stored = ctx.clone()
            stored.name = name
            stored.validate()
            self._state.contexts[name] = stored

    def update_context(self, name: str, ctx: Context) -> None:
        """Replace an existing context with ctx.

        Raises:
            CliforgeNotFoundError: if the context does not exist.
        """
        with self._lock:
            if name not in self._state.contexts:
                raise CliforgeNotFoundError("context", name)
            stored = ctx.clone()
            stored.name = name
            self._state.contexts[name] = stored

    def set_context_fields(self, name: str, fields: dict[str, str]) -> Context:
        """Set fields on an existing context, keeping its other fields.

        Returns:
            A copy of the updated context.

        Raises:
            CliforgeNotFoundError: if the context does not exist.
        """
        with self._lock:
            ctx = self._state.contexts.get(name)
            if ctx is None:
                raise CliforgeNotFoundError("context", name)
            ctx.fields.update(fields)
            return ctx.clone()

    def delete_context(self, name: str) -> None:
        """Delete a context.

        Raises:
            CliforgeInvalidOperationError: for "default" or the current context.
            CliforgeNotFoundError: if the context does not exist.
        """
        with self._lock:
            if name == DEFAULT_CONTEXT:
                raise CliforgeInvalidOperationError("cannot delete the default context")
            if name not in self._state.contexts:
                raise CliforgeNotFoundError("context", name)
            if name == self._state.current_context:
                raise CliforgeInvalidOperationError(
                    f"cannot delete the current context {name!r}; switch away first"
                )
            del self._state.contexts[name]

    def rename_context(self, old_name: str, new_name: str) -> None:
        """Rename a context, moving the current pointer with it.

        Raises:
            CliforgeInvalidOperationError: when renaming "default".
            CliforgeNotFoundError: if old_name does not exist.
            CliforgeAlreadyExistsError: if new_name is taken.
        """
        with self._lock:
            if old_name not in self._state.contexts:
                raise CliforgeNotFoundError("context", old_name)
            if old_name == DEFAULT_CONTEXT:
                raise CliforgeInvalidOperationError("cannot rename the default context")
            if new_name in self._state.contexts:
                raise CliforgeAlreadyExistsError("context", new_name)

            ctx = self._state.contexts.pop(old_name)
            ctx.name = new_name
            self._state.contexts[new_name] = ctx
            if self._state.current_context == old_name:
                self._state.current_context = new_name

    def list_contexts(self) -> list[str]:
        with self._lock:
            return sorted(self._state.contexts)

    def get_contexts(self) -> list[Context]:
        """Copies of every context, ordered by name."""
        with self._lock:
            return [self._state.contexts[name].clone() for name in sorted(self._state.contexts)]

    def get_context(self, name: str) -> Context:
        """A copy of the named context.

        Raises:
            CliforgeNotFoundError: if the context does not exist.
        """
        with self._lock:
            ctx = self._state.contexts.get(name)
            if ctx is None:
                raise CliforgeNotFoundError("context", name)
            return ctx.clone()

    # ==================== Recent values ====================

    def get_recent(self) -> RecentTracker:
        """A copy of the recent-value tracker."""
        with self._lock:
            return self._state.recent.copy()

    def get_resolution_view(self) -> tuple[RecentTracker, Context]:
        """Copies of the recent tracker and the current context, taken together."""
        with self._lock:
            return (
                self._state.recent.copy(),
                self._state.contexts[self._state.current_context].clone(),
            )

    def add_recent_value(self, list_name: str, value: str) -> None:
        with self._lock:
            self._state.recent.add(list_name, value)

    def get_recent_values(self, list_name: str) -> list[str]:
        with self._lock:
            return self._state.recent.get(list_name)

    def remove_recent_value(self, list_name: str, value: str) -> None:
        with self._lock:
            self._state.recent.remove(list_name, value)

    # ==================== Preferences ====================

    def set_preference(
        self, resource_type: str, resource_id: str, pref: ResourcePreference
    ) -> None:
        """Store a preference, stamping its last use and bumping its count."""
        with self._lock:
            by_id = self._state.preferences.get(resource_type)
            if by_id is None:
                by_id = {}
                self._state.preferences[resource_type] = by_id

            stored = pref.copy()
            stored.last_used = datetime.now()
            stored.use_count += 1
            by_id[resource_id] = stored

    def get_preference(self, resource_type: str, resource_id: str) -> ResourcePreference:
        """A copy of a stored preference.

        Raises:
            CliforgeNotFoundError: if no preference exists for the resource.
        """
        with self._lock:
            by_id = self._state.preferences.get(resource_type)
            if by_id is None or resource_id not in by_id:
                raise CliforgeNotFoundError("preference", f"{resource_type}/{resource_id}")
            return by_id[resource_id].copy()

    def mark_resource_used(self, resource_type: str, resource_id: str) -> None:
        """Record a use of a resource, creating its preference on first use."""
        with self._lock:
            by_id = self._state.preferences.get(resource_type)
            if by_id is None:
                by_id = {}
                self._state.preferences[resource_type] = by_id

            pref = by_id.get(resource_id)
            if pref is None:
                pref = ResourcePreference()
                by_id[resource_id] = pref

            pref.last_used = datetime.now()
            pref.use_count += 1

    # ==================== Session ====================

    def set_session_command(self, command: str) -> None:
        with self._lock:
            self._state.session.last_command = command
            self._state.session.last_command_time = datetime.now()
            self._state.session.working_dir = os.getcwd()

    def get_session(self) -> Session:
        with self._lock:
            return self._state.session.copy()
