"""Persistent CLI runtime state.

This package provides the state layer the command layer builds on:
- StateManager: owns contexts, recent values, preferences and session data
- ContextManager: high-level context operations (switch, rename, export, ...)
- RecentTracker: bounded most-recently-used value lists with use counts
- HistoryLog: capacity-bounded command history with statistics
- DefaultsResolver: env > recent > context > config > builtin value lookup
"""

from cliforge.state.context import (
    DEFAULT_CONTEXT,
    Context,
    ContextBuilder,
    ContextField,
    ContextManager,
)
from cliforge.state.defaults import (
    DefaultPriority,
    DefaultsBuilder,
    DefaultsProvider,
    DefaultsResolver,
    DefaultsSnapshot,
    filter_defaults,
    merge_defaults,
    transform_defaults,
    validate_defaults,
)
from cliforge.state.history import (
    DEFAULT_MAX_HISTORY_ENTRIES,
    CommandFrequency,
    HistoryEntry,
    HistoryLog,
    HistoryStats,
)
from cliforge.state.manager import ResourcePreference, Session, State, StateManager
from cliforge.state.recent import (
    DEFAULT_MAX_RECENT_ENTRIES,
    RecentItem,
    RecentList,
    RecentStats,
    RecentTracker,
)

__all__ = [
    # Contexts
    "DEFAULT_CONTEXT",
    "Context",
    "ContextBuilder",
    "ContextField",
    "ContextManager",
    # State
    "ResourcePreference",
    "Session",
    "State",
    "StateManager",
    # Recent values
    "DEFAULT_MAX_RECENT_ENTRIES",
    "RecentItem",
    "RecentList",
    "RecentStats",
    "RecentTracker",
    # History
    "DEFAULT_MAX_HISTORY_ENTRIES",
    "CommandFrequency",
    "HistoryEntry",
    "HistoryLog",
    "HistoryStats",
    # Defaults
    "DefaultPriority",
    "DefaultsBuilder",
    "DefaultsProvider",
    "DefaultsResolver",
    "DefaultsSnapshot",
    "filter_defaults",
    "merge_defaults",
    "transform_defaults",
    "validate_defaults",
]
