"""Smart defaults for unspecified parameter values.

Values are resolved from the first tier that has a non-empty value:

    env > recent > context > config > builtin

- env:     an environment variable registered for the key
- recent:  the most recent entry of the recent list named key (or key + "s")
- context: the current context's field key (or its -/_ normalized forms)
- config:  defaults from the tool's configuration file
- builtin: defaults compiled into the tool

Resolution only reads from the StateManager, it never mutates it.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Callable, Iterable

from cliforge.exceptions import CliforgeInvalidOperationError
from cliforge.state.context import Context
from cliforge.state.manager import StateManager
from cliforge.state.recent import RecentTracker

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_VALUES = {"0", "f", "F", "FALSE", "false", "False"}


class DefaultPriority(IntEnum):
    """Which tier supplied a value; higher wins."""

    NONE = 0
    BUILTIN = 1
    CONFIG = 2
    CONTEXT = 3
    RECENT = 4
    ENV = 100

    def __str__(self) -> str:
        return self.name.lower()


def parse_bool(value: str) -> bool:
    """Parse the usual boolean literals.

    Raises:
        ValueError: for anything else.
    """
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


def _key_variants(key: str) -> list[str]:
    """The key itself plus its hyphen/underscore normalized forms."""
    variants = [key]
    for variant in (key.replace("-", "_"), key.replace("_", "-")):
        if variant not in variants:
            variants.append(variant)
    return variants


@dataclass
class DefaultsSnapshot:
    """Every tier's raw values plus the merged result, for debugging."""

    timestamp: str
    context: str
    builtin_defaults: dict[str, str] = field(default_factory=dict)
    config_defaults: dict[str, str] = field(default_factory=dict)
    context_defaults: dict[str, str] = field(default_factory=dict)
    recent_defaults: dict[str, str] = field(default_factory=dict)
    env_defaults: dict[str, str] = field(default_factory=dict)
    merged_defaults: dict[str, str] = field(default_factory=dict)
    priorities: dict[str, str] = field(default_factory=dict)


class _TypedLookup(ABC):
    """Typed accessors over a lookup(key) -> value-or-None method."""

    @abstractmethod
    def lookup(self, key: str) -> str | None:
        """Resolved value for key, or None."""

    def get_with_fallback(self, key: str, fallback: str) -> str:
        value = self.lookup(key)
        return value if value is not None else fallback

    def get_string(self, key: str, fallback: str = "") -> str:
        return self.get_with_fallback(key, fallback)

    def get_int(self, key: str, fallback: int = 0) -> int:
        """Resolved value as int; fallback if missing or unparsable."""
        value = self.lookup(key)
        if value is None:
            return fallback
        try:
            return int(value.strip())
        except ValueError:
            logger.debug(f"Default {key!r}={value!r} is not an int, using fallback")
            return fallback

    def get_bool(self, key: str, fallback: bool = False) -> bool:
        """Resolved value as bool; fallback if missing or unparsable."""
        value = self.lookup(key)
        if value is None:
            return fallback
        try:
            return parse_bool(value.strip())
        except ValueError:
            logger.debug(f"Default {key!r}={value!r} is not a bool, using fallback")
            return fallback


class DefaultsProvider(_TypedLookup):
    """Defaults from usage, context, configuration and built-ins (no env)."""

    def __init__(
        self,
        state_manager: StateManager,
        config_defaults: dict[str, str] | None = None,
        builtin_defaults: dict[str, str] | None = None,
    ):
        self._state = state_manager
        self.config_defaults: dict[str, str] = dict(config_defaults or {})
        self.builtin_defaults: dict[str, str] = dict(builtin_defaults or {})

    def set_config_defaults(self, defaults: dict[str, str]) -> None:
        self.config_defaults = dict(defaults)

    def set_builtin_defaults(self, defaults: dict[str, str]) -> None:
        self.builtin_defaults = dict(defaults)

    def get(self, key: str) -> str | None:
        return self.get_with_priority(key)[0]

    def lookup(self, key: str) -> str | None:
        return self.get(key)

    def get_with_priority(self, key: str) -> tuple[str | None, DefaultPriority]:
        recent, ctx = self._state.get_resolution_view()
        return self._resolve(key, recent, ctx)

    def _resolve(
        self, key: str, recent: RecentTracker, ctx: Context
    ) -> tuple[str | None, DefaultPriority]:
        value = self._from_recent(recent, key)
        if value:
            return value, DefaultPriority.RECENT

        value = self._from_context(ctx, key)
        if value:
            return value, DefaultPriority.CONTEXT

        value = self.config_defaults.get(key)
        if value:
            return value, DefaultPriority.CONFIG

        value = self.builtin_defaults.get(key)
        if value:
            return value, DefaultPriority.BUILTIN

        return None, DefaultPriority.NONE

    @staticmethod
    def _from_recent(recent: RecentTracker, key: str) -> str | None:
        # Also try the plural list name, e.g. "cluster" -> "clusters"
        for list_name in (key, key + "s"):
            values = recent.get(list_name)
            if values:
                return values[0]
        return None

    @staticmethod
    def _from_context(ctx: Context, key: str) -> str | None:
        for variant in _key_variants(key):
            value = ctx.get(variant)
            if value:
                return value
        return None

    def known_keys(self, ctx: Context | None = None) -> set[str]:
        """Every key some static tier or the context defines."""
        keys = set(self.builtin_defaults) | set(self.config_defaults)
        if ctx is not None:
            keys |= set(ctx.fields)
        return keys

    def get_all(self, overrides: dict[str, str] | None = None) -> dict[str, str]:
        """Every known key merged by priority.

        Args:
            overrides: Values of a higher tier (e.g. env) that win over all others
        """
        overrides = overrides or {}
        recent, ctx = self._state.get_resolution_view()

        merged = {}
        for key in sorted(self.known_keys(ctx) | set(overrides)):
            value = overrides.get(key) or self._resolve(key, recent, ctx)[0]
            if value:
                merged[key] = value
        return merged

    def snapshot(self, env_values: dict[str, str] | None = None) -> DefaultsSnapshot:
        """Capture every tier plus the merged value and its tier per key."""
        env_values = env_values or {}
        recent, ctx = self._state.get_resolution_view()

        snapshot = DefaultsSnapshot(
            timestamp=datetime.now().isoformat(),
            context=ctx.name,
            builtin_defaults=dict(self.builtin_defaults),
            config_defaults=dict(self.config_defaults),
            context_defaults=dict(ctx.fields),
            env_defaults=dict(env_values),
        )

        for key in sorted(self.known_keys(ctx) | set(env_values)):
            recent_value = self._from_recent(recent, key)
            if recent_value:
                snapshot.recent_defaults[key] = recent_value

            if env_values.get(key):
                value, priority = env_values[key], DefaultPriority.ENV
            else:
                value, priority = self._resolve(key, recent, ctx)
            if value:
                snapshot.merged_defaults[key] = value
                snapshot.priorities[key] = str(priority)

        return snapshot


class DefaultsResolver(_TypedLookup):
    """Adds environment variable overrides on top of a DefaultsProvider.

    Example:
        >>> resolver = DefaultsResolver(DefaultsProvider(mgr, builtin_defaults={"region": "us-east-1"}))
        >>> resolver.set_env_var("region", "MYCLI_REGION")
        >>> resolver.resolve("region")
        'us-east-1'
    """

    def __init__(self, provider: DefaultsProvider, env_vars: dict[str, str] | None = None):
        self.provider = provider
        # key -> environment variable name
        self.env_vars: dict[str, str] = dict(env_vars or {})

    def set_env_var(self, key: str, env_var_name: str) -> None:
        self.env_vars[key] = env_var_name

    def _from_env(self, key: str) -> str | None:
        env_var_name = self.env_vars.get(key)
        if env_var_name is None:
            return None
        return os.environ.get(env_var_name) or None

    def _env_values(self) -> dict[str, str]:
        values = {}
        for key in self.env_vars:
            value = self._from_env(key)
            if value:
                values[key] = value
        return values

    def resolve(self, key: str) -> str | None:
        """Best value for key, or None if no tier has one."""
        return self.resolve_with_priority(key)[0]

    def lookup(self, key: str) -> str | None:
        return self.resolve(key)

    def resolve_with_priority(self, key: str) -> tuple[str | None, DefaultPriority]:
        value = self._from_env(key)
        if value:
            return value, DefaultPriority.ENV
        return self.provider.get_with_priority(key)

    def get_all(self) -> dict[str, str]:
        """Every known key merged by priority, env overrides included."""
        return self.provider.get_all(self._env_values())

    def snapshot(self) -> DefaultsSnapshot:
        return self.provider.snapshot(self._env_values())


# ==================== Helpers ====================


class DefaultsBuilder:
    """Fluent API for building a defaults map."""

    def __init__(self):
        self._defaults: dict[str, str] = {}

    def set(self, key: str, value: str) -> "DefaultsBuilder":
        self._defaults[key] = value
        return self

    def set_int(self, key: str, value: int) -> "DefaultsBuilder":
        self._defaults[key] = str(value)
        return self

    def set_bool(self, key: str, value: bool) -> "DefaultsBuilder":
        self._defaults[key] = "true" if value else "false"
        return self

    def set_multiple(self, defaults: dict[str, str]) -> "DefaultsBuilder":
        self._defaults.update(defaults)
        return self

    def build(self) -> dict[str, str]:
        return dict(self._defaults)


def merge_defaults(*maps: dict[str, str]) -> dict[str, str]:
    """Merge maps left to right; later maps win and empty values are skipped."""
    result = {}
    for defaults in maps:
        for key, value in defaults.items():
            if value:
                result[key] = value
    return result


def filter_defaults(defaults: dict[str, str], prefix: str) -> dict[str, str]:
    return {key: value for key, value in defaults.items() if key.startswith(prefix)}


def transform_defaults(defaults: dict[str, str], fn: Callable[[str], str]) -> dict[str, str]:
    return {fn(key): value for key, value in defaults.items()}


def validate_defaults(defaults: dict[str, str], allowed_keys: Iterable[str]) -> None:
    """Raise if defaults holds a key outside allowed_keys."""
    allowed = set(allowed_keys)
    for key in defaults:
        if key not in allowed:
            raise CliforgeInvalidOperationError(f"invalid default key: {key}", key=key)
