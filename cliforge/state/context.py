"""Named configuration contexts.

A context is a named set of key/value fields the user can switch between,
similar to kubectl contexts or per-environment profiles. Exactly one context
is current at any time and a context named "default" always exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from cliforge.exceptions import CliforgeValidationError
from cliforge.state.storage import dump_time, load_time

if TYPE_CHECKING:
    from cliforge.state.manager import StateManager

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = "default"


@dataclass
class Context:
    """A named context with configuration values.

    Attributes:
        name: Unique context name
        description: Free-form description
        fields: Configuration values, e.g. {"region": "eu-west-1"}
        created_at: Creation time
        last_used: Last time the context was switched to
        use_count: Number of times the context was switched to
    """

    name: str
    description: str = ""
    fields: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    last_used: datetime | None = None
    use_count: int = 0

    def set(self, key: str, value: str) -> None:
        self.fields[key] = value

    def get(self, key: str) -> str | None:
        return self.fields.get(key)

    def has(self, key: str) -> bool:
        return key in self.fields

    def delete(self, key: str) -> None:
        self.fields.pop(key, None)

    def clear(self) -> None:
        self.fields = {}

    def merge(self, other: Context) -> None:
        """Merge another context's fields into this one; other's values win."""
        self.fields.update(other.fields)

    def clone(self) -> Context:
        """Return a deep copy that shares no mutable state with this context."""
        return Context(
            name=self.name,
            description=self.description,
            fields=dict(self.fields),
            created_at=self.created_at,
            last_used=self.last_used,
            use_count=self.use_count,
        )

    def mark_used(self) -> None:
        """Update the last used time and increment the use count."""
        self.last_used = datetime.now()
        self.use_count += 1

    def validate(self) -> None:
        """Raise CliforgeValidationError if the context is unusable."""
        if not self.name:
            raise CliforgeValidationError("context name cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a plain dictionary for serialization."""
        return {
            "name": self.name,
            "description": self.description,
            "fields": dict(self.fields),
            "created_at": dump_time(self.created_at),
            "last_used": dump_time(self.last_used),
            "use_count": self.use_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Context:
        """Create a context from a dictionary (missing fields get defaults)."""
        raw_fields = data.get("fields") or {}
        created_at = load_time(data.get("created_at"))
        return cls(
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            # Non-string values from hand-edited files are stringified
            fields={str(k): str(v) for k, v in raw_fields.items() if v is not None},
            created_at=created_at or datetime.now(),
            last_used=load_time(data.get("last_used")),
            use_count=int(data.get("use_count") or 0),
        )


class ContextBuilder:
    """Fluent API for building contexts.

    Example:
        >>> ctx = ContextBuilder("prod").with_field("region", "us-east-1").build()
    """

    def __init__(self, name: str):
        self._context = Context(name=name)

    def with_description(self, description: str) -> ContextBuilder:
        self._context.description = description
        return self

    def with_field(self, key: str, value: str) -> ContextBuilder:
        self._context.set(key, value)
        return self

    def with_fields(self, fields: dict[str, str]) -> ContextBuilder:
        for key, value in fields.items():
            self._context.set(key, value)
        return self

    def build(self) -> Context:
        return self._context


@dataclass
class ContextField:
    """Declaration of a field a tool expects to find in its contexts."""

    name: str
    description: str = ""
    type: str = "string"  # string, int, bool
    env_var: str | None = None  # Environment variable to read from
    default: str | None = None
    required: bool = False
    valid_values: list[str] = field(default_factory=list)  # For enum-like fields


class ContextManager:
    """High-level context operations on top of a StateManager.

    This is the surface the command layer uses for `context list/create/use/...`.
    Every mutation goes through the StateManager, which owns the data.
    """

    def __init__(self, state_manager: StateManager):
        self._state = state_manager

    def switch_to(self, name: str) -> None:
        """Mark a context as used and make it current.

        Raises:
            CliforgeInvalidOperationError: if the context does not exist.
        """
        self._state.switch_context(name)

    def create(
        self,
        name: str,
        description: str = "",
        fields: dict[str, str] | None = None,
    ) -> Context:
        ctx = Context(name=name, description=description, fields=dict(fields or {}))
        self._state.create_context(name, ctx)
        return ctx

    def update(self, name: str, fields: dict[str, str]) -> Context:
        """Set the given fields on an existing context, keeping the others."""
        return self._state.set_context_fields(name, fields)

    def delete(self, name: str) -> None:
        self._state.delete_context(name)

    def list(self) -> dict[str, Context]:
        """Return every context keyed by name."""
        return {ctx.name: ctx for ctx in self._state.get_contexts()}

    def current(self) -> Context:
        return self._state.get_current_context()

    def current_name(self) -> str:
        return self._state.current_context_name

    def rename(self, old_name: str, new_name: str) -> None:
        self._state.rename_context(old_name, new_name)

    def export(self, name: str) -> dict[str, Any]:
        """Export a context as a plain dictionary for transfer."""
        return self._state.get_context(name).to_dict()

    def import_context(self, data: dict[str, Any]) -> Context:
        """Re-create an exported context under its stored name.

        Usage counters and timestamps are carried over as exported.

        Raises:
            CliforgeValidationError: if the data carries no name.
            CliforgeAlreadyExistsError: if the name is taken in this state.
        """
        ctx = Context.from_dict(data)
        ctx.validate()
        self._state.create_context(ctx.name, ctx)
        logger.debug(f"Imported context {ctx.name!r}")
        return ctx
