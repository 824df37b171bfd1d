"""Recently used values for autocompletion and smart defaults.

Each named list is a bounded most-recently-used ranking of unique string
values. Every item also carries a use counter, so callers can rank either by
recency (list order) or by frequency (get_most_used).
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from cliforge.state.storage import dump_time, load_time

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECENT_ENTRIES = 10


@dataclass
class RecentItem:
    """A single recent value with usage metadata."""

    value: str
    last_used: datetime = field(default_factory=datetime.now)
    use_count: int = 1

    def copy(self) -> "RecentItem":
        return RecentItem(value=self.value, last_used=self.last_used, use_count=self.use_count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "last_used": dump_time(self.last_used),
            "use_count": self.use_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecentItem":
        return cls(
            value=str(data["value"]),
            last_used=load_time(data.get("last_used")) or datetime.now(),
            use_count=int(data.get("use_count") or 1),
        )


@dataclass
class RecentList:
    """Recent values for one category, most recent first."""

    name: str
    entries: list[RecentItem] = field(default_factory=list)
    max: int = DEFAULT_MAX_RECENT_ENTRIES

    def find(self, value: str) -> RecentItem | None:
        for item in self.entries:
            if item.value == value:
                return item
        return None

    def copy(self) -> "RecentList":
        return RecentList(
            name=self.name,
            entries=[item.copy() for item in self.entries],
            max=self.max,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entries": [item.to_dict() for item in self.entries],
            "max": self.max,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "RecentList":
        max_entries = int(data.get("max") or 0)
        if max_entries <= 0:
            max_entries = DEFAULT_MAX_RECENT_ENTRIES

        # Hand-edited files may repeat values or overflow; keep the first occurrence
        entries: list[RecentItem] = []
        seen: set[str] = set()
        for item_data in data.get("entries") or []:
            item = RecentItem.from_dict(item_data)
            if item.value in seen:
                continue
            seen.add(item.value)
            entries.append(item)

        return cls(
            name=str(data.get("name") or name),
            entries=entries[:max_entries],
            max=max_entries,
        )


@dataclass
class RecentStats:
    """Statistics about a recent list."""

    list_name: str
    total_items: int = 0
    max_capacity: int = 0
    average_use_count: float = 0.0
    most_used_value: str = ""
    most_used_count: int = 0
    most_recent_value: str = ""
    most_recent_time: datetime | None = None


class RecentTracker:
    """Manages named recent-value lists.

    Thread-safe on its own; when owned by a StateManager the manager's lock
    is held around every call as well.
    """

    def __init__(self, max_per_list: int = DEFAULT_MAX_RECENT_ENTRIES):
        if max_per_list <= 0:
            max_per_list = DEFAULT_MAX_RECENT_ENTRIES
        self.max_per_list = max_per_list
        self._lists: dict[str, RecentList] = {}
        self._lock = threading.RLock()

    def add(self, list_name: str, value: str) -> None:
        """Record a use of value in list_name.

        An existing value is moved to the front with its count bumped; a new
        value is inserted at the front and the tail is evicted past capacity.
        """
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is None:
                recent = RecentList(name=list_name, max=self.max_per_list)
                self._lists[list_name] = recent

            item = recent.find(value)
            if item is not None:
                item.last_used = datetime.now()
                item.use_count += 1
                recent.entries.remove(item)
                recent.entries.insert(0, item)
                return

            recent.entries.insert(0, RecentItem(value=value))
            if len(recent.entries) > recent.max:
                evicted = recent.entries[recent.max:]
                del recent.entries[recent.max:]
                logger.debug(
                    f"Evicted {len(evicted)} item(s) from recent list {list_name!r}"
                )

    def get(self, list_name: str) -> list[str]:
        """Values of a list, most recent first (empty for unknown lists)."""
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is None:
                return []
            return [item.value for item in recent.entries]

    def get_with_metadata(self, list_name: str) -> list[RecentItem]:
        """Copies of the items of a list, most recent first."""
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is None:
                return []
            return [item.copy() for item in recent.entries]

    def get_top(self, list_name: str, n: int) -> list[str]:
        """First n values; all of them if n <= 0 or n exceeds the length."""
        values = self.get(list_name)
        if n <= 0:
            return values
        return values[:n]

    def get_most_used(self, list_name: str, limit: int = 0) -> list[str]:
        """Values ranked by descending use count; ties keep recency order."""
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is None:
                return []
            # sorted() is stable, so equal counts keep most-recent-first order
            ranked = sorted(recent.entries, key=lambda item: item.use_count, reverse=True)

        if limit > 0:
            ranked = ranked[:limit]
        return [item.value for item in ranked]

    def get_by_pattern(self, list_name: str, pattern: str) -> list[str]:
        """Values containing pattern, case-insensitively; all values for ''."""
        needle = pattern.lower()
        return [value for value in self.get(list_name) if needle in value.lower()]

    def remove(self, list_name: str, value: str) -> None:
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is None:
                return
            item = recent.find(value)
            if item is not None:
                recent.entries.remove(item)

    def clear(self, list_name: str) -> None:
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is not None:
                recent.entries = []

    def clear_all(self) -> None:
        with self._lock:
            for recent in self._lists.values():
                recent.entries = []

    def list_names(self) -> list[str]:
        with self._lock:
            return list(self._lists)

    def get_list(self, list_name: str) -> RecentList | None:
        """A deep copy of a list with metadata, or None if unknown."""
        with self._lock:
            recent = self._lists.get(list_name)
            return recent.copy() if recent is not None else None

    def set_max(self, list_name: str, max_entries: int) -> None:
        """Resize a list's capacity, truncating the tail if it is over."""
        if max_entries <= 0:
            max_entries = DEFAULT_MAX_RECENT_ENTRIES

        with self._lock:
            recent = self._lists.get(list_name)
            if recent is None:
                self._lists[list_name] = RecentList(name=list_name, max=max_entries)
                return

            recent.max = max_entries
            del recent.entries[max_entries:]

    def prune(self, list_name: str, max_age: timedelta) -> None:
        """Drop items of one list last used before now - max_age."""
        cutoff = datetime.now() - max_age
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is not None:
                self._prune_list(recent, cutoff)

    def prune_all(self, max_age: timedelta) -> None:
        cutoff = datetime.now() - max_age
        with self._lock:
            for recent in self._lists.values():
                self._prune_list(recent, cutoff)

    @staticmethod
    def _prune_list(recent: RecentList, cutoff: datetime) -> None:
        kept = [item for item in recent.entries if item.last_used > cutoff]
        if len(kept) != len(recent.entries):
            logger.debug(
                f"Pruned {len(recent.entries) - len(kept)} item(s) from {recent.name!r}"
            )
        recent.entries = kept

    def get_stats(self, list_name: str) -> RecentStats:
        with self._lock:
            recent = self._lists.get(list_name)
            if recent is None:
                return RecentStats(list_name=list_name)

            stats = RecentStats(
                list_name=list_name,
                total_items=len(recent.entries),
                max_capacity=recent.max,
            )
            if not recent.entries:
                return stats

            total_uses = 0
            for item in recent.entries:
                total_uses += item.use_count
                if stats.most_recent_time is None or item.last_used > stats.most_recent_time:
                    stats.most_recent_time = item.last_used
                    stats.most_recent_value = item.value
                if item.use_count > stats.most_used_count:
                    stats.most_used_count = item.use_count
                    stats.most_used_value = item.value

            stats.average_use_count = total_uses / stats.total_items
            return stats

    def copy(self) -> "RecentTracker":
        """Deep copy of the tracker and all of its lists."""
        with self._lock:
            clone = RecentTracker(self.max_per_list)
            clone._lists = {name: recent.copy() for name, recent in self._lists.items()}
            return clone

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "lists": {name: recent.to_dict() for name, recent in self._lists.items()},
                "max_per_list": self.max_per_list,
            }

    @classmethod
    def from_dict(
        cls, data: dict[str, Any] | None, max_per_list: int = 0
    ) -> "RecentTracker":
        """Rebuild a tracker, backfilling missing lists and capacities.

        Args:
            data: Output of to_dict (None for an empty tracker)
            max_per_list: Capacity for lists created from now on. Wins over the
                stored value when positive; existing lists keep their own max.
        """
        data = data or {}
        if max_per_list <= 0:
            max_per_list = int(data.get("max_per_list") or 0)
        tracker = cls(max_per_list)
        for name, list_data in (data.get("lists") or {}).items():
            tracker._lists[str(name)] = RecentList.from_dict(str(name), list_data or {})
        return tracker
