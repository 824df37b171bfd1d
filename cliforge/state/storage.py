"""Atomic file persistence shared by the state and history stores.

Writes go to a temporary sibling file which is then renamed over the real
path, so readers never observe a half-written file. There is no cross-process
locking: concurrent writers resolve as last-writer-wins.
"""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import yaml

from cliforge.exceptions import CliforgeIOError, CliforgeParseError

logger = logging.getLogger(__name__)


def dump_time(value: datetime | None) -> str | None:
    """Serialize a timestamp as ISO 8601 (None stays None)."""
    return value.isoformat() if value is not None else None


def load_time(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp written by dump_time.

    YAML may already have decoded an unquoted timestamp into a datetime.

    Raises:
        ValueError: if the value is not a recognizable timestamp.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise ValueError(f"Invalid timestamp: {value!r}")


def _temp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def write_atomic(path: Path, text: str) -> None:
    """Write text to path via temp file + rename.

    Raises:
        CliforgeIOError: if the directory, temp file or rename fails. The temp
            file is removed on failure.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    except OSError as e:
        raise CliforgeIOError(
            "Failed to create state directory", path.parent, "mkdir"
        ) from e

    temp_path = _temp_path(path)
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, 0o600)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise CliforgeIOError("Failed to write file", temp_path, "write") from e

    try:
        os.replace(temp_path, path)
    except OSError as e:
        # Clean up temp file on error
        temp_path.unlink(missing_ok=True)
        raise CliforgeIOError("Failed to save file", path, "rename") from e

    logger.debug(f"Wrote {path}")


def read_text(path: Path) -> str | None:
    """Read a file, returning None when it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise CliforgeIOError("Failed to read file", path, "read") from e


def _decode(path: Path, loader: Callable[[str], Any], error_types: tuple) -> dict | None:
    raw = read_text(path)
    if raw is None:
        logger.info(f"No file at {path}, starting fresh")
        return None

    try:
        data = loader(raw)
    except error_types as e:
        raise CliforgeParseError("Failed to parse file", path) from e

    if data is None:
        # Empty file
        return {}
    if not isinstance(data, dict):
        raise CliforgeParseError(
            f"Expected a mapping at top level, got {type(data).__name__}", path
        )
    return data


def read_yaml(path: Path) -> dict | None:
    """Load a YAML mapping; None if the file is missing."""
    return _decode(path, yaml.safe_load, (yaml.YAMLError,))


def write_yaml(path: Path, data: dict) -> None:
    write_atomic(
        path,
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
    )


def read_json(path: Path) -> dict | None:
    """Load a JSON object; None if the file is missing."""
    return _decode(path, json.loads, (json.JSONDecodeError,))


def write_json(path: Path, data: dict) -> None:
    write_atomic(path, json.dumps(data, indent=2, ensure_ascii=False))
