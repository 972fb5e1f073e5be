"""
Storage backends for the sync state files.

Every store keeps one JSON document and rewrites it whole on each change.
A missing document reads as empty state; a document that cannot be parsed
raises StateFileError, because silently starting over would lose dedup data.
"""
from __future__ import annotations
import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol
from loguru import logger


class StateFileError(RuntimeError):
    """Raised when a persisted state file exists but cannot be used."""
    pass


class StateBackend(Protocol):
    def read(self) -> Optional[Any]: ...
    def write(self, data: Any) -> None: ...


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Write pretty-printed JSON through a temp file and os.replace.

    Readers see either the old or the new document, never a partial one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class JsonFileBackend:
    """One JSON document on disk."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def read(self) -> Optional[Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateFileError(f"Cannot read {self.path}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StateFileError(f"Malformed state file {self.path}: {e}") from e

    def write(self, data: Any) -> None:
        write_json_atomic(self.path, data)
        logger.trace(f"Wrote {self.path}")

    def __repr__(self):
        return f"JsonFileBackend({str(self.path)!r})"


class MemoryBackend:
    """In-process backend for tests; copies on the way in and out like a file would."""

    def __init__(self, initial: Optional[Any] = None):
        self.data = copy.deepcopy(initial)
        self.writes = 0

    def read(self) -> Optional[Any]:
        return copy.deepcopy(self.data)

    def write(self, data: Any) -> None:
        self.data = copy.deepcopy(data)
        self.writes += 1


def require_mapping(data: Optional[Any], source: Any) -> dict:
    """Return data as a dict ({} when absent) or raise StateFileError."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StateFileError(f"Expected a JSON object in {source}, got {type(data).__name__}")
    return data
