"""
Persistent state for the sync engine.

- CursorStore: per-account sync watermarks
- ProcessedStore: ids already delivered to the ledger
- SnapshotCache: last fetched snapshot per account
"""

from .base import JsonFileBackend, MemoryBackend, StateBackend, StateFileError, write_json_atomic
from .cursors import CursorStore
from .processed import ProcessedStore
from .snapshots import SnapshotCache, snapshot_filename

__all__ = [
    "JsonFileBackend",
    "MemoryBackend",
    "StateBackend",
    "StateFileError",
    "write_json_atomic",
    "CursorStore",
    "ProcessedStore",
    "SnapshotCache",
    "snapshot_filename",
]
