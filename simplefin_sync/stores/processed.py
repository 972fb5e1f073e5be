from __future__ import annotations
from typing import Iterable, Optional
from .base import JsonFileBackend, MemoryBackend, StateBackend, StateFileError, require_mapping


class ProcessedStore:
    """
    Ids of SimpleFIN transactions already delivered to the ledger.

    Persisted as {"<transaction id>": true}. Membership only ever grows, and
    each add() rewrites the whole file before returning.
    """

    def __init__(self, backend: StateBackend):
        self.backend = backend
        self._ids: set[str] = set()

    @classmethod
    def at(cls, path) -> "ProcessedStore":
        return cls(JsonFileBackend(path))

    @classmethod
    def in_memory(cls, initial: Optional[Iterable[str]] = None) -> "ProcessedStore":
        return cls(MemoryBackend({tx_id: True for tx_id in initial or ()}))

    def load(self) -> "ProcessedStore":
        data = require_mapping(self.backend.read(), self.backend)
        for tx_id, flag in data.items():
            if not isinstance(flag, bool):
                raise StateFileError(f"Processed flag for {tx_id} in {self.backend} is not a boolean: {flag!r}")
        self._ids = set(data)
        return self

    def __contains__(self, tx_id: str) -> bool:
        return tx_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, tx_id: str) -> None:
        """Mark tx_id delivered and persist synchronously."""
        if tx_id in self._ids:
            return
        self._ids.add(tx_id)
        self.backend.write({i: True for i in sorted(self._ids)})
