from __future__ import annotations
from typing import Optional
from loguru import logger
from .base import JsonFileBackend, MemoryBackend, StateBackend, StateFileError, require_mapping


class CursorStore:
    """
    Per-account sync cursors: source account id -> unix seconds.

    A cursor marks the end of the last window range fetched completely for
    that account. Cursors never move backwards.
    """

    def __init__(self, backend: StateBackend):
        self.backend = backend
        self._cursors: dict[str, int] = {}

    @classmethod
    def at(cls, path) -> "CursorStore":
        return cls(JsonFileBackend(path))

    @classmethod
    def in_memory(cls, initial: Optional[dict[str, int]] = None) -> "CursorStore":
        return cls(MemoryBackend(initial))

    def load(self) -> "CursorStore":
        data = require_mapping(self.backend.read(), self.backend)
        cursors = {}
        for account_id, value in data.items():
            # bool is an int subclass; reject it along with strings/floats
            if isinstance(value, bool) or not isinstance(value, int):
                raise StateFileError(
                    f"Cursor for account {account_id} in {self.backend} is not unix seconds: {value!r}"
                )
            cursors[account_id] = value
        self._cursors = cursors
        return self

    def get(self, account_id: str) -> Optional[int]:
        return self._cursors.get(account_id)

    def all(self) -> dict[str, int]:
        return dict(self._cursors)

    def advance(self, account_id: str, synced_through: int) -> int:
        """
        Move the cursor to synced_through and persist, unless that would move
        it backwards. Returns the cursor value now stored.
        """
        current = self._cursors.get(account_id)
        if current is not None and synced_through <= current:
            if synced_through < current:
                logger.warning(
                    f"Refusing to move cursor for {account_id} back from {current} to {synced_through}"
                )
            return current
        self._cursors[account_id] = synced_through
        self.backend.write(dict(sorted(self._cursors.items())))
        return synced_through
