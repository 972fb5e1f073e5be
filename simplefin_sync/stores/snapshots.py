from __future__ import annotations
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import quote
from loguru import logger
from pydantic import ValidationError
from adapters.adapter_types import CachedSnapshot, SourceAccount
from .base import JsonFileBackend, MemoryBackend, StateBackend, StateFileError


def snapshot_filename(account_id: str) -> str:
    """Percent-encoded, so distinct ids never share a file."""
    return f"account_{quote(account_id, safe='')}.json"


class SnapshotCache:
    """
    Last fetched snapshot per account, one document per account.

    Snapshots are overwritten on every successful fetch and never removed;
    a forced refresh simply does not consult them.
    """

    def __init__(self, backend_for: Callable[[str], StateBackend], ttl: timedelta = timedelta(hours=24)):
        self._backend_for = backend_for
        self._backends: dict[str, StateBackend] = {}
        self.ttl = ttl

    @classmethod
    def in_directory(cls, directory: Path | str, ttl: timedelta = timedelta(hours=24)) -> "SnapshotCache":
        directory = Path(directory)
        return cls(lambda account_id: JsonFileBackend(directory / snapshot_filename(account_id)), ttl)

    @classmethod
    def in_memory(cls, ttl: timedelta = timedelta(hours=24)) -> "SnapshotCache":
        return cls(lambda account_id: MemoryBackend(), ttl)

    def _backend(self, account_id: str) -> StateBackend:
        if account_id not in self._backends:
            self._backends[account_id] = self._backend_for(account_id)
        return self._backends[account_id]

    def get(self, account_id: str) -> Optional[CachedSnapshot]:
        backend = self._backend(account_id)
        data = backend.read()
        if data is None:
            return None
        try:
            snapshot = CachedSnapshot.model_validate(data)
        except ValidationError as e:
            raise StateFileError(f"Malformed snapshot in {backend}: {e}") from e
        if snapshot.account.id != account_id:
            logger.warning(f"Ignoring snapshot in {backend}: it belongs to account {snapshot.account.id}")
            return None
        return snapshot

    def get_fresh(self, account_id: str, now: datetime) -> Optional[CachedSnapshot]:
        """The snapshot if it is younger than the TTL, else None."""
        if self.ttl <= timedelta(0):
            return None
        snapshot = self.get(account_id)
        if snapshot is None:
            return None
        fetched_at = snapshot.fetched_at
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        if now - fetched_at >= self.ttl:
            return None
        return snapshot

    def put(self, account: SourceAccount, fetched_at: datetime) -> CachedSnapshot:
        snapshot = CachedSnapshot(account=account, fetched_at=fetched_at)
        self._backend(account.id).write(snapshot.model_dump(mode="json", by_alias=True))
        return snapshot
