"""
Windowed fetch against the SimpleFIN bridge.

One balances-only call lists every account. Each account that imports
transactions is then paged from its cursor (or the lookback start) up to
"now" in windows no wider than 90 days. A cursor moves only after the whole
range for its account came back; any failed page aborts the pass, leaving
accounts finished earlier in the pass with their new cursor and snapshot.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Optional
from loguru import logger

from adapters.adapter_types import AggregationSource, SourceAccount, SourceTransaction
from adapters.simplefin_http.client import MAX_RANGE_SECONDS
from adapters.simplefin_http.validators import SimpleFINError
from .app_config import AccountConfig
from .stores import CursorStore, SnapshotCache


class FetchError(RuntimeError):
    """A SimpleFIN call failed; the pass cannot continue."""

    def __init__(self, message: str, account_id: Optional[str] = None,
                 window: Optional[tuple[int, int]] = None):
        super().__init__(message)
        self.account_id = account_id
        self.window = window


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iter_windows(start: int, end: int, max_span: int) -> Iterator[tuple[int, int]]:
    """
    Split [start, end) into consecutive half-open windows of at most max_span
    seconds. Each window starts where the previous one ended.
    """
    if max_span <= 0:
        raise ValueError("max_span must be positive")
    current = start
    while current < end:
        window_end = min(current + max_span, end)
        yield current, window_end
        current = window_end


@dataclass
class FetchResult:
    accounts: list[SourceAccount] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    windows_requested: int = 0
    refreshed: list[str] = field(default_factory=list)      # paged from SimpleFIN
    from_cache: list[str] = field(default_factory=list)     # transactions reused from snapshot
    balance_only: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return sum(len(a.transactions) for a in self.accounts)


class WindowedFetcher:
    """
    Produces every account's balances plus the transactions newly available
    since its cursor.

    Usage:
        fetcher = WindowedFetcher(client, cursors.load(), snapshots)
        result = fetcher.fetch(config.account_map)
    """

    def __init__(
        self,
        source: AggregationSource,
        cursors: CursorStore,
        snapshots: SnapshotCache,
        clock: Callable[[], datetime] = utcnow,
        lookback: timedelta = timedelta(days=365),
        max_window: timedelta = timedelta(days=90),
    ):
        max_span = int(max_window.total_seconds())
        if max_span <= 0 or max_span > MAX_RANGE_SECONDS:
            raise ValueError(f"max_window must be between 1 second and 90 days, got {max_window}")
        self.source = source
        self.cursors = cursors
        self.snapshots = snapshots
        self.clock = clock
        self.lookback = lookback
        self.max_span = max_span

    def _warn(self, result: FetchResult, errors: list[str]) -> None:
        for msg in errors:
            logger.warning(f"SimpleFIN error: {msg}")
            result.warnings.append(msg)

    def date_range(self, account_id: str, now: datetime, force_refresh: bool = False) -> tuple[int, int]:
        """[start, end) in unix seconds for one account."""
        end = int(now.timestamp())
        cursor = None if force_refresh else self.cursors.get(account_id)
        if cursor is not None:
            return cursor, end
        return int((now - self.lookback).timestamp()), end

    def fetch(self, account_map: dict[str, AccountConfig], force_refresh: bool = False) -> FetchResult:
        result = FetchResult()

        logger.info("Fetching account balances from SimpleFIN...")
        try:
            balances = self.source.fetch_balances()
        except SimpleFINError as e:
            raise FetchError(f"Failed to fetch SimpleFIN balances: {e}") from e
        self._warn(result, balances.errors)
        logger.info(f"Found {len(balances.accounts)} accounts")

        for account in sorted(balances.accounts, key=lambda a: a.id):
            mapping = account_map.get(account.id)
            if mapping is not None and mapping.balance_only:
                logger.info(f"Skipping transaction fetch for account {account.name} (balance_only is set)")
                result.balance_only.append(account.id)
                result.accounts.append(account.model_copy(update={"transactions": []}))
                continue

            now = self.clock()
            if not force_refresh:
                cached = self.snapshots.get_fresh(account.id, now)
                if cached is not None:
                    logger.info(
                        f"Using cached transactions for {account.name} "
                        f"(fetched {cached.fetched_at.isoformat()})"
                    )
                    result.from_cache.append(account.id)
                    result.accounts.append(
                        account.model_copy(update={"transactions": list(cached.account.transactions)})
                    )
                    continue

            result.accounts.append(self._fetch_account(account, now, force_refresh, result))
            result.refreshed.append(account.id)

        logger.info(f"Total transactions pulled: {result.transaction_count}")
        return result

    def _fetch_account(self, account: SourceAccount, now: datetime, force_refresh: bool,
                       result: FetchResult) -> SourceAccount:
        start, end = self.date_range(account.id, now, force_refresh)
        logger.info(f"Fetching transactions for account {account.name} ({account.id}) from {start} to {end}...")

        transactions: list[SourceTransaction] = []
        for window in iter_windows(start, end, self.max_span):
            logger.debug(f"  → Fetching page: {window[0]} to {window[1]}")
            try:
                page = self.source.fetch_transactions(account.id, *window)
            except (SimpleFINError, ValueError) as e:
                raise FetchError(
                    f"Failed to fetch transactions for account {account.id} "
                    f"between {window[0]} and {window[1]}: {e}",
                    account_id=account.id,
                    window=window,
                ) from e
            result.windows_requested += 1
            self._warn(result, page.errors)

            pulled = [tx for a in page.accounts if a.id == account.id for tx in a.transactions]
            transactions.extend(pulled)
            logger.debug(f"    → Pulled {len(pulled)} transactions in this page")

        if transactions:
            logger.info(f"  → Total pulled for {account.name}: {len(transactions)} transactions")
        else:
            logger.info(f"  → No transactions found for {account.name}")

        fetched = account.model_copy(update={"transactions": transactions})
        self.cursors.advance(account.id, end)
        self.snapshots.put(fetched, now)
        return fetched
