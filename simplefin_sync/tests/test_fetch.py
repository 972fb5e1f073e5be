"""Tests for the windowed SimpleFIN fetch."""
from datetime import timedelta
from unittest.mock import Mock
import pytest
from adapters.adapter_types import AccountSet
from adapters.simplefin_http.validators import SimpleFINConnectionError
from simplefin_sync.app_config import AccountConfig
from simplefin_sync.fetch import FetchError, WindowedFetcher, iter_windows
from simplefin_sync.stores import CursorStore, SnapshotCache
from fakes import DAY, FakeBridge, at_day, make_account, make_tx


def fetcher_for(source, clock, cursors=None, snapshots=None):
    return WindowedFetcher(
        source,
        cursors or CursorStore.in_memory().load(),
        snapshots or SnapshotCache.in_memory(),
        clock=clock,
    )


class TestIterWindows:
    def test_one_year_in_90_day_windows(self):
        windows = list(iter_windows(0, 365 * DAY, 90 * DAY))
        assert len(windows) == 5
        assert windows[0][0] == 0
        assert windows[-1][1] == 365 * DAY
        for (_, prev_end), (next_start, _) in zip(windows, windows[1:]):
            assert prev_end == next_start
        assert all(end - start <= 90 * DAY for start, end in windows)
        assert sum(end - start for start, end in windows) == 365 * DAY

    def test_exact_multiple(self):
        assert list(iter_windows(0, 180, 90)) == [(0, 90), (90, 180)]

    def test_empty_range(self):
        assert list(iter_windows(500, 500, 90)) == []
        assert list(iter_windows(600, 500, 90)) == []

    def test_span_must_be_positive(self):
        with pytest.raises(ValueError):
            list(iter_windows(0, 10, 0))


class TestWindowedFetch:
    def test_cursor_at_day_100_with_now_at_day_460(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1")])
        cursors = CursorStore.in_memory({"ACT-1": 100 * DAY}).load()

        fetcher_for(bridge, fixed_clock, cursors=cursors).fetch({})

        assert [(s // DAY, e // DAY) for _, s, e in bridge.window_calls] == [
            (100, 190), (190, 280), (280, 370), (370, 460),
        ]
        assert cursors.get("ACT-1") == 460 * DAY

    def test_first_sync_looks_back_one_year(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1")])
        cursors = CursorStore.in_memory().load()

        result = fetcher_for(bridge, fixed_clock, cursors=cursors).fetch({})

        assert result.windows_requested == 5
        assert bridge.window_calls[0][1] == 95 * DAY
        assert bridge.window_calls[-1][2] == 460 * DAY
        assert cursors.get("ACT-1") == 460 * DAY

    def test_transactions_accumulate_across_windows_in_order(self, fixed_clock):
        txs = [make_tx("TRN-1", 120), make_tx("TRN-2", 300), make_tx("TRN-3", 459)]
        bridge = FakeBridge([make_account("ACT-1")], transactions={"ACT-1": txs})
        cursors = CursorStore.in_memory({"ACT-1": 100 * DAY}).load()

        result = fetcher_for(bridge, fixed_clock, cursors=cursors).fetch({})

        assert [t.id for t in result.accounts[0].transactions] == ["TRN-1", "TRN-2", "TRN-3"]
        assert result.transaction_count == 3

    def test_empty_pages_are_fine(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1")])
        result = fetcher_for(bridge, fixed_clock).fetch({})
        assert result.accounts[0].transactions == []
        assert result.refreshed == ["ACT-1"]

    def test_balance_only_accounts_are_never_paged(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1"), make_account("ACT-2")])
        cursors = CursorStore.in_memory().load()
        mapping = {"ACT-2": AccountConfig(sure_id="L2", balance_only=True)}

        result = fetcher_for(bridge, fixed_clock, cursors=cursors).fetch(mapping)

        assert {call[0] for call in bridge.window_calls} == {"ACT-1"}
        assert result.balance_only == ["ACT-2"]
        balance_only = next(a for a in result.accounts if a.id == "ACT-2")
        assert balance_only.balance == "100.00"
        assert cursors.get("ACT-2") is None

    def test_failed_account_keeps_earlier_accounts_durable(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-2"), make_account("ACT-1")], fail_on={"ACT-2"})
        cursors = CursorStore.in_memory({"ACT-2": 400 * DAY}).load()
        snapshots = SnapshotCache.in_memory()

        with pytest.raises(FetchError) as exc:
            fetcher_for(bridge, fixed_clock, cursors=cursors, snapshots=snapshots).fetch({})

        assert exc.value.account_id == "ACT-2"
        # ACT-1 sorts first and finished before ACT-2 failed
        assert cursors.get("ACT-1") == 460 * DAY
        assert snapshots.get("ACT-1") is not None
        assert cursors.get("ACT-2") == 400 * DAY
        assert snapshots.get("ACT-2") is None

    def test_failure_mid_range_does_not_advance_cursor(self, fixed_clock):
        source = Mock()
        source.fetch_balances.return_value = AccountSet(accounts=[make_account("ACT-1")])
        source.fetch_transactions.side_effect = [
            AccountSet(accounts=[make_account("ACT-1")]),
            AccountSet(accounts=[make_account("ACT-1")]),
            SimpleFINConnectionError("reset by peer"),
        ]
        cursors = CursorStore.in_memory({"ACT-1": 100 * DAY}).load()

        with pytest.raises(FetchError) as exc:
            fetcher_for(source, fixed_clock, cursors=cursors).fetch({})

        assert exc.value.window == (280 * DAY, 370 * DAY)
        assert cursors.get("ACT-1") == 100 * DAY

    def test_refused_window_is_a_fetch_error(self, fixed_clock):
        source = Mock()
        source.fetch_balances.return_value = AccountSet(accounts=[make_account("ACT-1")])
        source.fetch_transactions.side_effect = ValueError("Window exceeds SimpleFIN's 90 day limit")

        with pytest.raises(FetchError) as exc:
            fetcher_for(source, fixed_clock).fetch({})

        assert exc.value.account_id == "ACT-1"
        assert isinstance(exc.value.__cause__, ValueError)

    def test_balances_failure_is_fatal(self, fixed_clock):
        source = Mock()
        source.fetch_balances.side_effect = SimpleFINConnectionError("down")
        with pytest.raises(FetchError):
            fetcher_for(source, fixed_clock).fetch({})
        source.fetch_transactions.assert_not_called()

    def test_inline_errors_are_warnings(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1")], errors=["Reauthenticate with your bank"])
        result = fetcher_for(bridge, fixed_clock).fetch({})
        assert result.warnings == ["Reauthenticate with your bank"]
        assert result.refreshed == ["ACT-1"]

    def test_cursor_never_moves_back(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1")])
        cursors = CursorStore.in_memory({"ACT-1": 500 * DAY}).load()

        fetcher_for(bridge, fixed_clock, cursors=cursors).fetch({})

        assert bridge.window_calls == []
        assert cursors.get("ACT-1") == 500 * DAY


class TestSnapshotReuse:
    def test_fresh_snapshot_skips_paging(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1").model_copy(update={"balance": "250.00"})])
        cursors = CursorStore.in_memory({"ACT-1": 400 * DAY}).load()
        snapshots = SnapshotCache.in_memory(ttl=timedelta(hours=24))
        cached = make_account("ACT-1").model_copy(update={"transactions": [make_tx("TRN-9", 455)]})
        snapshots.put(cached, at_day(460) - timedelta(hours=1))

        result = fetcher_for(bridge, fixed_clock, cursors=cursors, snapshots=snapshots).fetch({})

        assert bridge.window_calls == []
        assert result.from_cache == ["ACT-1"]
        assert result.accounts[0].balance == "250.00"
        assert [t.id for t in result.accounts[0].transactions] == ["TRN-9"]
        assert cursors.get("ACT-1") == 400 * DAY

    def test_stale_snapshot_is_refreshed(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1")])
        snapshots = SnapshotCache.in_memory(ttl=timedelta(hours=24))
        snapshots.put(make_account("ACT-1"), at_day(458))

        result = fetcher_for(bridge, fixed_clock, snapshots=snapshots).fetch({})

        assert result.refreshed == ["ACT-1"]
        assert snapshots.get("ACT-1").fetched_at == at_day(460)

    def test_force_refresh_ignores_cache_and_cursor(self, fixed_clock):
        bridge = FakeBridge([make_account("ACT-1")])
        cursors = CursorStore.in_memory({"ACT-1": 400 * DAY}).load()
        snapshots = SnapshotCache.in_memory()
        snapshots.put(make_account("ACT-1"), at_day(460))

        fetcher = fetcher_for(bridge, fixed_clock, cursors=cursors, snapshots=snapshots)
        result = fetcher.fetch({}, force_refresh=True)

        assert result.windows_requested == 5
        assert bridge.window_calls[0][1] == 95 * DAY
        assert cursors.get("ACT-1") == 460 * DAY


def test_window_cap_above_90_days_is_rejected(fixed_clock):
    with pytest.raises(ValueError):
        WindowedFetcher(Mock(), CursorStore.in_memory(), SnapshotCache.in_memory(),
                        clock=fixed_clock, max_window=timedelta(days=91))
