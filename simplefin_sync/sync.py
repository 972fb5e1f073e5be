"""
Main sync orchestration for the SimpleFIN → Sure bridge.

Provides:
- Full pass: windowed fetch from SimpleFIN, then idempotent delivery to Sure
- Metadata pass: refresh mapping names and report mismatches, no transactions
- Connection test for both APIs
"""
from __future__ import annotations
import argparse
import sys
from datetime import datetime, timedelta
from typing import Callable, Optional
from loguru import logger
from pydantic import BaseModel, Field

from adapters.adapter_types import AggregationSource, LedgerSink
from adapters.ledger_http.client import LedgerAPIError, LedgerClient
from adapters.simplefin_http.client import ClaimError, SimpleFINClient, claim_access_url
from adapters.simplefin_http.validators import redact_url
from .app_config import AppConfig, ConfigError, ConfigFile, SchemaVersion
from .config import SyncSettings
from .dispatch import AccountCreationError, AccountCreator, ConfigSaver, DeliveryFailure, Dispatcher
from .fetch import FetchError, WindowedFetcher, utcnow
from .metadata import MetadataResult, sync_metadata
from .prompts import TerminalAccountCreator
from .stores import CursorStore, ProcessedStore, SnapshotCache, StateFileError


class SyncReport(BaseModel):
    accounts_fetched: int = 0
    windows_requested: int = 0
    transactions_fetched: int = 0
    delivered: int = 0
    already_processed: int = 0
    failures: list[DeliveryFailure] = Field(default_factory=list)
    unmapped: list[str] = Field(default_factory=list)
    created: dict[str, str] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)


def ensure_access_url(config: AppConfig, config_saver: Optional[ConfigSaver] = None,
                      timeout: Optional[float] = None) -> str:
    """
    Return the SimpleFIN access URL, claiming it with the setup token first
    if the config has none yet.

    Raises:
        ConfigError: neither access_url nor setup_token is set
        ClaimError: the claim exchange failed
    """
    if config.access_url:
        return config.access_url
    if not config.setup_token:
        raise ConfigError("No access_url or setup_token provided in config")

    config.access_url = claim_access_url(config.setup_token, timeout=timeout)
    if config_saver is not None:
        config_saver.save(config)
    logger.info("Successfully claimed and saved permanent Access URL.")
    return config.access_url


class SyncEngine:
    """
    One sync pass over injected collaborators.

    Usage:
        with SyncEngine.from_settings(SyncSettings.from_env()) as engine:
            report = engine.run(force_refresh=False, auto_create=False)

    Tests build it directly with fake clients and in-memory stores.
    """

    def __init__(
        self,
        config: AppConfig,
        source: AggregationSource,
        ledger: LedgerSink,
        cursors: CursorStore,
        processed: ProcessedStore,
        snapshots: SnapshotCache,
        config_saver: Optional[ConfigSaver] = None,
        account_creator: Optional[AccountCreator] = None,
        clock: Callable[[], datetime] = utcnow,
        lookback: timedelta = timedelta(days=365),
        max_window: timedelta = timedelta(days=90),
    ):
        self.config = config
        self.source = source
        self.ledger = ledger
        self.cursors = cursors
        self.processed = processed
        self.snapshots = snapshots
        self.config_saver = config_saver
        self.account_creator = account_creator
        self.clock = clock
        self.lookback = lookback
        self.max_window = max_window

    @classmethod
    def from_settings(cls, settings: SyncSettings,
                      account_creator: Optional[AccountCreator] = None) -> "SyncEngine":
        config_file = ConfigFile(settings.config_path)
        config = config_file.load()
        errors = config.validate_for_sync()
        if errors:
            raise ConfigError(f"{settings.config_path}: " + "; ".join(errors))
        if config_file.version is not SchemaVersion.CURRENT:
            config_file.save(config)

        access_url = ensure_access_url(config, config_file, timeout=settings.request_timeout)
        logger.debug(f"Using SimpleFIN access URL {redact_url(access_url)}")

        return cls(
            config=config,
            source=SimpleFINClient(access_url, timeout=settings.request_timeout),
            ledger=LedgerClient(config.sure_base_url, config.sure_api_key, timeout=settings.request_timeout),
            cursors=CursorStore.at(settings.cursor_path),
            processed=ProcessedStore.at(settings.processed_path),
            snapshots=SnapshotCache.in_directory(settings.cache_dir, ttl=settings.cache_ttl),
            config_saver=config_file,
            account_creator=account_creator,
            lookback=settings.lookback,
            max_window=settings.max_window,
        )

    def log_ledger_accounts(self) -> None:
        """List Sure accounts for the operator; a failure here does not stop the pass."""
        logger.info("Fetching accounts from Sure...")
        try:
            accounts = self.ledger.list_accounts()
        except LedgerAPIError as e:
            logger.warning(f"Failed to fetch Sure accounts: {e}")
            return
        for acc in accounts:
            logger.info(f"- {acc.name} (ID: {acc.id}) Balance: {acc.balance}")

    def run(self, force_refresh: bool = False, auto_create: bool = False) -> SyncReport:
        """
        Run a full pass: fetch, then dispatch.

        Raises:
            StateFileError: a state file is malformed
            FetchError: a SimpleFIN call failed (cursors of accounts finished
                earlier in the pass stay advanced)
            AccountCreationError: creating a ledger account failed
        """
        self.cursors.load()
        self.processed.load()
        logger.info(f"Loaded {len(self.processed)} processed transaction ids")

        self.log_ledger_accounts()

        fetcher = WindowedFetcher(
            self.source,
            self.cursors,
            self.snapshots,
            clock=self.clock,
            lookback=self.lookback,
            max_window=self.max_window,
        )
        fetched = fetcher.fetch(self.config.account_map, force_refresh=force_refresh)

        dispatcher = Dispatcher(
            self.ledger,
            self.processed,
            self.config,
            config_saver=self.config_saver,
            account_creator=self.account_creator,
        )
        dispatched = dispatcher.dispatch(fetched.accounts, auto_create=auto_create)

        return SyncReport(
            accounts_fetched=len(fetched.accounts),
            windows_requested=fetched.windows_requested,
            transactions_fetched=fetched.transaction_count,
            delivered=dispatched.delivered,
            already_processed=dispatched.already_processed,
            failures=dispatched.failures,
            unmapped=dispatched.unmapped,
            created=dispatched.created,
            warnings=fetched.warnings,
        )

    def run_metadata_sync(self) -> MetadataResult:
        return sync_metadata(self.config, self.ledger, self.source, self.config_saver)

    def test_connection(self) -> dict:
        results = {}
        for name, client in (("simplefin", self.source), ("sure", self.ledger)):
            check = getattr(client, "test_connection", None)
            results[name] = check() if check else {"status": "unknown"}
        return results

    def close(self):
        """Close HTTP sessions."""
        for client in (self.source, self.ledger):
            close = getattr(client, "close", None)
            if close:
                close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def run_sync(
    mode: str = "sync",
    force_refresh: bool = False,
    auto_create: bool = False,
    settings: Optional[SyncSettings] = None,
) -> SyncReport | MetadataResult:
    """
    Convenience function to run one pass.

    Args:
        mode: 'sync' or 'metadata'
        force_refresh: ignore snapshot cache and cursors
        auto_create: prompt to create Sure accounts for unmapped accounts
        settings: optional settings override
    """
    settings = settings or SyncSettings.from_env()
    creator = TerminalAccountCreator() if auto_create else None
    with SyncEngine.from_settings(settings, account_creator=creator) as engine:
        if mode == "sync":
            return engine.run(force_refresh=force_refresh, auto_create=auto_create)
        elif mode == "metadata":
            return engine.run_metadata_sync()
        else:
            raise ValueError(f"Unknown mode: {mode}. Valid: sync, metadata")


def configure_logging(settings: SyncSettings, verbose: bool = False, quiet: bool = False) -> None:
    logger.remove()
    if quiet:
        level = "ERROR"
    elif verbose:
        level = "DEBUG"
    else:
        level = settings.log_level.upper()
    logger.add(sys.stderr, level=level)
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")


def _print_report(report: SyncReport) -> None:
    print("\n=== Sync Results ===")
    print(f"accounts: {report.accounts_fetched}")
    print(f"windows requested: {report.windows_requested}")
    print(f"transactions fetched: {report.transactions_fetched}")
    print(f"delivered: {report.delivered}")
    print(f"already processed: {report.already_processed}")
    if report.created:
        print("created accounts:")
        for source_id, ledger_id in report.created.items():
            print(f"  {source_id} -> {ledger_id}")
    if report.unmapped:
        print(f"unmapped: {', '.join(report.unmapped)}")
    if report.failures:
        print("failed deliveries:")
        for failure in report.failures:
            print(f"  {failure.account_id}/{failure.transaction_id}: {failure.error}")
    if report.warnings:
        print(f"SimpleFIN warnings: {len(report.warnings)}")


def _print_metadata(result: MetadataResult) -> None:
    print("\n=== Metadata Results ===")
    for source_id, (old, new) in result.renamed.items():
        print(f"renamed {source_id}: {old!r} -> {new!r}")
    if result.missing_ledger_accounts:
        print(f"mappings to missing Sure accounts: {', '.join(result.missing_ledger_accounts)}")
    if result.unmapped:
        print(f"unmapped SimpleFIN accounts: {', '.join(result.unmapped)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sync SimpleFIN transactions into Sure"
    )
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Force refresh SimpleFIN data (ignore cache and sync cursors)",
    )
    parser.add_argument(
        "--auto-create-accounts",
        action="store_true",
        help="Interactively create Sure accounts for unmapped SimpleFIN accounts",
    )
    parser.add_argument(
        "--sync-metadata",
        action="store_true",
        help="Only refresh account names from Sure and report unmapped accounts",
    )
    parser.add_argument(
        "--test-connection",
        action="store_true",
        help="Test SimpleFIN and Sure connections and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = SyncSettings.from_env()
    configure_logging(settings, verbose=args.verbose, quiet=args.quiet)

    errors = settings.validate()
    if errors:
        for err in errors:
            logger.error(err)
        return 1

    creator = TerminalAccountCreator() if args.auto_create_accounts else None
    try:
        with SyncEngine.from_settings(settings, account_creator=creator) as engine:
            if args.test_connection:
                results = engine.test_connection()
                for name, result in results.items():
                    print(f"{name}: {result}")
                return 0 if all(r.get("status") == "connected" for r in results.values()) else 1

            if args.sync_metadata:
                _print_metadata(engine.run_metadata_sync())
                return 0

            report = engine.run(
                force_refresh=args.force_refresh,
                auto_create=args.auto_create_accounts,
            )
            _print_report(report)
            return 0

    except (ConfigError, StateFileError) as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except ClaimError as e:
        logger.error(f"SimpleFIN claim failed: {e}")
        return 1
    except FetchError as e:
        logger.error(f"SimpleFIN fetch failed: {e}")
        return 1
    except (AccountCreationError, LedgerAPIError) as e:
        logger.error(f"Sure error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Sync failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
