"""
Metadata-only reconciliation pass.

Refreshes mapping names from the ledger (migrated configs carry the
placeholder "Unknown Account") and reports mappings and SimpleFIN accounts
that do not line up. Never touches cursors, processed ids or snapshots and
never posts transactions.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional
from loguru import logger

from adapters.adapter_types import AggregationSource, LedgerSink
from adapters.simplefin_http.validators import SimpleFINError
from .app_config import AppConfig
from .dispatch import ConfigSaver
from .fetch import FetchError


@dataclass
class MetadataResult:
    renamed: dict[str, tuple[str, str]] = field(default_factory=dict)   # source id -> (old, new)
    missing_ledger_accounts: list[str] = field(default_factory=list)    # source ids
    unmapped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def sync_metadata(
    config: AppConfig,
    ledger: LedgerSink,
    source: AggregationSource,
    config_saver: Optional[ConfigSaver] = None,
) -> MetadataResult:
    result = MetadataResult()

    ledger_accounts = {a.id: a for a in ledger.list_accounts()}
    logger.info(f"Found {len(ledger_accounts)} Sure accounts")

    try:
        balances = source.fetch_balances()
    except SimpleFINError as e:
        raise FetchError(f"Failed to fetch SimpleFIN balances: {e}") from e
    for msg in balances.errors:
        logger.warning(f"SimpleFIN error: {msg}")
        result.warnings.append(msg)

    for source_id, mapping in sorted(config.account_map.items()):
        ledger_account = ledger_accounts.get(mapping.sure_id)
        if ledger_account is None:
            logger.warning(f"Mapping {source_id} points to Sure account {mapping.sure_id}, which does not exist")
            result.missing_ledger_accounts.append(source_id)
            continue
        if ledger_account.name and ledger_account.name != mapping.name:
            result.renamed[source_id] = (mapping.name, ledger_account.name)
            logger.info(f"Renaming mapping {source_id}: {mapping.name!r} -> {ledger_account.name!r}")
            mapping.name = ledger_account.name

    for account in sorted(balances.accounts, key=lambda a: a.id):
        if account.id not in config.account_map:
            logger.info(f"Unmapped SimpleFIN account {account.id}, {account.name} ({account.org.domain})")
            result.unmapped.append(account.id)

    if result.renamed and config_saver is not None:
        config_saver.save(config)
    return result
