"""
Delivery of fetched SimpleFIN transactions to the Sure ledger.

Each transaction is posted at most once per successful attempt: ids already
in the ProcessedStore are skipped, and an id is added (and the store written)
only after the ledger accepted the post. A failed post is logged and the
loop moves on to the next transaction.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol
from loguru import logger
from pydantic import BaseModel

from adapters.adapter_types import LedgerSink, LedgerTransaction, NewLedgerAccount, SourceAccount, SourceTransaction
from adapters.ledger_http.account_types import is_valid_classification
from adapters.ledger_http.client import LedgerAPIError
from .app_config import AccountConfig, AppConfig
from .stores import ProcessedStore

NOTES_TEMPLATE = "Imported via SimpleFIN. ID: {id}"


class AccountCreationError(RuntimeError):
    """Creating a ledger account for an unmapped SimpleFIN account failed."""

    def __init__(self, message: str, account_id: str):
        super().__init__(message)
        self.account_id = account_id


class AccountClassification(BaseModel):
    name: str
    accountable_type: str
    subtype: str = ""


class AccountCreator(Protocol):
    def classify(self, account: SourceAccount) -> Optional[AccountClassification]:
        """Pick name, type and subtype for a new ledger account, or None to skip it."""
        ...


class ConfigSaver(Protocol):
    def save(self, config: AppConfig) -> None: ...


@dataclass
class DeliveryFailure:
    account_id: str
    transaction_id: str
    error: str


@dataclass
class DispatchResult:
    delivered: int = 0
    already_processed: int = 0
    failures: list[DeliveryFailure] = field(default_factory=list)
    unmapped: list[str] = field(default_factory=list)
    created: dict[str, str] = field(default_factory=dict)    # source id -> new ledger id


def format_tx_date(transacted_at: int) -> str:
    """YYYY-MM-DD of a unix timestamp, always taken in UTC."""
    return datetime.fromtimestamp(transacted_at, tz=timezone.utc).strftime("%Y-%m-%d")


def build_ledger_transaction(tx: SourceTransaction, ledger_account_id: str) -> LedgerTransaction:
    tx_date = format_tx_date(tx.transacted_at)
    return LedgerTransaction(
        account_id=ledger_account_id,
        amount=tx.amount,
        date=tx_date,
        name=tx.description or tx_date,
        notes=NOTES_TEMPLATE.format(id=tx.id),
    )


class Dispatcher:
    def __init__(
        self,
        ledger: LedgerSink,
        processed: ProcessedStore,
        config: AppConfig,
        config_saver: Optional[ConfigSaver] = None,
        account_creator: Optional[AccountCreator] = None,
    ):
        self.ledger = ledger
        self.processed = processed
        self.config = config
        self.config_saver = config_saver
        self.account_creator = account_creator

    def dispatch(self, accounts: list[SourceAccount], auto_create: bool = False) -> DispatchResult:
        result = DispatchResult()
        for account in sorted(accounts, key=lambda a: a.id):
            mapping = self.config.mapping_for(account.id)
            if mapping is None:
                mapping = self._create_mapping(account, result) if auto_create else None
                if mapping is None:
                    logger.info(
                        f"Skipping SimpleFIN account {account.id}, {account.name} "
                        f"(Not mapped in config): {account.org.domain}"
                    )
                    result.unmapped.append(account.id)
                    continue
            if mapping.balance_only:
                continue
            self._dispatch_account(account, mapping, result)

        logger.info(f"Sync complete. {result.delivered} new transactions added.")
        return result

    def _dispatch_account(self, account: SourceAccount, mapping: AccountConfig, result: DispatchResult) -> None:
        if account.transactions:
            logger.info(f"Processing {len(account.transactions)} transactions for {account.name}")
        for tx in account.transactions:
            if tx.id in self.processed:
                result.already_processed += 1
                continue

            payload = build_ledger_transaction(tx, mapping.sure_id)
            try:
                self.ledger.create_transaction(payload)
            except LedgerAPIError as e:
                logger.error(f"Failed to create tx {tx.id} for account {account.id}: {e}")
                result.failures.append(DeliveryFailure(account.id, tx.id, str(e)))
                continue

            self.processed.add(tx.id)
            result.delivered += 1
            logger.info(f"Synced transaction: {payload.date} - {payload.name}")

    def _create_mapping(self, account: SourceAccount, result: DispatchResult) -> Optional[AccountConfig]:
        if self.account_creator is None:
            logger.warning(f"Auto-create requested but no account creator is configured for {account.id}")
            return None

        choice = self.account_creator.classify(account)
        if choice is None:
            logger.info(f"Account creation cancelled for {account.name} ({account.id})")
            return None
        if not is_valid_classification(choice.accountable_type, choice.subtype):
            raise AccountCreationError(
                f"Invalid classification {choice.accountable_type}/{choice.subtype!r} for {account.id}",
                account.id,
            )

        try:
            ledger_id = self.ledger.create_account(NewLedgerAccount(
                name=choice.name,
                accountable_type=choice.accountable_type,
                sub_type=choice.subtype,
            ))
        except LedgerAPIError as e:
            logger.error(f"Failed to create account for {account.name}: {e}")
            raise AccountCreationError(
                f"Please manually create the account in Sure and try again. ID: {account.id}",
                account.id,
            ) from e

        mapping = AccountConfig(sure_id=ledger_id, name=choice.name)
        self.config.account_map[account.id] = mapping
        if self.config_saver is not None:
            self.config_saver.save(self.config)
        result.created[account.id] = ledger_id
        logger.info(f"Successfully mapped SimpleFIN account {account.name} to Sure account {ledger_id}")
        return mapping
