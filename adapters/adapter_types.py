from __future__ import annotations
from datetime import datetime
from typing import Optional, Protocol
from pydantic import BaseModel, ConfigDict, Field, model_validator

# --- SimpleFIN (aggregation side) ---

class SourceOrg(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    domain: str = ""
    sfin_url: str = Field(default="", alias="sfin-url")

class SourceTransaction(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    posted: int = 0              # unix seconds, 0 while pending
    amount: str                  # decimal string, never a float
    description: str = ""
    transacted_at: Optional[int] = None

    @model_validator(mode="after")
    def _default_transacted_at(self) -> "SourceTransaction":
        # banks may omit transacted_at; posted is the date the bridge always has
        if self.transacted_at is None:
            self.transacted_at = self.posted
        return self

class SourceAccount(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    name: str = ""
    org: SourceOrg = Field(default_factory=SourceOrg)
    balance: str = "0"
    available_balance: str = Field(default="", alias="available-balance")
    balance_date: int = Field(default=0, alias="balance-date")
    transactions: list[SourceTransaction] = Field(default_factory=list)

class AccountSet(BaseModel):
    """Envelope returned by every /accounts call."""
    errors: list[str] = Field(default_factory=list)
    accounts: list[SourceAccount] = Field(default_factory=list)

class CachedSnapshot(BaseModel):
    account: SourceAccount
    fetched_at: datetime

# --- Sure / Maybe (ledger side) ---

class LedgerAccount(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str = ""
    balance: str = ""
    currency: str = ""
    classification: str = ""
    account_type: str = ""

class LedgerTransaction(BaseModel):
    account_id: str
    amount: str
    date: str                    # YYYY-MM-DD
    name: str
    notes: str

class NewLedgerAccount(BaseModel):
    name: str
    balance: float = 0.0
    currency: str = "USD"
    accountable_type: str
    sub_type: str = ""

class AggregationSource(Protocol):
    def fetch_balances(self) -> AccountSet: ...
    def fetch_transactions(self, account_id: str, start: int, end: int) -> AccountSet: ...

class LedgerSink(Protocol):
    def list_accounts(self) -> list[LedgerAccount]: ...
    def create_transaction(self, tx: LedgerTransaction) -> None: ...
    def create_account(self, account: NewLedgerAccount) -> str: ...
