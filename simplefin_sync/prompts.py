"""Interactive terminal flow for creating a Sure account for an unmapped SimpleFIN account."""
from __future__ import annotations
from typing import Callable, Optional

from adapters.adapter_types import SourceAccount
from adapters.ledger_http.account_types import ACCOUNTABLE_TYPES, subtypes_for
from .dispatch import AccountClassification

CANCEL = "q"


class _Cancelled(Exception):
    pass


class TerminalAccountCreator:
    """
    AccountCreator that asks the operator on the terminal.

    Typing ``q`` at any prompt, or closing stdin, cancels and the account is
    left unmapped for this run.
    """

    def __init__(self, input_fn: Callable[[str], str] = input, output_fn: Callable[[str], None] = print):
        self._input = input_fn
        self._print = output_fn

    def _ask(self, prompt: str) -> str:
        try:
            answer = self._input(prompt).strip()
        except EOFError:
            raise _Cancelled()
        if answer.lower() == CANCEL:
            raise _Cancelled()
        return answer

    def _pick(self, title: str, choices: list[tuple[str, str]]) -> str:
        self._print(f"\n{title}")
        for i, (_, label) in enumerate(choices, start=1):
            self._print(f"  {i}. {label}")
        while True:
            answer = self._ask(f"Enter selection (1-{len(choices)}): ")
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1][0]
            self._print("Invalid selection. Please try again.")

    def classify(self, account: SourceAccount) -> Optional[AccountClassification]:
        self._print("\nUnmapped SimpleFIN account found:")
        self._print(f"  Name: {account.name}")
        self._print(f"  Org:  {account.org.domain}")
        try:
            default_name = f"{account.name} {account.org.domain}".strip()
            name = self._ask(f"Enter Sure account name [{default_name}]: ") or default_name

            accountable_type = self._pick("Select AccountableType:", ACCOUNTABLE_TYPES)
            subtypes = subtypes_for(accountable_type)
            subtype = self._pick(f"Select SubType for {accountable_type}:", subtypes) if subtypes else ""
        except _Cancelled:
            return None
        return AccountClassification(name=name, accountable_type=accountable_type, subtype=subtype)
