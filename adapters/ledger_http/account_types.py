"""
Accountable types and subtypes accepted by POST /accounts.

Order matters: the interactive picker numbers entries in this order.
"""
from __future__ import annotations

ACCOUNTABLE_TYPES: list[tuple[str, str]] = [
    ("Depository", "Depository (Assets) - Bank accounts like checking/savings"),
    ("Investment", "Investment (Assets) - Brokerage, 401k, IRA, etc."),
    ("Crypto", "Crypto (Assets) - Cryptocurrency wallets/exchanges"),
    ("Property", "Property (Assets) - Real estate"),
    ("Vehicle", "Vehicle (Assets) - Cars, trucks, etc."),
    ("OtherAsset", "Other Asset (Assets) - Jewelry, collectibles, etc."),
    ("CreditCard", "Credit Card (Liabilities) - Credit card debt"),
    ("Loan", "Loan (Liabilities) - Mortgages, student loans, etc."),
    ("OtherLiability", "Other Liability (Liabilities) - Other debts"),
]

SUBTYPES: dict[str, list[tuple[str, str]]] = {
    "Depository": [
        ("checking", "Checking Account"),
        ("savings", "Savings Account"),
        ("hsa", "Health Savings Account"),
        ("cd", "Certificate of Deposit"),
        ("money_market", "Money Market Account"),
    ],
    "Investment": [
        ("brokerage", "Brokerage (USA)"),
        ("401k", "401(k) (USA)"),
        ("roth_401k", "Roth 401(k) (USA)"),
        ("403b", "403(b) (USA)"),
        ("457b", "457(b) (USA)"),
        ("tsp", "Thrift Savings Plan (USA)"),
        ("ira", "IRA (USA)"),
        ("roth_ira", "Roth IRA (USA)"),
        ("sep_ira", "SEP IRA (USA)"),
        ("simple_ira", "SIMPLE IRA (USA)"),
        ("529_plan", "529 Plan (USA)"),
        ("hsa", "HSA (USA)"),
        ("ugma", "UGMA (USA)"),
        ("utma", "UTMA (USA)"),
        ("isa", "ISA (UK)"),
        ("lisa", "LISA (UK)"),
        ("sipp", "SIPP (UK)"),
        ("workplace_pension_uk", "Workplace Pension (UK)"),
        ("rrsp", "RRSP (Canada)"),
        ("tfsa", "TFSA (Canada)"),
        ("resp", "RESP (Canada)"),
        ("lira", "LIRA (Canada)"),
        ("rrif", "RRIF (Canada)"),
        ("super", "Superannuation (Australia)"),
        ("smsf", "SMSF (Australia)"),
        ("pea", "PEA (Europe)"),
        ("pillar_3a", "Pillar 3a (Europe)"),
        ("riester", "Riester (Europe)"),
        ("pension", "Pension (Global)"),
        ("retirement", "Retirement (Global)"),
        ("mutual_fund", "Mutual Fund (Global)"),
        ("angel", "Angel Investment (Global)"),
        ("trust", "Trust (Global)"),
        ("other", "Other (Global)"),
    ],
    "Crypto": [
        ("wallet", "Crypto Wallet"),
        ("exchange", "Crypto Exchange"),
    ],
    "Property": [
        ("single_family_home", "Single Family Home"),
        ("multi_family_home", "Multi Family Home"),
        ("condominium", "Condominium"),
        ("townhouse", "Townhouse"),
        ("investment_property", "Investment Property"),
        ("second_home", "Second Home"),
    ],
    "CreditCard": [
        ("credit_card", "Credit Card"),
    ],
    "Loan": [
        ("mortgage", "Mortgage"),
        ("student", "Student Loan"),
        ("auto", "Auto Loan"),
        ("other", "Other Loan"),
    ],
}


def subtypes_for(accountable_type: str) -> list[tuple[str, str]]:
    """Subtype choices for a type; empty when the type has none."""
    return SUBTYPES.get(accountable_type, [])


def is_valid_classification(accountable_type: str, subtype: str) -> bool:
    if accountable_type not in {value for value, _ in ACCOUNTABLE_TYPES}:
        return False
    choices = subtypes_for(accountable_type)
    if not choices:
        return subtype == ""
    return subtype in {value for value, _ in choices}
