from __future__ import annotations
import base64
import binascii
import requests
from loguru import logger
from adapters.adapter_types import AccountSet
from .validators import (
    SimpleFINError,
    SimpleFINConnectionError,
    ensure_status_ok,
    parse_account_set,
    redact_url,
)

# SimpleFIN rejects date ranges wider than 90 days.
MAX_RANGE_SECONDS = 90 * 24 * 60 * 60

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "simplefin-sync/1.0",
}

class ClaimError(SimpleFINError):
    pass

def claim_access_url(setup_token: str, session: requests.Session | None = None,
                     timeout: float | None = None) -> str:
    """Exchange a one-time setup token for the permanent access URL."""
    try:
        claim_url = base64.b64decode(setup_token.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ClaimError(f"Invalid base64 setup token: {e}") from e

    session = session or requests.Session()
    try:
        r = session.post(claim_url, timeout=timeout)
    except requests.RequestException as e:
        raise ClaimError(f"Failed to claim token at {claim_url}: {e}") from e
    if r.status_code != 200:
        raise ClaimError(f"Failed to claim token at {claim_url}: HTTP {r.status_code}")
    return r.text.strip()

class SimpleFINClient:
    def __init__(self, access_url: str, session: requests.Session | None = None,
                 timeout: float | None = None):
        self.access_url = access_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)

    def _get_accounts(self, params: dict) -> AccountSet:
        url = f"{self.access_url}/accounts"
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"SimpleFIN request to {redact_url(url)} failed: {e}")
            raise SimpleFINConnectionError(f"Request failed: {e}") from e
        ensure_status_ok(r)
        return parse_account_set(r.text)

    def fetch_balances(self) -> AccountSet:
        """All accounts with balances, transactions left out."""
        return self._get_accounts({"balances-only": "1"})

    def fetch_transactions(self, account_id: str, start: int, end: int) -> AccountSet:
        """
        One account's transactions for the window [start, end).

        Raises:
            ValueError: if the window is empty or wider than 90 days
        """
        if end <= start:
            raise ValueError(f"Empty window: start={start} end={end}")
        if end - start > MAX_RANGE_SECONDS:
            raise ValueError(f"Window of {end - start}s exceeds SimpleFIN's 90 day limit")
        return self._get_accounts({
            "account": account_id,
            "start-date": str(start),
            "end-date": str(end),
        })

    def test_connection(self) -> dict:
        try:
            result = self.fetch_balances()
            return {
                "status": "connected",
                "url": redact_url(self.access_url),
                "accounts_found": len(result.accounts),
                "errors": result.errors,
            }
        except SimpleFINError as e:
            return {"status": "failed", "url": redact_url(self.access_url), "error": str(e)}

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
