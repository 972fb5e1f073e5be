from __future__ import annotations
import requests
from loguru import logger
from pydantic import ValidationError
from adapters.adapter_types import LedgerAccount, LedgerTransaction, NewLedgerAccount

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "simplefin-sync/1.0",
}

class LedgerAPIError(RuntimeError):
    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body

class LedgerConnectionError(LedgerAPIError):
    pass

class LedgerClient:
    """
    Client for the Sure (Maybe Finance) REST API.

    Every call authenticates with the X-Api-Key header. Non-2xx answers raise
    LedgerAPIError carrying the response body, since Rails puts the
    validation messages there.
    """

    def __init__(self, base_url: str, api_key: str, session: requests.Session | None = None,
                 timeout: float | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({**DEFAULT_HEADERS, "X-Api-Key": api_key})

    def _request(self, method: str, path: str, json: dict | None = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Ledger request {method} {url} failed: {e}")
            raise LedgerConnectionError(f"Request failed: {e}") from e
        if r.status_code >= 300:
            raise LedgerAPIError(f"API error {r.status_code}: {r.text}", status=r.status_code, body=r.text)
        return r

    def list_accounts(self) -> list[LedgerAccount]:
        r = self._request("GET", "/accounts")
        try:
            payload = r.json()
            return [LedgerAccount.model_validate(a) for a in payload.get("accounts", [])]
        except (ValueError, AttributeError, ValidationError) as e:
            raise LedgerAPIError(f"Invalid accounts response: {e}", status=r.status_code, body=r.text) from e

    def create_transaction(self, tx: LedgerTransaction) -> None:
        # Rails expects the record wrapped under its resource name
        self._request("POST", "/transactions", json={"transaction": tx.model_dump()})

    def create_account(self, account: NewLedgerAccount) -> str:
        """Create an account and return its id."""
        r = self._request("POST", "/accounts", json={"account": account.model_dump()})
        logger.debug(f"Create account API response: {r.text}")
        try:
            account_id = r.json().get("id")
        except (ValueError, AttributeError) as e:
            raise LedgerAPIError(f"Invalid create account response: {e}", status=r.status_code, body=r.text) from e
        if not account_id:
            raise LedgerAPIError("Create account response carried no id", status=r.status_code, body=r.text)
        return str(account_id)

    def test_connection(self) -> dict:
        try:
            accounts = self.list_accounts()
            return {"status": "connected", "url": self.base_url, "accounts_found": len(accounts)}
        except LedgerAPIError as e:
            return {"status": "failed", "url": self.base_url, "error": str(e)}

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
