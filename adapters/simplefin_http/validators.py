from __future__ import annotations
from urllib.parse import urlsplit, urlunsplit
import requests
from pydantic import ValidationError
from adapters.adapter_types import AccountSet

class SimpleFINError(RuntimeError):
    pass

class SimpleFINConnectionError(SimpleFINError):
    pass

class SimpleFINResponseError(SimpleFINError):
    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body

def redact_url(url: str) -> str:
    """Hide the password embedded in a SimpleFIN access URL."""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = f"{parts.username}:***@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

def ensure_status_ok(resp: requests.Response) -> None:
    """
    Raises SimpleFINResponseError unless the bridge answered 200.
    The body is kept on the exception since SimpleFIN explains 402/403 there.
    """
    if resp.status_code != 200:
        raise SimpleFINResponseError(
            f"SimpleFIN returned HTTP {resp.status_code}: {resp.text.strip()[:500]}",
            status=resp.status_code,
            body=resp.text,
        )

def parse_account_set(text: str) -> AccountSet:
    try:
        return AccountSet.model_validate_json(text)
    except ValidationError as e:
        raise SimpleFINResponseError(f"Invalid account set from SimpleFIN: {e}", body=text) from e
