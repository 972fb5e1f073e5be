"""
Runtime settings for the SimpleFIN sync.

Loads settings from environment variables (and a local .env) with sensible
defaults. Account mappings and API credentials live in the JSON config file
handled by app_config; this module only says where things are and how the
sync behaves.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# Hard limit of the SimpleFIN protocol
MAX_WINDOW_DAYS = 90


def _optional_float(name: str) -> Optional[float]:
    env_val = os.getenv(name)
    if not env_val:
        return None
    try:
        return float(env_val)
    except ValueError:
        return None


@dataclass
class SyncSettings:
    """Configuration settings for the sync engine."""

    # config.json with credentials and the account map
    config_path: Path = field(
        default_factory=lambda: Path(os.getenv("SIMPLEFIN_SYNC_CONFIG", "config.json"))
    )

    # Directory holding sync_state.json and account_sync_state.json
    state_dir: Path = field(
        default_factory=lambda: Path(os.getenv("SIMPLEFIN_SYNC_STATE_DIR", "."))
    )
    # Snapshot cache directory, defaults to <state_dir>/tmp
    cache_dir: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.environ["SIMPLEFIN_SYNC_CACHE_DIR"])
            if os.getenv("SIMPLEFIN_SYNC_CACHE_DIR") else None
        )
    )

    # Fetch settings
    cache_ttl_hours: float = field(
        default_factory=lambda: float(os.getenv("SIMPLEFIN_SYNC_CACHE_TTL_HOURS", "24"))
    )
    lookback_days: int = field(
        default_factory=lambda: int(os.getenv("SIMPLEFIN_SYNC_LOOKBACK_DAYS", "365"))
    )
    max_window_days: int = field(
        default_factory=lambda: int(os.getenv("SIMPLEFIN_SYNC_MAX_WINDOW_DAYS", str(MAX_WINDOW_DAYS)))
    )

    # None keeps the requests default (no timeout)
    request_timeout: Optional[float] = field(
        default_factory=lambda: _optional_float("REQUEST_TIMEOUT")
    )

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))

    def __post_init__(self):
        self.config_path = Path(self.config_path)
        self.state_dir = Path(self.state_dir)
        if self.cache_dir is None:
            self.cache_dir = self.state_dir / "tmp"
        else:
            self.cache_dir = Path(self.cache_dir)

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Create settings from environment variables."""
        return cls()

    @property
    def processed_path(self) -> Path:
        return self.state_dir / "sync_state.json"

    @property
    def cursor_path(self) -> Path:
        return self.state_dir / "account_sync_state.json"

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.cache_ttl_hours)

    @property
    def lookback(self) -> timedelta:
        return timedelta(days=self.lookback_days)

    @property
    def max_window(self) -> timedelta:
        return timedelta(days=self.max_window_days)

    def validate(self) -> list[str]:
        """Validate settings and return list of errors."""
        errors = []
        if self.max_window_days <= 0 or self.max_window_days > MAX_WINDOW_DAYS:
            errors.append(f"SIMPLEFIN_SYNC_MAX_WINDOW_DAYS must be between 1 and {MAX_WINDOW_DAYS}")
        if self.lookback_days <= 0:
            errors.append("SIMPLEFIN_SYNC_LOOKBACK_DAYS must be positive")
        if self.cache_ttl_hours < 0:
            errors.append("SIMPLEFIN_SYNC_CACHE_TTL_HOURS must not be negative")
        if self.request_timeout is not None and self.request_timeout <= 0:
            errors.append("REQUEST_TIMEOUT must be positive")
        return errors
