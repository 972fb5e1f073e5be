"""
SimpleFIN Sync - incremental import of SimpleFIN transactions into Sure.

Pulls balances and transactions from a SimpleFIN bridge and posts new
transactions to a Sure (Maybe Finance) instance, each at most once.

Key Features:
- Per-account sync cursors, so each run only asks for what is new
- Date ranges paged in windows of at most 90 days (SimpleFIN's limit)
- Processed-id ledger written after every successful post
- Snapshot cache with a TTL to avoid redundant SimpleFIN calls
- Migration of older config.json shapes

Usage:
    # Normal run
    python -m simplefin_sync

    # Ignore cache and cursors, re-read the last year
    python -m simplefin_sync --force-refresh

    # Create Sure accounts for unmapped SimpleFIN accounts
    python -m simplefin_sync --auto-create-accounts

    # Refresh mapping names only
    python -m simplefin_sync --sync-metadata
"""

__version__ = "1.0.0"

from .config import SyncSettings
from .sync import SyncEngine, SyncReport, run_sync

__all__ = ["SyncSettings", "SyncEngine", "SyncReport", "run_sync", "__version__"]
