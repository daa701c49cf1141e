"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Stake accounts (User and Provider registries)
- Bids and Commitments (append-only logs)
- Protocol Metadata
"""

from preconf.core.storage.sqlite_adapter import SQLiteAdapter
from preconf.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
