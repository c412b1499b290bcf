"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Auction metadata and highest bid
- Sealed bid sequences
- Refund ledger
"""

from blindauction.core.storage.sqlite_adapter import SQLiteAdapter
from blindauction.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
