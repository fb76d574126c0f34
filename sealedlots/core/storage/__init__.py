"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Lots, lot parts and bids
- The audit trail
- Auction metadata
"""

from sealedlots.core.storage.sqlite_adapter import SQLiteAdapter
from sealedlots.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
