"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Committed notifications (event journal)
- Auction state snapshots
- Auction metadata
"""

from sda.core.storage.sqlite_adapter import SQLiteAdapter
from sda.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
