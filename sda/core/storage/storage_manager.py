import json
from pathlib import Path
from typing import List, Optional

from sda.core.events import Event, event_from_dict
from sda.core.storage.sqlite_adapter import SQLiteAdapter
from sda.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for an auction.
    
    Coordinates data persistence using SQLite adapter.
    Handles:
    - Event journal (committed notifications only)
    - Latest auction state snapshot
    """

    def __init__(self, data_dir: Path, db_name: str = "auction.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    # =========================================================================
    # Commit
    # =========================================================================

    def persist_call(self, events: List[Event], state: dict, committed_at: int):
        """Persist one committed call: its events plus the resulting state."""
        rows = [(e.name, json.dumps(e.to_dict()), committed_at) for e in events]
        self.adapter.commit_call(rows, json.dumps(state))

    # =========================================================================
    # Load
    # =========================================================================

    def load_state(self) -> Optional[dict]:
        """Latest persisted auction state, or None for a fresh database."""
        raw = self.adapter.get_meta("state")
        return json.loads(raw) if raw else None

    def load_events(self, name: Optional[str] = None) -> List[Event]:
        """Committed events in journal order, optionally filtered by name."""
        return [
            event_from_dict(json.loads(payload))
            for _, _, payload, _ in self.adapter.get_events(name)
        ]

    def event_count(self) -> int:
        return self.adapter.count_events()

    def close(self):
        self.adapter.close()
