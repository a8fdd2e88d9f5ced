import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from sda.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.
    
    Provides:
    1. Append-only event journal (one row per committed notification).
    2. Key-value metadata (latest state snapshot, deployment info).
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Event journal
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    committed_at INTEGER NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_events_name ON events(name);")

            # 2. Metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS auction_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    # =========================================================================
    # Event Journal
    # =========================================================================

    def get_events(self, name: Optional[str] = None) -> List[Tuple[int, str, str, int]]:
        """Get (seq, name, payload, committed_at) rows in journal order."""
        conn = self._get_conn()
        if name:
            cursor = conn.execute(
                "SELECT seq, name, payload, committed_at FROM events WHERE name = ? ORDER BY seq ASC",
                (name,)
            )
        else:
            cursor = conn.execute("SELECT seq, name, payload, committed_at FROM events ORDER BY seq ASC")
        return [tuple(row) for row in cursor]

    def count_events(self) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as cnt FROM events")
        return cursor.fetchone()['cnt']

    # =========================================================================
    # Metadata
    # =========================================================================

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM auction_meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    # =========================================================================
    # Atomic Commit
    # =========================================================================

    def commit_call(self, rows: List[Tuple[str, str, int]], state_json: str):
        """
        Atomically append a call's events and replace the state snapshot.
        
        Args:
            rows: (name, payload_json, committed_at) per event
            state_json: Serialized auction state after the call
        """
        conn = self._get_conn()
        with conn:
            if rows:
                conn.executemany(
                    "INSERT INTO events (name, payload, committed_at) VALUES (?, ?, ?)",
                    rows
                )
            conn.execute(
                "INSERT OR REPLACE INTO auction_meta (key, value) VALUES (?, ?)",
                ("state", state_json)
            )

    def close(self):
        if hasattr(self._conn_local, "conn"):
            self._conn_local.conn.close()
            del self._conn_local.conn
