import sqlite3
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from blindauction.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for auction state.

    Provides:
    1. Auction metadata (window, beneficiary, highest bid, escrow totals).
    2. Bid sequences per bidder.
    3. Pending refunds.

    Amounts are uint256 and do not fit SQLite INTEGER, so they are stored as
    decimal TEXT.
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
            # Enable WAL mode for better concurrency
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS auction_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            # Append-only; commitment is zeroed in place on reveal
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bids (
                    bidder BLOB NOT NULL,
                    bid_index INTEGER NOT NULL,
                    commitment BLOB NOT NULL,
                    deposit TEXT NOT NULL,
                    PRIMARY KEY (bidder, bid_index)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS refunds (
                    bidder BLOB PRIMARY KEY,
                    amount TEXT NOT NULL
                )
            """)

    def close(self) -> None:
        """Close this thread's connection."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Metadata
    # =========================================================================

    def set_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO auction_meta (key, value) VALUES (?, ?)", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM auction_meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    def get_all_meta(self) -> Dict[str, str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT key, value FROM auction_meta")
        return {row['key']: row['value'] for row in cursor}

    # =========================================================================
    # Bids & Refunds
    # =========================================================================

    def get_all_bids(self) -> List[Tuple[bytes, int, bytes, int]]:
        """Get all (bidder, index, commitment, deposit), ordered per bidder."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT bidder, bid_index, commitment, deposit FROM bids ORDER BY bidder, bid_index ASC"
        )
        return [
            (bytes(row['bidder']), row['bid_index'], bytes(row['commitment']), int(row['deposit']))
            for row in cursor
        ]

    def get_all_refunds(self) -> List[Tuple[bytes, int]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT bidder, amount FROM refunds")
        return [(bytes(row['bidder']), int(row['amount'])) for row in cursor]

    def apply_update(
        self,
        meta: Optional[Dict[str, str]] = None,
        new_bid: Optional[Tuple[bytes, int, bytes, int]] = None,
        zeroed: Optional[Tuple[bytes, Iterable[int]]] = None,
        refunds: Optional[Dict[bytes, int]] = None,
    ):
        """
        Atomically apply one auction operation's effect.

        Args:
            meta: Metadata keys to overwrite
            new_bid: (bidder, index, commitment, deposit) to insert
            zeroed: (bidder, indexes) whose commitments become all-zero
            refunds: bidder -> new pending amount
        """
        conn = self._get_conn()
        with conn:
            if new_bid is not None:
                bidder, index, commitment, deposit = new_bid
                conn.execute(
                    "INSERT INTO bids (bidder, bid_index, commitment, deposit) VALUES (?, ?, ?, ?)",
                    (bidder, index, commitment, str(deposit))
                )

            if zeroed is not None:
                bidder, indexes = zeroed
                conn.executemany(
                    "UPDATE bids SET commitment = ? WHERE bidder = ? AND bid_index = ?",
                    [(bytes(32), bidder, i) for i in indexes]
                )

            for bidder, amount in (refunds or {}).items():
                conn.execute(
                    "INSERT OR REPLACE INTO refunds (bidder, amount) VALUES (?, ?)",
                    (bidder, str(amount))
                )

            for key, value in (meta or {}).items():
                conn.execute(
                    "INSERT OR REPLACE INTO auction_meta (key, value) VALUES (?, ?)",
                    (key, value)
                )
