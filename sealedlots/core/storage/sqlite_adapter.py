import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from sealedlots.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Auction State:
       - Lots (creation fields + winner summary)
       - Lot parts (assets on sale)
       - Bids
    2. Audit trail (ordered event records)
    3. Chain metadata (owner, schema version)

    uint256 values do not fit SQLite INTEGER and are stored as decimal TEXT.
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

    def close(self):
        """Close the connection of the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Lots
            conn.execute("""
                CREATE TABLE IF NOT EXISTS lots (
                    lot_id TEXT PRIMARY KEY,
                    owner BLOB NOT NULL,
                    expiration INTEGER NOT NULL,
                    reference_amount TEXT NOT NULL,
                    bid_count TEXT NOT NULL,
                    winning_bid TEXT,
                    winning_score TEXT NOT NULL,
                    winning_secret_hash BLOB NOT NULL
                )
            """)

            # 2. Lot parts, ordered by position
            conn.execute("""
                CREATE TABLE IF NOT EXISTS lot_parts (
                    lot_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    token BLOB NOT NULL,
                    part TEXT NOT NULL,
                    PRIMARY KEY (lot_id, position)
                )
            """)

            # 3. Bids (amounts as a JSON list of decimal strings)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bids (
                    lot_id TEXT NOT NULL,
                    bid_index TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    sender BLOB NOT NULL,
                    amounts TEXT NOT NULL,
                    secret_hash BLOB NOT NULL,
                    PRIMARY KEY (lot_id, bid_index)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_bids_seq ON bids(lot_id, seq);")

            # 4. Audit trail
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    lot_id TEXT,
                    payload TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_events_lot ON events(lot_id);")

            # 5. Chain State (Metadata)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chain_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    # =========================================================================
    # Chain State Operations
    # =========================================================================

    def set_chain_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))

    def get_chain_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM chain_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    # =========================================================================
    # Event Operations
    # =========================================================================

    @staticmethod
    def _insert_event(conn: sqlite3.Connection, kind: str, lot_id: Optional[int], payload: str):
        conn.execute(
            "INSERT INTO events (kind, lot_id, payload) VALUES (?, ?, ?)",
            (kind, None if lot_id is None else str(lot_id), payload)
        )

    def set_chain_meta_with_event(self, key: str, value: str, kind: str, payload: str):
        """Atomically update a metadata key and log the event that changed it."""
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))
            self._insert_event(conn, kind, None, payload)

    def get_all_events(self) -> List[Tuple[str, str]]:
        """Get all (kind, payload) in append order."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT kind, payload FROM events ORDER BY seq ASC")
        return [(row['kind'], row['payload']) for row in cursor]

    # =========================================================================
    # Auction Operations
    # =========================================================================

    def replace_lot(
        self,
        lot_row: Sequence[Any],
        part_rows: List[Tuple[int, bytes, int]],
        event_kind: str,
        event_payload: str,
    ):
        """
        Atomically store a freshly created lot.

        Any previous lot at the same id is removed together with its parts
        and bids.

        Args:
            lot_row: (lot_id, owner, expiration, reference_amount, bid_count,
                      winning_bid, winning_score, winning_secret_hash)
            part_rows: List of (position, token, part)
            event_kind: Audit record kind
            event_payload: Audit record JSON
        """
        lot_id = str(lot_row[0])
        conn = self._get_conn()
        with conn:
            conn.execute("DELETE FROM bids WHERE lot_id = ?", (lot_id,))
            conn.execute("DELETE FROM lot_parts WHERE lot_id = ?", (lot_id,))
            conn.execute(
                "INSERT OR REPLACE INTO lots (lot_id, owner, expiration, reference_amount, "
                "bid_count, winning_bid, winning_score, winning_secret_hash) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                self._encode_lot_row(lot_row)
            )
            conn.executemany(
                "INSERT INTO lot_parts (lot_id, position, token, part) VALUES (?, ?, ?, ?)",
                [(lot_id, pos, token, str(part)) for pos, token, part in part_rows]
            )
            self._insert_event(conn, event_kind, lot_row[0], event_payload)

    def append_bid(
        self,
        lot_id: int,
        bid_index: int,
        sender: bytes,
        amounts: Sequence[int],
        secret_hash: bytes,
        bid_count: int,
        winning_bid: Optional[int],
        winning_score: int,
        winning_secret_hash: bytes,
        event_kind: str,
        event_payload: str,
    ):
        """Atomically insert a bid, update the winner summary and log the event."""
        key = str(lot_id)
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                "SELECT COUNT(*) AS cnt FROM bids WHERE lot_id = ?", (key,)
            )
            seq = cursor.fetchone()['cnt']
            conn.execute(
                "INSERT INTO bids (lot_id, bid_index, seq, sender, amounts, secret_hash) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (key, str(bid_index), seq, sender, json.dumps([str(a) for a in amounts]), secret_hash)
            )
            conn.execute(
                "UPDATE lots SET bid_count = ?, winning_bid = ?, winning_score = ?, "
                "winning_secret_hash = ? WHERE lot_id = ?",
                (
                    str(bid_count),
                    None if winning_bid is None else str(winning_bid),
                    str(winning_score),
                    winning_secret_hash,
                    key,
                )
            )
            self._insert_event(conn, event_kind, lot_id, event_payload)

    @staticmethod
    def _encode_lot_row(lot_row: Sequence[Any]) -> Tuple[Any, ...]:
        lot_id, owner, expiration, reference_amount, bid_count, winning_bid, winning_score, winning_hash = lot_row
        return (
            str(lot_id),
            owner,
            expiration,
            str(reference_amount),
            str(bid_count),
            None if winning_bid is None else str(winning_bid),
            str(winning_score),
            winning_hash,
        )

    def get_all_lots(self) -> List[Tuple]:
        """Get all lots as decoded tuples (same layout as replace_lot's lot_row)."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT * FROM lots")
        return [
            (
                int(row['lot_id']),
                row['owner'],
                row['expiration'],
                int(row['reference_amount']),
                int(row['bid_count']),
                None if row['winning_bid'] is None else int(row['winning_bid']),
                int(row['winning_score']),
                row['winning_secret_hash'],
            )
            for row in cursor
        ]

    def get_lot_parts(self, lot_id: int) -> List[Tuple[bytes, int]]:
        """Get (token, part) of a lot in position order."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT token, part FROM lot_parts WHERE lot_id = ? ORDER BY position ASC",
            (str(lot_id),)
        )
        return [(row['token'], int(row['part'])) for row in cursor]

    def get_lot_bids(self, lot_id: int) -> List[Tuple[int, bytes, List[int], bytes]]:
        """Get (bid_index, sender, amounts, secret_hash) of a lot in insertion order."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT bid_index, sender, amounts, secret_hash FROM bids "
            "WHERE lot_id = ? ORDER BY seq ASC",
            (str(lot_id),)
        )
        return [
            (
                int(row['bid_index']),
                row['sender'],
                [int(a) for a in json.loads(row['amounts'])],
                row['secret_hash'],
            )
            for row in cursor
        ]
