import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from preconf.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.

    Provides:
    1. Stake accounts per registry.
    2. Append-only bid and commitment logs (ordered by insertion).
    3. Protocol metadata (key/value).

    Amounts are uint256 and exceed SQLite's INTEGER range, so they are
    stored as decimal TEXT.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        # Ensure directory exists
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
        """Close this thread's connection, if open."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Stake accounts (one row per identity per registry)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS stake_accounts (
                    registry TEXT NOT NULL,
                    identity BLOB NOT NULL,
                    staked_amount TEXT NOT NULL,
                    registered INTEGER NOT NULL,
                    PRIMARY KEY (registry, identity)
                )
            """)

            # 2. Bids (append-only, seq gives insertion order)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bids (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    signer BLOB NOT NULL,
                    bid_hash BLOB NOT NULL,
                    data BLOB NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_bids_signer ON bids(signer);")

            # 3. Commitments (append-only, one per commitment hash)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS commitments (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    commitment_hash BLOB NOT NULL UNIQUE,
                    committer BLOB NOT NULL,
                    data BLOB NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_commitments_committer ON commitments(committer);"
            )

            # 4. Protocol metadata
            conn.execute("""
                CREATE TABLE IF NOT EXISTS protocol_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    # =========================================================================
    # Stake Accounts
    # =========================================================================

    def save_stake_account(
        self, registry: str, identity: bytes, staked_amount: int, registered: bool
    ):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT OR REPLACE INTO stake_accounts (registry, identity, staked_amount, registered) "
                "VALUES (?, ?, ?, ?)",
                (registry, identity, str(staked_amount), int(registered))
            )

    def get_stake_accounts(self, registry: str) -> List[Tuple[bytes, int, bool]]:
        """Get all (identity, staked_amount, registered) of a registry."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT identity, staked_amount, registered FROM stake_accounts WHERE registry = ?",
            (registry,)
        )
        return [
            (bytes(row['identity']), int(row['staked_amount']), bool(row['registered']))
            for row in cursor
        ]

    # =========================================================================
    # Bids
    # =========================================================================

    def append_bid(self, signer: bytes, bid_hash: bytes, data: bytes):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT INTO bids (signer, bid_hash, data) VALUES (?, ?, ?)",
                (signer, bid_hash, data)
            )

    def get_all_bids(self) -> List[bytes]:
        """Get all bid records in insertion order."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM bids ORDER BY seq ASC")
        return [bytes(row['data']) for row in cursor]

    def get_bids_count(self) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as cnt FROM bids")
        return cursor.fetchone()['cnt']

    # =========================================================================
    # Commitments
    # =========================================================================

    def append_commitment(self, commitment_hash: bytes, committer: bytes, data: bytes):
        """Insert a commitment; a duplicate hash raises sqlite3.IntegrityError."""
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT INTO commitments (commitment_hash, committer, data) VALUES (?, ?, ?)",
                (commitment_hash, committer, data)
            )

    def get_all_commitments(self) -> List[bytes]:
        """Get all commitment records in insertion order."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM commitments ORDER BY seq ASC")
        return [bytes(row['data']) for row in cursor]

    def get_commitments_count(self) -> int:
        conn = self._get_conn()
        cursor = conn.execute("SELECT COUNT(*) as cnt FROM commitments")
        return cursor.fetchone()['cnt']

    # =========================================================================
    # Metadata
    # =========================================================================

    def set_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO protocol_meta (key, value) VALUES (?, ?)", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM protocol_meta WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None
