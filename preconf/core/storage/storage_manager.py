import sqlite3
from pathlib import Path
from typing import List, Optional, Tuple, Union

from preconf.core.errors import CommitmentExists
from preconf.core.storage.sqlite_adapter import SQLiteAdapter
from preconf.utils.logger import get_logger

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for a protocol deployment.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Stake accounts of the User and Provider registries
    - Bid and commitment logs of the store
    - Metadata (oracle binding)

    Every write is a single SQLite transaction, issued before the caller
    publishes the change in memory.
    """

    def __init__(self, data_dir: Union[str, Path], db_name: str = "preconf.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Registries
    # =========================================================================

    def save_stake_account(
        self, registry: str, identity: bytes, staked_amount: int, registered: bool
    ):
        """Persist the current stake of one identity."""
        self.adapter.save_stake_account(registry, identity, staked_amount, registered)

    def load_stake_accounts(self, registry: str) -> List[Tuple[bytes, int, bool]]:
        """
        Load all accounts of a registry.

        Returns:
            List of (identity, staked_amount, registered)
        """
        return self.adapter.get_stake_accounts(registry)

    # =========================================================================
    # Store
    # =========================================================================

    def persist_bid(self, signer: bytes, bid_hash: bytes, data: bytes):
        """Append a serialized bid."""
        self.adapter.append_bid(signer, bid_hash, data)

    def load_bids(self) -> List[bytes]:
        """Load all serialized bids, oldest first."""
        return self.adapter.get_all_bids()

    def persist_commitment(self, commitment_hash: bytes, committer: bytes, data: bytes):
        """
        Append a serialized commitment.

        Raises:
            CommitmentExists: another writer already stored this hash
        """
        try:
            self.adapter.append_commitment(commitment_hash, committer, data)
        except sqlite3.IntegrityError as exc:
            raise CommitmentExists(commitment_hash) from exc

    def load_commitments(self) -> List[bytes]:
        """Load all serialized commitments, oldest first."""
        return self.adapter.get_all_commitments()

    def get_bid_count(self) -> int:
        return self.adapter.get_bids_count()

    def get_commitment_count(self) -> int:
        return self.adapter.get_commitments_count()

    # =========================================================================
    # Metadata
    # =========================================================================

    def set_meta(self, key: str, value: str):
        self.adapter.set_meta(key, value)

    def get_meta(self, key: str) -> Optional[str]:
        return self.adapter.get_meta(key)
