"""
Unit tests for SQLite storage.
"""

import sqlite3

import pytest

from preconf.core.errors import CommitmentExists
from preconf.core.storage import SQLiteAdapter, StorageManager


@pytest.fixture
def storage(tmp_path):
    manager = StorageManager(tmp_path / "data")
    yield manager
    manager.close()


class TestSQLiteAdapter:
    """Tests for the SQLite backend."""

    def test_creates_database(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "test.db"
        adapter = SQLiteAdapter(db_path)
        assert db_path.exists()
        adapter.close()

    def test_stake_accounts_keep_uint256(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        identity = b"\x01" * 20
        adapter.save_stake_account("user", identity, 2**256 - 1, True)

        assert adapter.get_stake_accounts("user") == [(identity, 2**256 - 1, True)]
        assert adapter.get_stake_accounts("provider") == []

    def test_stake_account_upsert(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        identity = b"\x02" * 20
        adapter.save_stake_account("user", identity, 1, True)
        adapter.save_stake_account("user", identity, 3, True)

        assert adapter.get_stake_accounts("user") == [(identity, 3, True)]

    def test_bids_in_insertion_order(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        signer = b"\x03" * 20
        for i in range(3):
            adapter.append_bid(signer, bytes([i]) * 32, b"bid%d" % i)
        adapter.append_bid(b"\x04" * 20, b"\x09" * 32, b"other")

        assert adapter.get_all_bids() == [b"bid0", b"bid1", b"bid2", b"other"]
        assert adapter.get_bids_count() == 4

    def test_commitment_hash_unique(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        adapter.append_commitment(b"\x05" * 32, b"\x06" * 20, b"c1")

        with pytest.raises(sqlite3.IntegrityError):
            adapter.append_commitment(b"\x05" * 32, b"\x06" * 20, b"c2")

        assert adapter.get_all_commitments() == [b"c1"]
        assert adapter.get_commitments_count() == 1

    def test_meta(self, tmp_path):
        adapter = SQLiteAdapter(tmp_path / "test.db")
        assert adapter.get_meta("oracle") is None
        adapter.set_meta("oracle", "abcd")
        assert adapter.get_meta("oracle") == "abcd"


class TestStorageManager:
    """Tests for the storage facade."""

    def test_db_path(self, storage, tmp_path):
        assert storage.db_path == tmp_path / "data" / "preconf.db"

    def test_counts(self, storage):
        storage.persist_bid(b"\x01" * 20, b"\x02" * 32, b"bid")
        storage.persist_commitment(b"\x03" * 32, b"\x04" * 20, b"commitment")

        assert storage.get_bid_count() == 1
        assert storage.get_commitment_count() == 1
        assert storage.load_bids() == [b"bid"]
        assert storage.load_commitments() == [b"commitment"]

    def test_registries_are_separate(self, storage):
        storage.save_stake_account("user", b"\x01" * 20, 5, True)
        assert storage.load_stake_accounts("user") == [(b"\x01" * 20, 5, True)]
        assert storage.load_stake_accounts("provider") == []

    def test_duplicate_commitment_raises_commitment_exists(self, storage):
        storage.persist_commitment(b"\x03" * 32, b"\x04" * 20, b"first")

        with pytest.raises(CommitmentExists) as exc_info:
            storage.persist_commitment(b"\x03" * 32, b"\x05" * 20, b"second")

        assert exc_info.value.commitment_hash == b"\x03" * 32
        assert not isinstance(exc_info.value, sqlite3.IntegrityError)
        assert storage.load_commitments() == [b"first"]
