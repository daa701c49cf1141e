"""
PreConf Commitment Store - append-only ledger of bids and commitments.

Processing:
-----------
store_bid:
1. Recompute the bid digest from (txn_hash, bid_amount, block_number)
2. Recover the signer from the digest and bid signature
3. Require the signer's stake in the User registry
4. Append the bid to the signer's list

store_commitment:
1. Recompute the bid digest, reject a differing caller value
2. Recompute the commitment digest, reject a differing caller value
3. Recover the bidder, require stake in the User registry
4. Recover the committer, require stake in the Provider registry
5. Append the commitment

Every step before the append only reads. Mutations hold the store lock
and both registry locks, so no registration or other store call can
interleave with an authorization check.
"""

import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, List, Optional, Union

from preconf.core.commitment.records import Bid, Commitment
from preconf.core.config import StoreConfig
from preconf.core.errors import CommitmentExists, HashMismatch, InvalidConfig
from preconf.core.registry import StakeRegistry
from preconf.crypto import (
    bytes_to_hex,
    recover_address,
    signature_bytes,
    to_address,
    to_bytes,
    to_checksum_address,
)
from preconf.crypto import eip712
from preconf.utils.logger import get_logger

logger = get_logger("store")

HexOrBytes = Union[bytes, str]


def _matching_hash(field: str, given: HexOrBytes, expected: bytes) -> bytes:
    """Decode a caller-supplied digest and require it to equal ``expected``."""
    try:
        got = to_bytes(given, field)
    except (TypeError, ValueError) as exc:
        raise HashMismatch(field, expected, str(given)) from exc
    if got != expected:
        raise HashMismatch(field, expected, got)
    return got


class PreConfCommitmentStore:
    """
    Bid and commitment ledger gated by two stake registries.

    Attributes:
        user_registry: Registry authorizing bidders
        provider_registry: Registry authorizing committers
        config: StoreConfig holding the oracle identity
        bids: signer -> bids in insertion order
        commitments: commitment_hash -> Commitment
    """

    def __init__(
        self,
        user_registry: StakeRegistry,
        provider_registry: StakeRegistry,
        oracle: HexOrBytes,
        storage=None,  # Optional StorageManager for persistence
        lock: Optional[threading.RLock] = None,
    ):
        """
        Initialize the store.

        Args:
            user_registry: User stake registry
            provider_registry: Provider stake registry
            oracle: Oracle identity (stored only)
            storage: Optional StorageManager; records are loaded from it
            lock: Optional lock shared with the registries
        """
        self.user_registry = user_registry
        self.provider_registry = provider_registry
        self.config = StoreConfig(oracle)
        self.storage = storage
        self._lock = lock if lock is not None else threading.RLock()

        self.bids: Dict[bytes, List[Bid]] = {}
        self.commitments: Dict[bytes, Commitment] = {}
        self.commitments_by_committer: Dict[bytes, List[Commitment]] = {}
        self.bid_count = 0

        if storage:
            self._load_from_storage()

        logger.info(
            f"PreConfCommitmentStore initialized, oracle={to_checksum_address(self.oracle)}"
        )

    def _load_from_storage(self):
        stored_oracle = self.storage.get_meta("oracle")
        if stored_oracle is None:
            self.storage.set_meta("oracle", self.oracle.hex())
        elif stored_oracle != self.oracle.hex():
            raise InvalidConfig(
                "oracle", bytes_to_hex(self.oracle), f"storage was created for 0x{stored_oracle}"
            )

        for data in self.storage.load_bids():
            self._index_bid(Bid.from_bytes(data))
        for data in self.storage.load_commitments():
            self._index_commitment(Commitment.from_bytes(data))

        logger.info(
            f"Loaded {self.bid_count} bids and {len(self.commitments)} commitments from storage"
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def oracle(self) -> bytes:
        return self.config.oracle

    @property
    def commitment_count(self) -> int:
        return len(self.commitments)

    @contextmanager
    def _ledger_lock(self):
        """Hold the store lock and both registry locks, in fixed order."""
        locks = []
        for lock in (self._lock, self.user_registry.lock, self.provider_registry.lock):
            if all(lock is not held for held in locks):
                locks.append(lock)
        with ExitStack() as stack:
            for lock in locks:
                stack.enter_context(lock)
            yield

    # =========================================================================
    # Hashing / Recovery Views
    # =========================================================================

    @staticmethod
    def get_bid_hash(txn_hash: str, bid_amount: int, block_number: int) -> bytes:
        """Digest a user signs for this bid."""
        return eip712.bid_hash(txn_hash, bid_amount, block_number)

    @staticmethod
    def get_preconf_hash(
        txn_hash: str,
        bid_amount: int,
        block_number: int,
        bid_hash: HexOrBytes,
        bid_signature: HexOrBytes,
    ) -> bytes:
        """Digest a provider signs to commit to this bid."""
        return eip712.preconf_hash(txn_hash, bid_amount, block_number, bid_hash, bid_signature)

    @staticmethod
    def recover_address(digest: HexOrBytes, signature: HexOrBytes) -> bytes:
        """Recover the 20-byte signer of ``digest``."""
        return recover_address(to_bytes(digest, "digest"), signature_bytes(signature))

    # =========================================================================
    # Bids
    # =========================================================================

    def store_bid(
        self,
        txn_hash: str,
        bid_amount: int,
        block_number: int,
        bid_signature: HexOrBytes,
    ) -> Bid:
        """
        Verify and record a bid.

        Returns:
            The stored Bid

        Raises:
            InvalidSignature: signature malformed or unrecoverable
            Unauthorized: signer below the User registry's min_stake
        """
        bid_signature = signature_bytes(bid_signature, "bid_signature")
        digest = self.get_bid_hash(txn_hash, bid_amount, block_number)
        signer = recover_address(digest, bid_signature)

        with self._ledger_lock():
            self.user_registry.require_stake(signer)

            bid = Bid(
                txn_hash=txn_hash,
                bid_amount=bid_amount,
                block_number=block_number,
                bid_hash=digest,
                bid_signature=bid_signature,
                signer=signer,
            )
            if self.storage:
                self.storage.persist_bid(signer, digest, bid.to_bytes())
            self._index_bid(bid)

        logger.info(
            f"Stored bid {bytes_to_hex(digest)[:18]}... from {bid.signer_address} "
            f"(amount={bid_amount}, block={block_number})"
        )
        return bid

    def _index_bid(self, bid: Bid):
        self.bids.setdefault(bid.signer, []).append(bid)
        self.bid_count += 1

    def get_bids_for(self, identity: HexOrBytes) -> List[Bid]:
        """All bids signed by ``identity``, oldest first."""
        return list(self.bids.get(to_address(identity), []))

    # =========================================================================
    # Commitments
    # =========================================================================

    def store_commitment(
        self,
        txn_hash: str,
        bid_amount: int,
        block_number: int,
        bid_hash: HexOrBytes,
        bid_signature: HexOrBytes,
        commitment_hash: HexOrBytes,
        commitment_signature: HexOrBytes,
    ) -> Commitment:
        """
        Verify and record a provider's commitment to a bid.

        Returns:
            The stored Commitment

        Raises:
            HashMismatch: bid_hash or commitment_hash undecodable or differs
                from recomputation
            InvalidSignature: either signature malformed or unrecoverable
            Unauthorized: bidder or committer below their registry's min_stake
            CommitmentExists: commitment_hash already stored
        """
        bid_signature = signature_bytes(bid_signature, "bid_signature")
        commitment_signature = signature_bytes(commitment_signature, "commitment_signature")

        bid_hash = _matching_hash(
            "bid_hash", bid_hash, self.get_bid_hash(txn_hash, bid_amount, block_number)
        )
        commitment_hash = _matching_hash(
            "commitment_hash",
            commitment_hash,
            self.get_preconf_hash(txn_hash, bid_amount, block_number, bid_hash, bid_signature),
        )

        with self._ledger_lock():
            bidder = recover_address(bid_hash, bid_signature)
            self.user_registry.require_stake(bidder)

            committer = recover_address(commitment_hash, commitment_signature)
            self.provider_registry.require_stake(committer)

            if commitment_hash in self.commitments:
                raise CommitmentExists(commitment_hash)

            commitment = Commitment(
                bid=Bid(
                    txn_hash=txn_hash,
                    bid_amount=bid_amount,
                    block_number=block_number,
                    bid_hash=bid_hash,
                    bid_signature=bid_signature,
                    signer=bidder,
                ),
                commitment_hash=commitment_hash,
                commitment_signature=commitment_signature,
                committer=committer,
            )
            if self.storage:
                self.storage.persist_commitment(
                    commitment_hash, committer, commitment.to_bytes()
                )
            self._index_commitment(commitment)

        logger.info(
            f"Stored commitment {bytes_to_hex(commitment_hash)[:18]}... by "
            f"{commitment.committer_address} for bid from {commitment.bid.signer_address}"
        )
        return commitment

    def _index_commitment(self, commitment: Commitment):
        self.commitments[commitment.commitment_hash] = commitment
        self.commitments_by_committer.setdefault(commitment.committer, []).append(commitment)

    def get_commitment(self, commitment_hash: HexOrBytes) -> Optional[Commitment]:
        """Get a stored commitment by its hash."""
        return self.commitments.get(to_bytes(commitment_hash, "commitment_hash"))

    def get_commitments_for(self, committer: HexOrBytes) -> List[Commitment]:
        """All commitments signed by ``committer``, oldest first."""
        return list(self.commitments_by_committer.get(to_address(committer), []))

    # =========================================================================
    # Statistics
    # =========================================================================

    def stats(self) -> dict:
        """Get store statistics."""
        return {
            "bids": self.bid_count,
            "bidders": len(self.bids),
            "commitments": self.commitment_count,
            "committers": len(self.commitments_by_committer),
            "oracle": to_checksum_address(self.oracle),
        }


__all__ = ["PreConfCommitmentStore"]
