"""
Bid and Commitment records.

Records are immutable once built. Their identities (signer, bidder,
committer) are always the result of signature recovery and never taken
from the caller.
"""

from dataclasses import dataclass

from preconf.crypto import bytes_to_hex, to_checksum_address


def _put_var(data: bytes, width: int) -> bytes:
    return len(data).to_bytes(width, byteorder="big") + data


def _take(data: bytes, offset: int, size: int):
    if offset + size > len(data):
        raise ValueError("Record data truncated")
    return data[offset:offset + size], offset + size


def _take_var(data: bytes, offset: int, width: int):
    raw, offset = _take(data, offset, width)
    return _take(data, offset, int.from_bytes(raw, byteorder="big"))


# =============================================================================
# Bid
# =============================================================================


@dataclass(frozen=True)
class Bid:
    """
    A user's signed bid, as stored.

    Attributes:
        txn_hash: Opaque transaction identifier
        bid_amount: Bid in wei (uint64)
        block_number: Target block (uint64)
        bid_hash: 32-byte typed-data digest the user signed
        bid_signature: 65-byte recoverable signature
        signer: 20-byte identity recovered from the signature
    """
    txn_hash: str
    bid_amount: int
    block_number: int
    bid_hash: bytes
    bid_signature: bytes
    signer: bytes

    def __post_init__(self):
        """Validate field constraints."""
        if not (0 <= self.bid_amount < 2**64):
            raise ValueError(f"bid_amount must be uint64, got {self.bid_amount}")
        if not (0 <= self.block_number < 2**64):
            raise ValueError(f"block_number must be uint64, got {self.block_number}")
        if len(self.bid_hash) != 32:
            raise ValueError(f"bid_hash must be 32 bytes, got {len(self.bid_hash)}")
        if len(self.signer) != 20:
            raise ValueError(f"signer must be 20 bytes, got {len(self.signer)}")

    @property
    def signer_address(self) -> str:
        return to_checksum_address(self.signer)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_bytes(self) -> bytes:
        """
        Serialize bid to bytes.

        Format: len(4) || txn_hash || bid_amount(8) || block_number(8) ||
                bid_hash(32) || len(1) || bid_signature || signer(20)
        """
        return (
            _put_var(self.txn_hash.encode("utf-8"), 4)
            + self.bid_amount.to_bytes(8, byteorder="big")
            + self.block_number.to_bytes(8, byteorder="big")
            + self.bid_hash
            + _put_var(self.bid_signature, 1)
            + self.signer
        )

    @classmethod
    def read_from(cls, data: bytes, offset: int = 0):
        """Parse a bid starting at ``offset``; returns (bid, new_offset)."""
        txn_hash, offset = _take_var(data, offset, 4)
        bid_amount, offset = _take(data, offset, 8)
        block_number, offset = _take(data, offset, 8)
        bid_hash, offset = _take(data, offset, 32)
        bid_signature, offset = _take_var(data, offset, 1)
        signer, offset = _take(data, offset, 20)
        bid = cls(
            txn_hash=txn_hash.decode("utf-8"),
            bid_amount=int.from_bytes(bid_amount, byteorder="big"),
            block_number=int.from_bytes(block_number, byteorder="big"),
            bid_hash=bid_hash,
            bid_signature=bid_signature,
            signer=signer,
        )
        return bid, offset

    @classmethod
    def from_bytes(cls, data: bytes) -> "Bid":
        """Deserialize bid from bytes."""
        bid, offset = cls.read_from(data)
        if offset != len(data):
            raise ValueError(f"Trailing bytes after bid: {len(data) - offset}")
        return bid

    def to_dict(self) -> dict:
        return {
            "txn_hash": self.txn_hash,
            "bid_amount": self.bid_amount,
            "block_number": self.block_number,
            "bid_hash": bytes_to_hex(self.bid_hash),
            "bid_signature": bytes_to_hex(self.bid_signature),
            "signer": self.signer_address,
        }

    def __repr__(self) -> str:
        return (
            f"Bid(txn={self.txn_hash!r}, amount={self.bid_amount}, "
            f"block={self.block_number}, hash={bytes_to_hex(self.bid_hash)[:10]}..., "
            f"signer={self.signer_address})"
        )


# =============================================================================
# Commitment
# =============================================================================


@dataclass(frozen=True)
class Commitment:
    """
    A provider's signed commitment to a specific bid.

    Attributes:
        bid: The bid committed to (re-verified, signer recovered)
        commitment_hash: 32-byte typed-data digest the provider signed
        commitment_signature: 65-byte recoverable signature
        committer: 20-byte identity recovered from the commitment signature
    """
    bid: Bid
    commitment_hash: bytes
    commitment_signature: bytes
    committer: bytes

    def __post_init__(self):
        if len(self.commitment_hash) != 32:
            raise ValueError(
                f"commitment_hash must be 32 bytes, got {len(self.commitment_hash)}"
            )
        if len(self.committer) != 20:
            raise ValueError(f"committer must be 20 bytes, got {len(self.committer)}")

    @property
    def bidder(self) -> bytes:
        return self.bid.signer

    @property
    def committer_address(self) -> str:
        return to_checksum_address(self.committer)

    def to_bytes(self) -> bytes:
        """
        Serialize commitment to bytes.

        Format: bid || commitment_hash(32) || len(1) || commitment_signature ||
                committer(20)
        """
        return (
            self.bid.to_bytes()
            + self.commitment_hash
            + _put_var(self.commitment_signature, 1)
            + self.committer
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "Commitment":
        """Deserialize commitment from bytes."""
        bid, offset = Bid.read_from(data)
        commitment_hash, offset = _take(data, offset, 32)
        commitment_signature, offset = _take_var(data, offset, 1)
        committer, offset = _take(data, offset, 20)
        if offset != len(data):
            raise ValueError(f"Trailing bytes after commitment: {len(data) - offset}")
        return cls(
            bid=bid,
            commitment_hash=commitment_hash,
            commitment_signature=commitment_signature,
            committer=committer,
        )

    def to_dict(self) -> dict:
        return {
            "bid": self.bid.to_dict(),
            "commitment_hash": bytes_to_hex(self.commitment_hash),
            "commitment_signature": bytes_to_hex(self.commitment_signature),
            "committer": self.committer_address,
        }

    def __repr__(self) -> str:
        return (
            f"Commitment(hash={bytes_to_hex(self.commitment_hash)[:10]}..., "
            f"bidder={self.bid.signer_address}, committer={self.committer_address})"
        )


__all__ = ["Bid", "Commitment"]
