"""
EIP-712 typed-data hashing for bids and commitments.

Overview:
---------
Every signed object is hashed in two steps:

    struct_hash = keccak256(TYPEHASH || field_1 || ... || field_n)
    digest      = keccak256(0x19 || 0x01 || DOMAIN_SEPARATOR || struct_hash)

Static fields (uint64) are encoded as 32-byte big-endian words, dynamic
fields (string) are replaced by the keccak256 of their UTF-8 bytes. The
type hash prefix stops a bid digest from ever colliding with a commitment
digest, and the domain separator binds the digest to one protocol name and
version (and optionally one chain and verifying contract).

Bids and commitments live in separate domains:

    DOMAIN_SEPARATOR_BID      name="PreConfBid",        version="1"
    DOMAIN_SEPARATOR_PRECONF  name="PreConfCommitment", version="1"

A commitment covers the bid's hash and signature as lowercase hex text
without the ``0x`` marker, exactly as a provider sees them on the wire.
"""

from functools import lru_cache
from typing import Optional, Union

from preconf.crypto import keccak256, to_address, to_bytes


# =============================================================================
# Type Strings
# =============================================================================

EIP712_DOMAIN_TYPE = "EIP712Domain(string name,string version)"

EIP712_DOMAIN_TYPE_FULL = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)

PRECONF_BID_TYPE = "PreConfBid(string txnHash,uint64 bid,uint64 blockNumber)"

PRECONF_COMMITMENT_TYPE = (
    "PreConfCommitment(string txnHash,uint64 bid,uint64 blockNumber,"
    "string bidHash,string signature)"
)

BID_DOMAIN_NAME = "PreConfBid"
COMMITMENT_DOMAIN_NAME = "PreConfCommitment"
DOMAIN_VERSION = "1"

# Prefix of every typed-data digest
EIP191_TYPED_DATA_PREFIX = b"\x19\x01"

UINT64_MAX = 2**64 - 1
UINT256_MAX = 2**256 - 1


# =============================================================================
# Encoding Helpers
# =============================================================================


def encode_uint(value: int, max_value: int = UINT256_MAX, name: str = "value") -> bytes:
    """ABI-encode an unsigned integer as a 32-byte big-endian word."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be int, got {type(value).__name__}")
    if not (0 <= value <= max_value):
        raise ValueError(f"{name} must be in [0, {max_value}], got {value}")
    return value.to_bytes(32, byteorder="big")


def encode_string(value: str) -> bytes:
    """ABI-encode a dynamic string field: keccak256 of its UTF-8 bytes."""
    if not isinstance(value, str):
        raise ValueError(f"expected str, got {type(value).__name__}")
    return keccak256(value.encode("utf-8"))


def encode_address(value: Union[bytes, str]) -> bytes:
    """ABI-encode a 20-byte identity, left-padded to 32 bytes."""
    return b"\x00" * 12 + to_address(value)


def canonical_hex(value: Union[bytes, bytearray, str], name: str = "value") -> str:
    """
    Lowercase hex text of ``value`` with no ``0x`` marker.

    Accepts raw bytes or a hex string; hex strings are decoded and
    re-rendered so case and prefix never change the result.
    """
    return to_bytes(value, name).hex()


# =============================================================================
# Type Hashes
# =============================================================================

EIP712_DOMAIN_TYPEHASH = keccak256(EIP712_DOMAIN_TYPE.encode("ascii"))
EIP712_DOMAIN_TYPEHASH_FULL = keccak256(EIP712_DOMAIN_TYPE_FULL.encode("ascii"))
EIP712_MESSAGE_TYPEHASH = keccak256(PRECONF_BID_TYPE.encode("ascii"))
EIP712_COMMITMENT_TYPEHASH = keccak256(PRECONF_COMMITMENT_TYPE.encode("ascii"))


def message_type_hash() -> bytes:
    """Type hash of the bid struct."""
    return EIP712_MESSAGE_TYPEHASH


def commitment_type_hash() -> bytes:
    """Type hash of the commitment struct."""
    return EIP712_COMMITMENT_TYPEHASH


# =============================================================================
# Domain Separation
# =============================================================================


@lru_cache(maxsize=None)
def domain_separator(
    name: str = BID_DOMAIN_NAME,
    version: str = DOMAIN_VERSION,
    chain_id: Optional[int] = None,
    verifying_contract: Optional[str] = None,
) -> bytes:
    """
    Compute the EIP-712 domain separator.

    With neither ``chain_id`` nor ``verifying_contract`` the domain is
    ``EIP712Domain(string name,string version)``, which is what deployed
    preconfirmation stores sign against. Supplying both switches to the
    four-field domain.

    Args:
        name: Protocol domain name
        version: Protocol version
        chain_id: Optional network identifier
        verifying_contract: Optional hex identity of the verifying store

    Returns:
        32-byte domain separator
    """
    if (chain_id is None) != (verifying_contract is None):
        raise ValueError("chain_id and verifying_contract must be given together")

    if chain_id is None:
        return keccak256(
            EIP712_DOMAIN_TYPEHASH
            + encode_string(name)
            + encode_string(version)
        )

    return keccak256(
        EIP712_DOMAIN_TYPEHASH_FULL
        + encode_string(name)
        + encode_string(version)
        + encode_uint(chain_id, name="chain_id")
        + encode_address(verifying_contract)
    )


DOMAIN_SEPARATOR_BID = domain_separator(BID_DOMAIN_NAME)
DOMAIN_SEPARATOR_PRECONF = domain_separator(COMMITMENT_DOMAIN_NAME)


def typed_digest(struct_hash: bytes, domain: bytes = DOMAIN_SEPARATOR_BID) -> bytes:
    """
    Combine a domain separator and a struct hash into the signed digest.

    digest = keccak256(0x19 0x01 || domain || struct_hash)
    """
    if len(struct_hash) != 32:
        raise ValueError(f"struct_hash must be 32 bytes, got {len(struct_hash)}")
    if len(domain) != 32:
        raise ValueError(f"domain must be 32 bytes, got {len(domain)}")
    return keccak256(EIP191_TYPED_DATA_PREFIX + domain + struct_hash)


# =============================================================================
# Bid Hashing
# =============================================================================


def bid_struct_hash(txn_hash: str, bid_amount: int, block_number: int) -> bytes:
    """keccak256(TYPEHASH || keccak256(txn_hash) || bid || blockNumber)"""
    return keccak256(
        EIP712_MESSAGE_TYPEHASH
        + encode_string(txn_hash)
        + encode_uint(bid_amount, UINT64_MAX, "bid_amount")
        + encode_uint(block_number, UINT64_MAX, "block_number")
    )


def bid_hash(
    txn_hash: str,
    bid_amount: int,
    block_number: int,
    domain: bytes = DOMAIN_SEPARATOR_BID,
) -> bytes:
    """
    Digest a user signs to place a bid.

    Deterministic: identical inputs always give identical bytes.
    """
    return typed_digest(bid_struct_hash(txn_hash, bid_amount, block_number), domain)


# =============================================================================
# Commitment Hashing
# =============================================================================


def commitment_struct_hash(
    txn_hash: str,
    bid_amount: int,
    block_number: int,
    bid_hash: Union[bytes, str],
    bid_signature: Union[bytes, str],
) -> bytes:
    """Struct hash over the five commitment fields, in fixed order."""
    return keccak256(
        EIP712_COMMITMENT_TYPEHASH
        + encode_string(txn_hash)
        + encode_uint(bid_amount, UINT64_MAX, "bid_amount")
        + encode_uint(block_number, UINT64_MAX, "block_number")
        + encode_string(canonical_hex(bid_hash, "bid_hash"))
        + encode_string(canonical_hex(bid_signature, "bid_signature"))
    )


def preconf_hash(
    txn_hash: str,
    bid_amount: int,
    block_number: int,
    bid_hash: Union[bytes, str],
    bid_signature: Union[bytes, str],
    domain: bytes = DOMAIN_SEPARATOR_PRECONF,
) -> bytes:
    """
    Digest a provider signs to commit to a bid.

    ``bid_hash`` and ``bid_signature`` may be raw bytes or hex strings
    with or without ``0x``; all spellings hash identically.
    """
    return typed_digest(
        commitment_struct_hash(txn_hash, bid_amount, block_number, bid_hash, bid_signature),
        domain,
    )


__all__ = [
    "EIP712_DOMAIN_TYPE",
    "EIP712_DOMAIN_TYPE_FULL",
    "PRECONF_BID_TYPE",
    "PRECONF_COMMITMENT_TYPE",
    "BID_DOMAIN_NAME",
    "COMMITMENT_DOMAIN_NAME",
    "DOMAIN_VERSION",
    "UINT64_MAX",
    "UINT256_MAX",
    "EIP712_DOMAIN_TYPEHASH",
    "EIP712_DOMAIN_TYPEHASH_FULL",
    "EIP712_MESSAGE_TYPEHASH",
    "EIP712_COMMITMENT_TYPEHASH",
    "DOMAIN_SEPARATOR_BID",
    "DOMAIN_SEPARATOR_PRECONF",
    "encode_uint",
    "encode_string",
    "encode_address",
    "canonical_hex",
    "message_type_hash",
    "commitment_type_hash",
    "domain_separator",
    "typed_digest",
    "bid_struct_hash",
    "bid_hash",
    "commitment_struct_hash",
    "preconf_hash",
]
