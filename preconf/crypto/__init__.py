"""
Cryptographic primitives for preconf.

This module provides:
- Keccak-256 hashing
- Key generation and address derivation
- Recoverable ECDSA signatures on secp256k1
- Signer recovery with malleability protection

Design Notes:
-------------
Bids and commitments are signed Ethereum-style: the signature is the
65-byte ``r || s || v`` triple over a 32-byte typed-data digest, and the
signer identity is the last 20 bytes of keccak256 over the uncompressed
public key. Typed-data hashing lives in :mod:`preconf.crypto.eip712`.

Recovery never normalizes s. A high-s value is the malleable
twin of a valid signature and is rejected outright.
"""

import secrets
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1

from preconf.core.errors import InvalidSignature


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Largest canonical s value (EIP-2)
SECP256K1_HALF_ORDER = SECP256K1_ORDER // 2

SIGNATURE_LENGTH = 65
ADDRESS_LENGTH = 20
HASH_LENGTH = 32


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: typed-data digests, address derivation.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)

    @property
    def address_bytes(self) -> bytes:
        """20-byte identity derived from the public key."""
        return address_from_public_key(self.public_key)

    @property
    def address(self) -> str:
        """Checksummed hex address."""
        return to_checksum_address(self.address_bytes)

    @property
    def private_key_hex(self) -> str:
        """Return private key as hex string."""
        return self.private_key.hex()

    @property
    def public_key_hex(self) -> str:
        """Return public key as hex string."""
        return self.public_key.hex()

    def sign(self, message_hash: bytes) -> bytes:
        """Sign a 32-byte digest with this keypair."""
        return sign(message_hash, self.private_key)


def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.

    Uses cryptographically secure random number generator.
    """
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(
        private_key=private_key,
        public_key=private_key_to_public_key(private_key),
    )


def keypair_from_private_key(private_key: Union[bytes, str]) -> KeyPair:
    """Build a KeyPair from a 32-byte key or its hex encoding."""
    if isinstance(private_key, str):
        private_key = hex_to_bytes(private_key)
    return KeyPair(
        private_key=private_key,
        public_key=private_key_to_public_key(private_key),
    )


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.

    Args:
        private_key: 32-byte private key

    Returns:
        64-byte uncompressed public key
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    key_int = int.from_bytes(private_key, byteorder="big")
    if not (1 <= key_int < SECP256K1_ORDER):
        raise ValueError("Private key out of range")

    # P = k * G, returned as an (x, y) tuple of integers
    public_key_point = secp256k1.privtopub(private_key)
    return _point_to_bytes(public_key_point)


def address_from_public_key(public_key: bytes) -> bytes:
    """
    Derive address from public key (Ethereum-style).

    address = keccak256(public_key)[-20:]

    Args:
        public_key: 64-byte public key

    Returns:
        20-byte address
    """
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return keccak256(public_key)[-20:]


def _point_to_bytes(point: Tuple[int, int]) -> bytes:
    x_bytes = point[0].to_bytes(32, byteorder="big")
    y_bytes = point[1].to_bytes(32, byteorder="big")
    return x_bytes + y_bytes


# =============================================================================
# Digital Signatures (recoverable ECDSA)
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a digest using ECDSA on secp256k1.

    Args:
        message_hash: 32-byte digest to sign
        private_key: 32-byte private key

    Returns:
        65-byte signature (r || s || v), v in {27, 28}

    Note: py_ecc derives k deterministically (RFC 6979 style), so the
    same key and digest always give the same signature.
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    v, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)

    # Keep s in the lower half of the order (EIP-2); flipping s flips
    # the parity of the recovered point.
    if s > SECP256K1_HALF_ORDER:
        s = SECP256K1_ORDER - s
        v = 55 - v

    return (
        r.to_bytes(32, byteorder="big")
        + s.to_bytes(32, byteorder="big")
        + bytes([v])
    )


def split_signature(signature: bytes) -> Tuple[int, int, int]:
    """
    Decompose a 65-byte signature into (v, r, s).

    v is normalized from {0, 1} to {27, 28}. Every other value, an r
    outside [1, n), or an s outside [1, n/2] raises InvalidSignature.
    """
    if not isinstance(signature, (bytes, bytearray)):
        raise InvalidSignature(f"expected bytes, got {type(signature).__name__}")
    if len(signature) != SIGNATURE_LENGTH:
        raise InvalidSignature(
            f"length must be {SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )

    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:64], byteorder="big")
    v = signature[64]

    if v < 27:
        v += 27
    if v not in (27, 28):
        raise InvalidSignature(f"recovery id {signature[64]} out of range")
    if not (1 <= r < SECP256K1_ORDER):
        raise InvalidSignature("r out of range")
    if not (1 <= s <= SECP256K1_HALF_ORDER):
        raise InvalidSignature("s is not canonical (high-s or zero)")

    return v, r, s


def recover_public_key(message_hash: bytes, signature: bytes) -> bytes:
    """
    Recover the signer's public key from a digest and signature.

    Args:
        message_hash: 32-byte digest that was signed
        signature: 65-byte signature (r || s || v)

    Returns:
        64-byte public key

    Raises:
        InvalidSignature: malformed signature or failed curve recovery
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")

    v, r, s = split_signature(signature)

    try:
        recovered = secp256k1.ecdsa_raw_recover(message_hash, (v, r, s))
    except ValueError as exc:
        raise InvalidSignature(f"point recovery failed: {exc}") from exc

    # Older py_ecc releases return False instead of raising; the point at
    # infinity comes back as (0, 0).
    if not recovered or tuple(recovered) == (0, 0):
        raise InvalidSignature("point recovery failed")

    return _point_to_bytes(recovered)


def recover_address(message_hash: bytes, signature: bytes) -> bytes:
    """
    Recover the 20-byte signer identity from a digest and signature.

    Pure: touches no ledger state.
    """
    return address_from_public_key(recover_public_key(message_hash, signature))


def verify(message_hash: bytes, signature: bytes, address: bytes) -> bool:
    """
    Check that ``signature`` over ``message_hash`` was made by ``address``.

    Returns:
        True if the recovered identity matches, False otherwise
    """
    try:
        return recover_address(message_hash, signature) == address
    except (InvalidSignature, ValueError):
        return False


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def strip_hex_prefix(hex_str: str) -> str:
    """Drop a leading 0x/0X marker, if any."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        return hex_str[2:]
    return hex_str


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    return bytes.fromhex(strip_hex_prefix(hex_str))


def to_bytes(value: Union[bytes, bytearray, str], name: str = "value") -> bytes:
    """Accept raw bytes or a hex string and return bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return hex_to_bytes(value)
        except ValueError as exc:
            raise ValueError(f"{name} is not valid hex: {value!r}") from exc
    raise TypeError(f"{name} must be bytes or hex str, got {type(value).__name__}")


def signature_bytes(value: Union[bytes, bytearray, str], name: str = "signature") -> bytes:
    """Decode a signature argument; undecodable input raises InvalidSignature."""
    try:
        return to_bytes(value, name)
    except (TypeError, ValueError) as exc:
        raise InvalidSignature(str(exc)) from exc


def to_address(value: Union[bytes, bytearray, str]) -> bytes:
    """Normalize an identity given as bytes or hex to 20 bytes."""
    address = to_bytes(value, "address")
    if len(address) != ADDRESS_LENGTH:
        raise ValueError(f"address must be {ADDRESS_LENGTH} bytes, got {len(address)}")
    return address


def to_checksum_address(address: Union[bytes, str]) -> str:
    """Render a 20-byte identity with EIP-55 mixed-case checksum."""
    lower = to_address(address).hex()
    digest = keccak256(lower.encode("ascii")).hex()
    return "0x" + "".join(
        ch.upper() if int(digest[i], 16) >= 8 else ch
        for i, ch in enumerate(lower)
    )


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not address.startswith("0x"):
        return False
    if len(address) != 42:  # 0x + 40 hex chars
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def is_checksum_address(address: str) -> bool:
    """True if ``address`` carries a correct EIP-55 checksum."""
    return is_valid_address(address) and to_checksum_address(address) == address


__all__ = [
    "SECP256K1_ORDER",
    "SECP256K1_HALF_ORDER",
    "SIGNATURE_LENGTH",
    "ADDRESS_LENGTH",
    "HASH_LENGTH",
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "keypair_from_private_key",
    "private_key_to_public_key",
    "address_from_public_key",
    "sign",
    "split_signature",
    "recover_public_key",
    "recover_address",
    "verify",
    "bytes_to_hex",
    "strip_hex_prefix",
    "hex_to_bytes",
    "to_bytes",
    "signature_bytes",
    "to_address",
    "to_checksum_address",
    "is_valid_address",
    "is_checksum_address",
]
