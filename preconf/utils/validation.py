"""
Input Validation - sanitization of external (CLI / file) inputs.

Provides validation for user-supplied values before they reach the
protocol core, to reject:
- Malformed hex encodings
- Integer overflows (uint64 bid fields, uint256 stake)
- Wrong-length hashes, signatures and addresses

Also converts decimal ether amounts to wei without floating point.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

SIGNATURE_SIZE = 65
ADDRESS_SIZE = 20
HASH_SIZE = 32
MAX_TXN_HASH_LENGTH = 1024

# Field bounds
UINT64_MAX = 2**64 - 1
UINT256_MAX = 2**256 - 1

# Denominations (wei per unit)
UNITS = {
    "wei": 1,
    "gwei": 10**9,
    "ether": 10**18,
    "eth": 10**18,
}


# =============================================================================
# Validation Functions
# =============================================================================


def validate_integer(
    value: Any,
    name: str,
    min_val: int = 0,
    max_val: int = UINT64_MAX,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_bid_amount(amount: Any) -> Tuple[bool, str]:
    """Validate a bid amount (uint64 wei)."""
    return validate_integer(amount, "bid_amount", 0, UINT64_MAX)


def validate_block_number(block: Any) -> Tuple[bool, str]:
    """Validate a target block number (uint64)."""
    return validate_integer(block, "block_number", 0, UINT64_MAX)


def validate_stake_amount(amount: Any) -> Tuple[bool, str]:
    """Validate a stake amount (uint256 wei)."""
    return validate_integer(amount, "amount", 0, UINT256_MAX)


def validate_txn_hash(value: Any) -> Tuple[bool, str]:
    """Transaction identifiers are opaque, non-empty strings."""
    if not isinstance(value, str):
        return False, f"txn_hash must be str, got {type(value).__name__}"
    if not value:
        return False, "txn_hash must not be empty"
    if len(value) > MAX_TXN_HASH_LENGTH:
        return False, f"txn_hash exceeds max length {MAX_TXN_HASH_LENGTH}"
    return True, ""


def validate_hex_string(
    value: Any, name: str, expected_bytes: Optional[int] = None
) -> Tuple[bool, str]:
    """
    Validate a hex string (with or without 0x prefix).

    Args:
        value: Value to validate
        name: Field name
        expected_bytes: Expected byte length when decoded

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    hex_str = value[2:] if value[:2] in ("0x", "0X") else value

    if len(hex_str) % 2 != 0:
        return False, f"{name} has odd length, invalid hex"

    try:
        bytes.fromhex(hex_str)
    except ValueError:
        return False, f"{name} contains invalid hex characters"

    if expected_bytes is not None:
        actual_bytes = len(hex_str) // 2
        if actual_bytes != expected_bytes:
            return False, f"{name} must be {expected_bytes} bytes, got {actual_bytes}"

    return True, ""


def validate_address(value: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a hex identity."""
    return validate_hex_string(value, name, ADDRESS_SIZE)


def validate_hash(value: Any, name: str = "hash") -> Tuple[bool, str]:
    """Validate a hex 32-byte digest."""
    return validate_hex_string(value, name, HASH_SIZE)


def validate_signature(value: Any, name: str = "signature") -> Tuple[bool, str]:
    """Validate a hex 65-byte signature."""
    return validate_hex_string(value, name, SIGNATURE_SIZE)


def validate_private_key(value: Any) -> Tuple[bool, str]:
    """Validate a hex 32-byte private key."""
    return validate_hex_string(value, "private_key", 32)


# =============================================================================
# Amount Conversion
# =============================================================================


def to_wei(value: Any, unit: str = "ether") -> int:
    """
    Convert a decimal amount in ``unit`` to integer wei.

    Args:
        value: Amount as str, int or Decimal (never float)
        unit: One of wei, gwei, ether/eth

    Returns:
        Amount in wei

    Raises:
        ValueError: unknown unit, float input, negative or fractional wei
    """
    unit = unit.lower()
    if unit not in UNITS:
        raise ValueError(f"Unknown unit: {unit}")
    if isinstance(value, float):
        raise ValueError("Amounts must not be floats; pass a str or Decimal")

    with localcontext() as ctx:
        ctx.prec = 100
        try:
            amount = Decimal(value) * UNITS[unit]
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    if amount < 0:
        raise ValueError(f"Amount must not be negative: {value}")
    if amount != amount.to_integral_value():
        raise ValueError(f"Amount {value} {unit} is not a whole number of wei")

    return int(amount)


def format_ether(amount: int) -> str:
    """Render wei as ether text: 2 * 10**18 -> "2.0"."""
    whole, frac = divmod(amount, UNITS["ether"])
    frac_text = str(frac).rjust(18, "0").rstrip("0") or "0"
    return f"{whole}.{frac_text}"


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_integer",
    "validate_bid_amount",
    "validate_block_number",
    "validate_stake_amount",
    "validate_txn_hash",
    "validate_hex_string",
    "validate_address",
    "validate_hash",
    "validate_signature",
    "validate_private_key",
    "to_wei",
    "format_ether",
    "UINT64_MAX",
    "UINT256_MAX",
    "SIGNATURE_SIZE",
    "ADDRESS_SIZE",
    "HASH_SIZE",
]
