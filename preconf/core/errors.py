"""
Error taxonomy for the preconfirmation protocol.

Every protocol operation either completes or raises one of these errors
with the ledgers left untouched. Nothing here retries.
"""

from typing import Optional, Union


def _short(value: Union[bytes, str]) -> str:
    if isinstance(value, str):
        return repr(value[:18])
    return "0x" + value.hex()[:16] + "..."


# =============================================================================
# Base
# =============================================================================


class PreconfError(Exception):
    """Base preconfirmation protocol error."""
    pass


# =============================================================================
# Cryptographic Errors
# =============================================================================


class InvalidSignature(PreconfError, ValueError):
    """Signature is malformed, non-canonical, or does not recover a key."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid signature: {reason}")


class HashMismatch(PreconfError):
    """Caller-supplied hash differs from the recomputed canonical hash."""
    def __init__(self, field: str, expected: bytes, got: Union[bytes, str]):
        self.field = field
        self.expected = expected
        self.got = got
        super().__init__(
            f"{field} mismatch: expected {_short(expected)}, got {_short(got)}"
        )


# =============================================================================
# Authorization / Registry Errors
# =============================================================================


class Unauthorized(PreconfError):
    """Recovered identity lacks the stake required by a registry."""
    def __init__(self, identity: bytes, registry: str, stake: int, required: int):
        self.identity = identity
        self.registry = registry
        self.stake = stake
        self.required = required
        super().__init__(
            f"0x{identity.hex()} not authorized by {registry} registry: "
            f"stake {stake} < {required}"
        )


class InsufficientStake(PreconfError):
    """Registration deposit below the registry minimum."""
    def __init__(self, deposited: int, required: int):
        self.deposited = deposited
        self.required = required
        super().__init__(f"Insufficient stake: {deposited} < {required}")


class AlreadyRegistered(PreconfError):
    """Identity already holds a stake account in this registry."""
    def __init__(self, identity: bytes, registry: str):
        self.identity = identity
        self.registry = registry
        super().__init__(f"0x{identity.hex()} already registered in {registry} registry")


class CommitmentExists(PreconfError):
    """A commitment with this hash has already been stored."""
    def __init__(self, commitment_hash: bytes):
        self.commitment_hash = commitment_hash
        super().__init__(f"Commitment already stored: {_short(commitment_hash)}")


# =============================================================================
# Configuration Errors
# =============================================================================


class InvalidConfig(PreconfError, ValueError):
    """Construction parameter out of range."""
    def __init__(self, field: str, value: object, reason: Optional[str] = None):
        self.field = field
        self.value = value
        message = f"Invalid {field}: {value!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


__all__ = [
    "PreconfError",
    "InvalidSignature",
    "HashMismatch",
    "Unauthorized",
    "InsufficientStake",
    "AlreadyRegistered",
    "CommitmentExists",
    "InvalidConfig",
]
