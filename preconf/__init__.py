"""
Preconfirmation Commitment Protocol (preconf)

A stake-backed preconfirmation prototype integrating:
- EIP-712 style bid and commitment hashing
- secp256k1 signature recovery
- User / Provider stake registries
- Append-only bid and commitment store
"""

__version__ = "0.1.0"
