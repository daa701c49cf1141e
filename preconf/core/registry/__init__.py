"""
Stake Registry Module.

Manages staked identities for the User and Provider roles.
"""

from preconf.core.registry.stake_registry import (
    StakeRegistry,
    StakeAccount,
    UserRegistry,
    ProviderRegistry,
)

__all__ = [
    "StakeRegistry",
    "StakeAccount",
    "UserRegistry",
    "ProviderRegistry",
]
