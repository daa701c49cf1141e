"""
Stake Registry - stake-backed authorization for protocol participants.

This module provides:
- Registration with a minimum stake (Sybil resistance)
- Stake top-ups for registered identities
- Authorization checks used by the commitment store

The same implementation backs two independent instances: the User
registry (who may bid) and the Provider registry (who may commit).
Slashing, withdrawal and fee distribution are out of scope; the fee
parameters are validated and stored only.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from preconf.core.config import RegistryConfig
from preconf.core.errors import AlreadyRegistered, InsufficientStake, Unauthorized
from preconf.crypto import to_address, to_checksum_address
from preconf.utils.logger import get_logger


UINT256_MAX = 2**256 - 1


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class StakeAccount:
    """
    Stake held by one identity in one registry.

    Attributes:
        identity: 20-byte address
        staked_amount: Total stake in wei
        registered: Whether register_and_stake has succeeded
    """
    identity: bytes
    staked_amount: int = 0
    registered: bool = False

    def __post_init__(self):
        if len(self.identity) != 20:
            raise ValueError(f"identity must be 20 bytes, got {len(self.identity)}")
        if not (0 <= self.staked_amount <= UINT256_MAX):
            raise ValueError(f"staked_amount out of range: {self.staked_amount}")

    @property
    def address(self) -> str:
        return to_checksum_address(self.identity)

    def __repr__(self) -> str:
        return (
            f"StakeAccount({self.address}, staked={self.staked_amount}, "
            f"registered={self.registered})"
        )


# =============================================================================
# Stake Registry
# =============================================================================


class StakeRegistry:
    """
    Registry of staked identities.

    State transitions per identity:

        Unregistered --register_and_stake(value >= min_stake)--> Staked

    A second register_and_stake from a staked identity is rejected with
    AlreadyRegistered; use deposit() to add stake.
    """

    role = "stake"

    def __init__(
        self,
        config: RegistryConfig,
        storage=None,  # Optional StorageManager for persistence
        lock: Optional[threading.RLock] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize the registry.

        Args:
            config: Validated registry parameters
            storage: Optional StorageManager; accounts are loaded from it
            lock: Optional lock shared with other ledger components
            name: Registry name used in logs, errors and storage
        """
        self.config = config
        self.name = name or self.role
        self.storage = storage
        self._lock = lock if lock is not None else threading.RLock()

        # identity -> StakeAccount
        self.accounts: Dict[bytes, StakeAccount] = {}

        self.logger = get_logger(f"registry.{self.name}")

        if storage:
            self._load_from_storage()

        self.logger.info(
            f"{type(self).__name__} initialized with min_stake={config.min_stake}, "
            f"fee_percent={config.fee_percent}"
        )

    def _load_from_storage(self):
        for identity, staked_amount, registered in self.storage.load_stake_accounts(self.name):
            self.accounts[identity] = StakeAccount(identity, staked_amount, registered)
        if self.accounts:
            self.logger.info(f"Loaded {len(self.accounts)} stake accounts from storage")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing every mutation of this registry."""
        return self._lock

    @property
    def min_stake(self) -> int:
        return self.config.min_stake

    @property
    def fee_recipient(self) -> bytes:
        return self.config.fee_recipient

    @property
    def fee_percent(self) -> int:
        return self.config.fee_percent

    # =========================================================================
    # Registration
    # =========================================================================

    def register_and_stake(
        self,
        caller: Union[bytes, str],
        deposited_value: int,
    ) -> StakeAccount:
        """
        Register ``caller`` with an initial stake.

        Args:
            caller: 20-byte identity (or hex address) of the depositor
            deposited_value: Stake deposited with the call, in wei

        Returns:
            The new StakeAccount

        Raises:
            InsufficientStake: deposited_value < min_stake
            AlreadyRegistered: caller already registered here
        """
        caller = to_address(caller)
        self._check_amount(deposited_value)

        with self._lock:
            if deposited_value < self.min_stake:
                raise InsufficientStake(deposited_value, self.min_stake)

            existing = self.accounts.get(caller)
            if existing is not None and existing.registered:
                raise AlreadyRegistered(caller, self.name)

            account = StakeAccount(
                identity=caller,
                staked_amount=deposited_value,
                registered=True,
            )
            self._commit(account)

        self.logger.info(f"Registered {account.address} with stake {deposited_value}")
        return account

    def deposit(self, caller: Union[bytes, str], amount: int) -> StakeAccount:
        """
        Add stake to an already registered identity.

        Raises:
            Unauthorized: caller is not registered
            ValueError: amount is not positive, or the total would overflow
        """
        caller = to_address(caller)
        self._check_amount(amount)
        if amount <= 0:
            raise ValueError("Amount must be positive")

        with self._lock:
            current = self.accounts.get(caller)
            if current is None or not current.registered:
                raise Unauthorized(caller, self.name, 0, self.min_stake)

            total = current.staked_amount + amount
            if total > UINT256_MAX:
                raise ValueError("Stake would overflow uint256")

            account = StakeAccount(identity=caller, staked_amount=total, registered=True)
            self._commit(account)

        self.logger.debug(f"{account.address} deposited {amount}, total {total}")
        return account

    def _commit(self, account: StakeAccount):
        """Persist first, then publish in memory (caller holds the lock)."""
        if self.storage:
            self.storage.save_stake_account(
                self.name, account.identity, account.staked_amount, account.registered
            )
        self.accounts[account.identity] = account

    @staticmethod
    def _check_amount(value: int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Amount must be int (wei), got {type(value).__name__}")
        if not (0 <= value <= UINT256_MAX):
            raise ValueError(f"Amount out of uint256 range: {value}")

    # =========================================================================
    # Lookup
    # =========================================================================

    def check_stake(self, identity: Union[bytes, str]) -> int:
        """Current stake of ``identity``; 0 when it has no account."""
        account = self.accounts.get(to_address(identity))
        return account.staked_amount if account else 0

    def get_account(self, identity: Union[bytes, str]) -> Optional[StakeAccount]:
        """Get the StakeAccount of an identity, if any."""
        return self.accounts.get(to_address(identity))

    def is_registered(self, identity: Union[bytes, str]) -> bool:
        account = self.accounts.get(to_address(identity))
        return account is not None and account.registered

    def is_staked(self, identity: Union[bytes, str]) -> bool:
        """True if ``identity`` meets this registry's minimum stake."""
        return self.check_stake(identity) >= self.min_stake

    def require_stake(self, identity: bytes) -> int:
        """
        Authorization gate used by the commitment store.

        Returns:
            The identity's stake

        Raises:
            Unauthorized: stake below min_stake
        """
        stake = self.check_stake(identity)
        if stake < self.min_stake:
            raise Unauthorized(identity, self.name, stake, self.min_stake)
        return stake

    def registered_identities(self) -> List[bytes]:
        return [identity for identity, acc in self.accounts.items() if acc.registered]

    # =========================================================================
    # Statistics
    # =========================================================================

    def stats(self) -> dict:
        """Get registry statistics."""
        registered = [a for a in self.accounts.values() if a.registered]
        return {
            "name": self.name,
            "registered": len(registered),
            "total_stake": sum(a.staked_amount for a in registered),
            "min_stake": self.min_stake,
            "fee_recipient": to_checksum_address(self.fee_recipient),
            "fee_percent": self.fee_percent,
        }


class UserRegistry(StakeRegistry):
    """Stake registry gating who may submit bids."""
    role = "user"


class ProviderRegistry(StakeRegistry):
    """Stake registry gating who may commit to bids."""
    role = "provider"


__all__ = [
    "StakeAccount",
    "StakeRegistry",
    "UserRegistry",
    "ProviderRegistry",
]
