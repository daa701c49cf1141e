"""
Protocol assembly.

Builds the User registry, the Provider registry and the commitment store
from one set of DeploymentSettings, all sharing a single ledger lock and,
optionally, one StorageManager.
"""

import threading
from dataclasses import dataclass
from typing import Optional

from preconf.core.commitment import PreConfCommitmentStore
from preconf.core.config import DeploymentSettings
from preconf.core.registry import ProviderRegistry, UserRegistry
from preconf.utils.logger import get_logger

logger = get_logger("protocol")


@dataclass
class Protocol:
    """The three deployed ledger components."""
    user_registry: UserRegistry
    provider_registry: ProviderRegistry
    store: PreConfCommitmentStore

    def stats(self) -> dict:
        return {
            "user_registry": self.user_registry.stats(),
            "provider_registry": self.provider_registry.stats(),
            "store": self.store.stats(),
        }


def deploy_protocol(
    settings: Optional[DeploymentSettings] = None,
    storage=None,
) -> Protocol:
    """
    Deploy both registries and the store.

    Args:
        settings: Deployment parameters (defaults when None)
        storage: Optional StorageManager shared by all components

    Returns:
        Protocol bundle
    """
    settings = settings or DeploymentSettings()
    lock = threading.RLock()

    user_registry = UserRegistry(settings.user_registry_config(), storage=storage, lock=lock)
    provider_registry = ProviderRegistry(
        settings.provider_registry_config(), storage=storage, lock=lock
    )
    store = PreConfCommitmentStore(
        user_registry,
        provider_registry,
        settings.oracle,
        storage=storage,
        lock=lock,
    )

    logger.info("Protocol deployed")
    return Protocol(user_registry, provider_registry, store)


__all__ = ["Protocol", "deploy_protocol"]
