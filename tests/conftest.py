"""
Shared fixtures: the reference bid/commitment exchange and fresh deployments.
"""

from types import SimpleNamespace

import pytest

from preconf.core.config import DeploymentSettings
from preconf.core.protocol import deploy_protocol
from preconf.crypto import keypair_from_private_key

ETHER = 10**18


@pytest.fixture
def golden():
    """Values exchanged by a real bidder and provider for one bid."""
    return SimpleNamespace(
        txn_hash="0xkartik",
        bid_amount=2,
        block_number=2,
        bid_hash="0x86ac45fb1e987a6c8115494cd4fd82f6756d359022cdf5ea19fd2fac1df6e7f0",
        bid_signature=(
            "0x33683da4605067c9491d665864b2e4e7ade8bc57921da9f192a1b8246a941eaa"
            "2fb90f72031a2bf6008fa590158591bb5218c9aace78ad8cf4d1f2f4d74bc3e901"
        ),
        commitment_hash="0x31dca6c6fd15593559dabb9e25285f727fd33f07e17ec2e8da266706020034dc",
        commitment_signature=(
            "0x80d12ea3cad0cbdcb99a154a8aa8d02ae1c319fca531b5af6cc57bb4a75e6d9e"
            "1c001bca320ac1da39945f1fd6389b03c6619c531ceaf2823361b4c8e35b91b301"
        ),
        bidder_key="7cea3c338ce48647725ca014a52a80b2a8eb71d184168c343150a98100439d1b",
        bidder="0x3533d88fC84531a6542C8c09b27e7D292f6537B5",
        committer_key="3bd943ec681f4c2b472aefe2201f88f1ed79592d1202444560e89ad72b2c2665",
        committer="0x1b6D2283589d0c598202402011A73a6057837687",
    )


@pytest.fixture
def bidder(golden):
    return keypair_from_private_key(golden.bidder_key)


@pytest.fixture
def committer(golden):
    return keypair_from_private_key(golden.committer_key)


@pytest.fixture
def settings():
    return DeploymentSettings(min_stake=2 * ETHER)


@pytest.fixture
def protocol(settings):
    """In-memory deployment with a 2 ETH minimum in both registries."""
    return deploy_protocol(settings)
