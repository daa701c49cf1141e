"""
Protocol configuration for preconf.

Two layers:
- RegistryConfig / StoreConfig: immutable parameter bundles validated at
  construction and bound to one registry or store instance.
- DeploymentSettings: the deploy-time parameters (as a pydantic model),
  loaded from a JSON file or from PRECONF_* environment variables.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from preconf.core.errors import InvalidConfig
from preconf.crypto import is_valid_address, to_address


# =============================================================================
# Defaults (values of the reference deployment)
# =============================================================================

WEI_PER_ETHER = 10**18

DEFAULT_MIN_STAKE = 1 * WEI_PER_ETHER
DEFAULT_FEE_PERCENT = 15
DEFAULT_FEE_RECIPIENT = "0x388C818CA8B9251b393131C08a736A67ccB19297"
DEFAULT_ORACLE = "0x388C818CA8B9251b393131C08a736A67ccB19297"

UINT256_MAX = 2**256 - 1

ENV_PREFIX = "PRECONF_"


def _identity(field: str, value: Union[bytes, str]) -> bytes:
    try:
        return to_address(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfig(field, value, str(exc)) from exc


# =============================================================================
# Runtime Parameter Bundles
# =============================================================================


@dataclass(frozen=True)
class RegistryConfig:
    """
    Parameters of one stake registry.

    Attributes:
        min_stake: Minimum stake (wei) to register and stay authorized
        fee_recipient: 20-byte identity receiving protocol fees
        fee_percent: Fee share in percent, 0-100
    """
    min_stake: int
    fee_recipient: bytes
    fee_percent: int

    def __post_init__(self):
        """Validate field constraints."""
        if isinstance(self.min_stake, bool) or not isinstance(self.min_stake, int):
            raise InvalidConfig("min_stake", self.min_stake, "must be int")
        if not (0 <= self.min_stake <= UINT256_MAX):
            raise InvalidConfig("min_stake", self.min_stake, "out of uint256 range")
        if isinstance(self.fee_percent, bool) or not isinstance(self.fee_percent, int):
            raise InvalidConfig("fee_percent", self.fee_percent, "must be int")
        if not (0 <= self.fee_percent <= 100):
            raise InvalidConfig("fee_percent", self.fee_percent, "must be within [0, 100]")
        object.__setattr__(
            self, "fee_recipient", _identity("fee_recipient", self.fee_recipient)
        )


@dataclass(frozen=True)
class StoreConfig:
    """Parameters of the commitment store."""
    oracle: bytes

    def __post_init__(self):
        object.__setattr__(self, "oracle", _identity("oracle", self.oracle))


# =============================================================================
# Deployment Settings
# =============================================================================


class DeploymentSettings(BaseModel):
    """Deploy-time parameters for the two registries and the store."""

    min_stake: int = Field(DEFAULT_MIN_STAKE, ge=0, le=UINT256_MAX)
    user_min_stake: Optional[int] = Field(None, ge=0, le=UINT256_MAX)
    provider_min_stake: Optional[int] = Field(None, ge=0, le=UINT256_MAX)
    fee_recipient: str = DEFAULT_FEE_RECIPIENT
    fee_percent: int = Field(DEFAULT_FEE_PERCENT, ge=0, le=100)
    oracle: str = DEFAULT_ORACLE

    @field_validator("fee_recipient", "oracle")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not is_valid_address(value):
            raise ValueError(f"not a 0x-prefixed 20-byte address: {value!r}")
        return value

    def user_registry_config(self) -> RegistryConfig:
        min_stake = self.min_stake if self.user_min_stake is None else self.user_min_stake
        return RegistryConfig(min_stake, self.fee_recipient, self.fee_percent)

    def provider_registry_config(self) -> RegistryConfig:
        min_stake = (
            self.min_stake if self.provider_min_stake is None else self.provider_min_stake
        )
        return RegistryConfig(min_stake, self.fee_recipient, self.fee_percent)

    def store_config(self) -> StoreConfig:
        return StoreConfig(self.oracle)


def _settings_from_env() -> dict:
    data = {}
    for name in DeploymentSettings.model_fields:
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            data[name] = value
    return data


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> DeploymentSettings:
    """
    Load deployment settings.

    Args:
        config_path: Optional JSON file with DeploymentSettings fields.
            When omitted, PRECONF_* environment variables are used
            (after loading ``env_file`` or ./.env through python-dotenv).
        env_file: Optional dotenv file to load before reading the environment

    Returns:
        DeploymentSettings instance

    Raises:
        InvalidConfig: unreadable file or out-of-range values
    """
    if config_path:
        path = Path(config_path)
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise InvalidConfig("config_path", str(path), str(exc)) from exc
    else:
        load_dotenv(env_file)
        data = _settings_from_env()

    try:
        return DeploymentSettings.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "settings"
        raise InvalidConfig(field, first.get("input"), first["msg"]) from exc


__all__ = [
    "WEI_PER_ETHER",
    "DEFAULT_MIN_STAKE",
    "DEFAULT_FEE_PERCENT",
    "DEFAULT_FEE_RECIPIENT",
    "DEFAULT_ORACLE",
    "RegistryConfig",
    "StoreConfig",
    "DeploymentSettings",
    "load_config",
]
