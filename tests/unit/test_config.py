"""
Unit tests for deployment configuration.

Tests cover:
1. Defaults of the reference deployment
2. JSON config files
3. PRECONF_* environment variables and .env files
4. Range checks surfaced as InvalidConfig
"""

import json
import os

import pytest

from preconf.core.config import (
    DEFAULT_FEE_PERCENT,
    DEFAULT_MIN_STAKE,
    DeploymentSettings,
    StoreConfig,
    load_config,
)
from preconf.core.errors import InvalidConfig
from preconf.core.protocol import deploy_protocol
from preconf.crypto import to_checksum_address


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from PRECONF_* variables and any stray .env file."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("PRECONF_"):
            monkeypatch.delenv(name)
    yield
    for name in list(os.environ):
        if name.startswith("PRECONF_"):
            del os.environ[name]


class TestDefaults:

    def test_reference_deployment_values(self):
        settings = DeploymentSettings()
        assert settings.min_stake == DEFAULT_MIN_STAKE == 10**18
        assert settings.fee_percent == DEFAULT_FEE_PERCENT == 15
        assert settings.oracle == "0x388C818CA8B9251b393131C08a736A67ccB19297"

    def test_per_role_minimums(self):
        settings = DeploymentSettings(min_stake=1, provider_min_stake=9)
        assert settings.user_registry_config().min_stake == 1
        assert settings.provider_registry_config().min_stake == 9

    def test_store_config(self):
        config = DeploymentSettings().store_config()
        assert isinstance(config, StoreConfig)
        assert len(config.oracle) == 20


class TestJsonConfig:

    def test_load_file(self, tmp_path):
        path = tmp_path / "deploy.json"
        path.write_text(json.dumps({"min_stake": 2 * 10**18, "fee_percent": 20}))

        settings = load_config(path)

        assert settings.min_stake == 2 * 10**18
        assert settings.fee_percent == 20

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidConfig):
            load_config(tmp_path / "missing.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "deploy.json"
        path.write_text("{not json")
        with pytest.raises(InvalidConfig):
            load_config(path)

    def test_fee_percent_out_of_range(self, tmp_path):
        path = tmp_path / "deploy.json"
        path.write_text(json.dumps({"fee_percent": 101}))

        with pytest.raises(InvalidConfig) as exc_info:
            load_config(path)

        assert exc_info.value.field == "fee_percent"

    def test_bad_oracle(self, tmp_path):
        path = tmp_path / "deploy.json"
        path.write_text(json.dumps({"oracle": "not-an-address"}))
        with pytest.raises(InvalidConfig):
            load_config(path)


class TestEnvironment:

    def test_env_variables(self, monkeypatch):
        monkeypatch.setenv("PRECONF_MIN_STAKE", "3000")
        monkeypatch.setenv("PRECONF_FEE_RECIPIENT", "0x" + "ab" * 20)

        settings = load_config()

        assert settings.min_stake == 3000
        assert settings.fee_recipient == "0x" + "ab" * 20
        assert settings.fee_percent == DEFAULT_FEE_PERCENT

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / "deploy.env"
        env_file.write_text("PRECONF_FEE_PERCENT=40\nPRECONF_USER_MIN_STAKE=7\n")

        settings = load_config(env_file=env_file)

        assert settings.fee_percent == 40
        assert settings.user_registry_config().min_stake == 7

    def test_env_out_of_range(self, monkeypatch):
        monkeypatch.setenv("PRECONF_MIN_STAKE", "-5")
        with pytest.raises(InvalidConfig):
            load_config()


class TestDeploy:

    def test_deploy_protocol_wires_settings(self):
        settings = DeploymentSettings(
            min_stake=5, provider_min_stake=8, fee_percent=30,
            oracle="0x" + "cd" * 20,
        )

        protocol = deploy_protocol(settings)

        assert protocol.user_registry.min_stake == 5
        assert protocol.provider_registry.min_stake == 8
        assert protocol.user_registry.fee_percent == 30
        assert to_checksum_address(protocol.store.oracle) == to_checksum_address("0x" + "cd" * 20)

    def test_components_share_one_lock(self):
        protocol = deploy_protocol()
        assert protocol.user_registry.lock is protocol.provider_registry.lock
        assert protocol.store._lock is protocol.user_registry.lock

    def test_stats(self):
        stats = deploy_protocol().stats()
        assert set(stats) == {"user_registry", "provider_registry", "store"}
