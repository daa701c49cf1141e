"""
Tests for the preconf command line interface.
"""

import json

import pytest
from click.testing import CliRunner

from preconf.cli.main import cli

PASSWORD = "correct horse"


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()

    def invoke(*args):
        return runner.invoke(cli, ["--data-dir", str(tmp_path), *args])

    return invoke


@pytest.fixture
def wallets(run, golden):
    """Wallets for the reference bidder and provider keys."""
    for name, key in (("alice", golden.bidder_key), ("bob", golden.committer_key)):
        result = run("wallet", "create", "--name", name, "--password", PASSWORD,
                     "--private-key", key)
        assert result.exit_code == 0, result.output
    return "alice", "bob"


class TestWallet:

    def test_create_and_list(self, run, wallets, golden):
        result = run("wallet", "list")
        assert result.exit_code == 0
        assert f"alice: {golden.bidder}" in result.output
        assert f"bob: {golden.committer}" in result.output

    def test_create_random(self, run):
        result = run("wallet", "create", "--name", "fresh", "--password", PASSWORD)
        assert result.exit_code == 0
        assert "Wallet created: fresh" in result.output

    def test_duplicate_wallet(self, run, wallets):
        result = run("wallet", "create", "--name", "alice", "--password", PASSWORD)
        assert result.exit_code != 0
        assert "already exists" in result.output

    def test_bad_private_key(self, run):
        result = run("wallet", "create", "--name", "x", "--password", PASSWORD,
                     "--private-key", "1234")
        assert result.exit_code != 0

    def test_wrong_password(self, run, wallets):
        result = run("sign", "0x" + "11" * 32, "--wallet", "alice", "--password", "nope")
        assert result.exit_code != 0
        assert "wrong password" in result.output


class TestHashCommands:

    def test_hash_bid(self, run, golden):
        result = run("hash", "bid", "0xkartik", "2", "2")
        assert result.exit_code == 0
        assert result.output.strip() == golden.bid_hash

    def test_hash_commitment(self, run, golden):
        result = run("hash", "commitment", "0xkartik", "2", "2",
                     golden.bid_hash, golden.bid_signature)
        assert result.exit_code == 0
        assert result.output.strip() == golden.commitment_hash

    def test_hash_bid_rejects_overflow(self, run):
        result = run("hash", "bid", "0xkartik", str(2**64), "2")
        assert result.exit_code != 0

    def test_hash_domain(self, run):
        result = run("hash", "domain")
        assert result.exit_code == 0
        assert "0x268ce6da362f25e9be2742be45c13d4fb6d87fe57d10e928dc107a02141b4d66" in result.output


class TestSignatureCommands:

    def test_recover(self, run, golden):
        result = run("recover", golden.bid_hash, golden.bid_signature)
        assert result.exit_code == 0
        assert result.output.strip() == golden.bidder

    def test_recover_malformed(self, run, golden):
        sig = golden.bid_signature[:-2] + "05"
        result = run("recover", golden.bid_hash, sig)
        assert result.exit_code != 0
        assert "Invalid signature" in result.output

    def test_sign_then_recover(self, run, wallets, golden):
        signed = run("sign", golden.bid_hash, "--wallet", "alice", "--password", PASSWORD)
        assert signed.exit_code == 0
        result = run("recover", golden.bid_hash, signed.output.strip())
        assert result.output.strip() == golden.bidder


class TestRegistryCommands:

    def test_stake_and_check(self, run, wallets, golden):
        result = run("registry", "stake", "user", "--wallet", "alice",
                     "--password", PASSWORD, "--amount", "2")
        assert result.exit_code == 0, result.output
        assert "staked 2.0 ETH in user registry" in result.output

        result = run("registry", "check", "user", golden.bidder)
        assert result.output.strip() == f"2.0 ETH ({2 * 10**18} wei)"

        result = run("registry", "check", "provider", golden.bidder)
        assert result.output.strip() == "0.0 ETH (0 wei)"

    def test_stake_below_minimum(self, run, wallets):
        result = run("registry", "stake", "user", "--wallet", "alice",
                     "--password", PASSWORD, "--amount", "0.5")
        assert result.exit_code != 0
        assert "Insufficient stake" in result.output

    def test_restake_and_top_up(self, run, wallets, golden):
        args = ("registry", "stake", "provider", "--wallet", "bob", "--password", PASSWORD)
        assert run(*args, "--amount", "5").exit_code == 0

        again = run(*args, "--amount", "5")
        assert again.exit_code != 0
        assert "already registered" in again.output

        topped = run(*args, "--amount", "1", "--top-up")
        assert topped.exit_code == 0
        assert "staked 6.0 ETH" in topped.output

    def test_bad_amount(self, run, wallets):
        result = run("registry", "stake", "user", "--wallet", "alice",
                     "--password", PASSWORD, "--amount", "1.5", "--unit", "wei")
        assert result.exit_code != 0

    def test_amount_above_uint256(self, run, wallets):
        result = run("registry", "stake", "user", "--wallet", "alice",
                     "--password", PASSWORD, "--amount", str(2**256), "--unit", "wei")
        assert result.exit_code != 0
        assert "amount" in result.output

    def test_config_file_sets_minimum(self, run, wallets, tmp_path):
        config = tmp_path / "deploy.json"
        config.write_text(json.dumps({"min_stake": 3 * 10**18}))
        result = run("--config", str(config), "registry", "stake", "user",
                     "--wallet", "alice", "--password", PASSWORD, "--amount", "2")
        assert result.exit_code != 0


class TestStoreCommands:

    def _stake_both(self, run):
        for role, name, amount in (("user", "alice", "2"), ("provider", "bob", "5")):
            result = run("registry", "stake", role, "--wallet", name,
                         "--password", PASSWORD, "--amount", amount)
            assert result.exit_code == 0, result.output

    def test_bid_and_commit(self, run, wallets, golden):
        self._stake_both(run)

        result = run("store", "bid", "--txn", "0xkartik", "--amount", "2", "--block", "2",
                     "--wallet", "alice", "--password", PASSWORD)
        assert result.exit_code == 0, result.output
        assert f"Bid stored for {golden.bidder}" in result.output
        assert golden.bid_hash in result.output

        result = run("store", "commit", "--txn", "0xkartik", "--amount", "2", "--block", "2",
                     "--bid-signature", golden.bid_signature,
                     "--wallet", "bob", "--password", PASSWORD)
        assert result.exit_code == 0, result.output
        assert f"Commitment stored by {golden.committer}" in result.output
        assert golden.commitment_hash in result.output

        result = run("store", "bids", golden.bidder)
        bids = json.loads(result.stdout)
        assert len(bids) == 1
        assert bids[0]["bid_hash"] == golden.bid_hash

        stats = json.loads(run("stats").stdout)
        assert stats["store"]["bids"] == 1
        assert stats["store"]["commitments"] == 1

    def test_bid_with_given_signature(self, run, wallets, golden):
        self._stake_both(run)
        result = run("store", "bid", "--txn", "0xkartik", "--amount", "2", "--block", "2",
                     "--signature", golden.bid_signature)
        assert result.exit_code == 0, result.output

    def test_unstaked_bid_rejected(self, run, wallets):
        result = run("store", "bid", "--txn", "0xabc", "--amount", "1", "--block", "1",
                     "--wallet", "alice", "--password", PASSWORD)
        assert result.exit_code != 0
        assert "not authorized by user registry" in result.output

    def test_commit_with_given_signature(self, run, wallets, golden):
        self._stake_both(run)
        result = run("store", "commit", "--txn", "0xkartik", "--amount", "2", "--block", "2",
                     "--bid-signature", golden.bid_signature,
                     "--signature", golden.commitment_signature)
        assert result.exit_code == 0, result.output
        assert golden.committer in result.output


class TestLogging:

    @pytest.fixture
    def log_dir(self, tmp_path):
        import logging

        log_dir = tmp_path / "logs"
        yield log_dir
        root_logger = logging.getLogger("preconf")
        for handler in list(root_logger.handlers):
            if isinstance(handler, logging.FileHandler):
                root_logger.removeHandler(handler)
                handler.close()

    def test_log_dir_writes_log_file(self, run, log_dir, golden):
        result = run("--debug", "--log-dir", str(log_dir),
                     "registry", "check", "user", golden.bidder)
        assert result.exit_code == 0, result.output

        log_file = log_dir / "preconf.log"
        assert log_file.exists()
        assert "Opening protocol state" in log_file.read_text()

    def test_log_dir_is_not_added_twice(self, run, log_dir):
        import logging

        for _ in range(2):
            assert run("--log-dir", str(log_dir), "hash", "domain").exit_code == 0

        file_handlers = [
            h for h in logging.getLogger("preconf").handlers
            if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
