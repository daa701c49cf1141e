"""
preconf CLI - Command Line Interface for the preconfirmation protocol

Main entry point for all CLI commands. Ledger state (registries, bids,
commitments) lives in a SQLite database under --data-dir.
"""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import click

from preconf.utils.logger import enable_file_logging, get_logger, set_log_level

logger = get_logger("cli")


def decrypt_wallet_key(wallet_data: dict, wallet_name: str, password: str) -> Optional[bytes]:
    """
    Decrypt a wallet's private key.

    Args:
        wallet_data: Loaded wallet JSON data
        wallet_name: Wallet name (used as salt)
        password: User's password

    Returns:
        Decrypted private key bytes, or None on failure
    """
    from cryptography.fernet import Fernet, InvalidToken

    if "encrypted_private_key" not in wallet_data:
        return None

    try:
        fernet = Fernet(_wallet_fernet_key(wallet_name, password))
        return fernet.decrypt(wallet_data["encrypted_private_key"].encode())
    except InvalidToken:
        return None


def _wallet_fernet_key(wallet_name: str, password: str) -> bytes:
    import base64
    import hashlib

    salt = wallet_name.encode()  # Wallet name as salt (deterministic per wallet)
    return base64.urlsafe_b64encode(
        hashlib.pbkdf2_hmac('sha256', password.encode(), salt, 100000)
    )


def _load_keypair(ctx, wallet_name: str, password: str):
    from preconf.crypto import keypair_from_private_key

    wallet_path = ctx.obj["data_dir"] / "wallets" / f"{wallet_name}.json"
    if not wallet_path.exists():
        raise click.ClickException(
            f"Wallet '{wallet_name}' not found. Create with: preconf wallet create --name {wallet_name}"
        )
    private_key = decrypt_wallet_key(json.loads(wallet_path.read_text()), wallet_name, password)
    if private_key is None:
        raise click.ClickException(f"Could not decrypt wallet '{wallet_name}' (wrong password?)")
    return keypair_from_private_key(private_key)


def _check(result):
    """Turn a (valid, error) validation result into a usage error."""
    valid, err = result
    if not valid:
        raise click.BadParameter(err)


@contextmanager
def protocol_errors():
    """Report protocol failures as CLI errors."""
    from preconf.core.errors import PreconfError

    try:
        yield
    except PreconfError as exc:
        raise click.ClickException(str(exc)) from exc


def _open_protocol(ctx):
    from preconf.core.config import load_config
    from preconf.core.protocol import deploy_protocol
    from preconf.core.storage import StorageManager

    with protocol_errors():
        settings = load_config(ctx.obj["config_path"])
        storage = StorageManager(ctx.obj["data_dir"])
        logger.debug(f"Opening protocol state in {storage.db_path}")
        return deploy_protocol(settings, storage=storage)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default="~/.preconf", help="Data directory")
@click.option("--config", "config_path", default=None, help="Deployment settings (JSON)")
@click.option("--log-dir", default=None, help="Also write logs to <log-dir>/preconf.log")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, config_path, log_dir):
    """Preconfirmation commitment protocol - bids, commitments and stake registries"""
    import logging

    level = logging.DEBUG if debug else logging.WARNING
    set_log_level(level)
    if log_dir:
        enable_file_logging(Path(log_dir).expanduser())

    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = Path(data_dir).expanduser()
    ctx.obj["data_dir"].mkdir(parents=True, exist_ok=True)
    ctx.obj["config_path"] = config_path


# =============================================================================
# Wallet Commands
# =============================================================================

@cli.group()
def wallet():
    """Wallet management commands"""
    pass


@wallet.command("create")
@click.option("--name", default="default", help="Wallet name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Encryption password")
@click.option("--private-key", default=None, help="Import an existing hex private key")
@click.pass_context
def wallet_create(ctx, name, password, private_key):
    """Create a new encrypted wallet"""
    from cryptography.fernet import Fernet
    from preconf.crypto import generate_keypair, keypair_from_private_key
    from preconf.utils.validation import validate_private_key

    wallet_path = ctx.obj["data_dir"] / "wallets" / f"{name}.json"
    if wallet_path.exists():
        raise click.ClickException(f"Wallet '{name}' already exists")

    if private_key:
        _check(validate_private_key(private_key))
        try:
            kp = keypair_from_private_key(private_key)
        except ValueError as exc:
            raise click.BadParameter(str(exc)) from exc
    else:
        kp = generate_keypair()

    fernet = Fernet(_wallet_fernet_key(name, password))
    encrypted_private_key = fernet.encrypt(kp.private_key).decode('utf-8')

    wallet_path.parent.mkdir(parents=True, exist_ok=True)
    wallet_data = {
        "name": name,
        "address": kp.address,
        "encrypted_private_key": encrypted_private_key,
        "public_key": "0x" + kp.public_key_hex,
    }
    wallet_path.write_text(json.dumps(wallet_data, indent=2))

    click.echo(f"✓ Wallet created: {name}")
    click.echo(f"  Address: {kp.address}")
    click.echo(f"  Saved to: {wallet_path}")


@wallet.command("list")
@click.pass_context
def wallet_list(ctx):
    """List all wallets"""
    wallet_dir = ctx.obj["data_dir"] / "wallets"
    if not wallet_dir.exists():
        click.echo("No wallets found.")
        return

    for wallet_file in sorted(wallet_dir.glob("*.json")):
        data = json.loads(wallet_file.read_text())
        click.echo(f"  {data['name']}: {data['address']}")


# =============================================================================
# Hash Commands
# =============================================================================

@cli.group("hash")
def hash_group():
    """Typed-data digests"""
    pass


@hash_group.command("bid")
@click.argument("txn_hash")
@click.argument("bid_amount", type=int)
@click.argument("block_number", type=int)
def hash_bid(txn_hash, bid_amount, block_number):
    """Digest a user signs for a bid"""
    from preconf.crypto import bytes_to_hex
    from preconf.crypto.eip712 import bid_hash
    from preconf.utils.validation import (
        validate_bid_amount,
        validate_block_number,
        validate_txn_hash,
    )

    _check(validate_txn_hash(txn_hash))
    _check(validate_bid_amount(bid_amount))
    _check(validate_block_number(block_number))

    click.echo(bytes_to_hex(bid_hash(txn_hash, bid_amount, block_number)))


@hash_group.command("commitment")
@click.argument("txn_hash")
@click.argument("bid_amount", type=int)
@click.argument("block_number", type=int)
@click.argument("bid_hash")
@click.argument("bid_signature")
def hash_commitment(txn_hash, bid_amount, block_number, bid_hash, bid_signature):
    """Digest a provider signs to commit to a bid"""
    from preconf.crypto import bytes_to_hex
    from preconf.crypto.eip712 import preconf_hash
    from preconf.utils.validation import (
        validate_bid_amount,
        validate_block_number,
        validate_hash,
        validate_signature,
        validate_txn_hash,
    )

    _check(validate_txn_hash(txn_hash))
    _check(validate_bid_amount(bid_amount))
    _check(validate_block_number(block_number))
    _check(validate_hash(bid_hash, "bid_hash"))
    _check(validate_signature(bid_signature, "bid_signature"))

    digest = preconf_hash(txn_hash, bid_amount, block_number, bid_hash, bid_signature)
    click.echo(bytes_to_hex(digest))


@hash_group.command("domain")
def hash_domain():
    """Show domain separators and type hashes"""
    from preconf.crypto import bytes_to_hex
    from preconf.crypto import eip712

    click.echo(f"DOMAIN_SEPARATOR_BID:       {bytes_to_hex(eip712.DOMAIN_SEPARATOR_BID)}")
    click.echo(f"DOMAIN_SEPARATOR_PRECONF:   {bytes_to_hex(eip712.DOMAIN_SEPARATOR_PRECONF)}")
    click.echo(f"EIP712_MESSAGE_TYPEHASH:    {bytes_to_hex(eip712.EIP712_MESSAGE_TYPEHASH)}")
    click.echo(f"EIP712_COMMITMENT_TYPEHASH: {bytes_to_hex(eip712.EIP712_COMMITMENT_TYPEHASH)}")


# =============================================================================
# Signature Commands
# =============================================================================

@cli.command("sign")
@click.argument("digest")
@click.option("--wallet", "wallet_name", default="default", help="Wallet name")
@click.option("--password", prompt=True, hide_input=True, help="Wallet password")
@click.pass_context
def sign_digest(ctx, digest, wallet_name, password):
    """Sign a 32-byte digest with a wallet key"""
    from preconf.crypto import bytes_to_hex, hex_to_bytes
    from preconf.utils.validation import validate_hash

    _check(validate_hash(digest, "digest"))
    kp = _load_keypair(ctx, wallet_name, password)
    click.echo(bytes_to_hex(kp.sign(hex_to_bytes(digest))))


@cli.command("recover")
@click.argument("digest")
@click.argument("signature")
def recover(digest, signature):
    """Recover the signer address of a digest"""
    from preconf.crypto import hex_to_bytes, recover_address, to_checksum_address
    from preconf.utils.validation import validate_hash, validate_signature

    _check(validate_hash(digest, "digest"))
    _check(validate_signature(signature))

    with protocol_errors():
        signer = recover_address(hex_to_bytes(digest), hex_to_bytes(signature))
    click.echo(to_checksum_address(signer))


# =============================================================================
# Registry Commands
# =============================================================================

ROLES = click.Choice(["user", "provider"])


def _registry(protocol, role: str):
    return protocol.user_registry if role == "user" else protocol.provider_registry


@cli.group()
def registry():
    """Stake registry commands"""
    pass


@registry.command("stake")
@click.argument("role", type=ROLES)
@click.option("--wallet", "wallet_name", default="default", help="Wallet name")
@click.option("--password", prompt=True, hide_input=True, help="Wallet password")
@click.option("--amount", required=True, help="Stake amount")
@click.option("--unit", default="ether", help="Amount unit (wei, gwei, ether)")
@click.option("--top-up", is_flag=True, help="Deposit into an existing registration")
@click.pass_context
def registry_stake(ctx, role, wallet_name, password, amount, unit, top_up):
    """Register and stake (or top up) in a registry"""
    from preconf.utils.validation import format_ether, to_wei, validate_stake_amount

    try:
        value = to_wei(amount, unit)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    _check(validate_stake_amount(value))

    kp = _load_keypair(ctx, wallet_name, password)
    protocol = _open_protocol(ctx)
    reg = _registry(protocol, role)

    with protocol_errors():
        if top_up:
            account = reg.deposit(kp.address_bytes, value)
        else:
            account = reg.register_and_stake(kp.address_bytes, value)

    click.echo(f"✓ {account.address} staked {format_ether(account.staked_amount)} ETH in {role} registry")


@registry.command("check")
@click.argument("role", type=ROLES)
@click.argument("address")
@click.pass_context
def registry_check(ctx, role, address):
    """Show the stake of an address"""
    from preconf.utils.validation import format_ether, validate_address

    _check(validate_address(address))
    reg = _registry(_open_protocol(ctx), role)
    stake = reg.check_stake(address)
    click.echo(f"{format_ether(stake)} ETH ({stake} wei)")


# =============================================================================
# Store Commands
# =============================================================================

@cli.group()
def store():
    """Bid and commitment store commands"""
    pass


@store.command("bid")
@click.option("--txn", "txn_hash", required=True, help="Transaction identifier")
@click.option("--amount", "bid_amount", required=True, type=int, help="Bid (wei)")
@click.option("--block", "block_number", required=True, type=int, help="Target block")
@click.option("--signature", default=None, help="Bid signature (signs with wallet if omitted)")
@click.option("--wallet", "wallet_name", default="default", help="Signing wallet")
@click.option("--password", default=None, help="Wallet password")
@click.pass_context
def store_bid(ctx, txn_hash, bid_amount, block_number, signature, wallet_name, password):
    """Submit a signed bid"""
    from preconf.crypto import bytes_to_hex
    from preconf.crypto.eip712 import bid_hash
    from preconf.utils.validation import (
        validate_bid_amount,
        validate_block_number,
        validate_signature,
        validate_txn_hash,
    )

    _check(validate_txn_hash(txn_hash))
    _check(validate_bid_amount(bid_amount))
    _check(validate_block_number(block_number))

    if signature:
        _check(validate_signature(signature))
    else:
        if password is None:
            password = click.prompt("Password", hide_input=True)
        kp = _load_keypair(ctx, wallet_name, password)
        signature = kp.sign(bid_hash(txn_hash, bid_amount, block_number))

    protocol = _open_protocol(ctx)
    with protocol_errors():
        bid = protocol.store.store_bid(txn_hash, bid_amount, block_number, signature)

    click.echo(f"✓ Bid stored for {bid.signer_address}")
    click.echo(f"  Bid hash:  {bytes_to_hex(bid.bid_hash)}")
    click.echo(f"  Signature: {bytes_to_hex(bid.bid_signature)}")


@store.command("commit")
@click.option("--txn", "txn_hash", required=True, help="Transaction identifier")
@click.option("--amount", "bid_amount", required=True, type=int, help="Bid (wei)")
@click.option("--block", "block_number", required=True, type=int, help="Target block")
@click.option("--bid-signature", required=True, help="User's bid signature")
@click.option("--signature", default=None, help="Commitment signature (signs with wallet if omitted)")
@click.option("--wallet", "wallet_name", default="default", help="Provider wallet")
@click.option("--password", default=None, help="Wallet password")
@click.pass_context
def store_commit(ctx, txn_hash, bid_amount, block_number, bid_signature, signature,
                 wallet_name, password):
    """Commit to a bid as a provider"""
    from preconf.crypto import bytes_to_hex
    from preconf.crypto.eip712 import bid_hash, preconf_hash
    from preconf.utils.validation import (
        validate_bid_amount,
        validate_block_number,
        validate_signature,
        validate_txn_hash,
    )

    _check(validate_txn_hash(txn_hash))
    _check(validate_bid_amount(bid_amount))
    _check(validate_block_number(block_number))
    _check(validate_signature(bid_signature, "bid_signature"))

    digest = bid_hash(txn_hash, bid_amount, block_number)
    commitment_hash = preconf_hash(txn_hash, bid_amount, block_number, digest, bid_signature)

    if signature:
        _check(validate_signature(signature))
    else:
        if password is None:
            password = click.prompt("Password", hide_input=True)
        kp = _load_keypair(ctx, wallet_name, password)
        signature = kp.sign(commitment_hash)

    protocol = _open_protocol(ctx)
    with protocol_errors():
        commitment = protocol.store.store_commitment(
            txn_hash, bid_amount, block_number, digest, bid_signature,
            commitment_hash, signature,
        )

    click.echo(f"✓ Commitment stored by {commitment.committer_address}")
    click.echo(f"  Commitment hash: {bytes_to_hex(commitment.commitment_hash)}")
    click.echo(f"  Bidder:          {commitment.bid.signer_address}")


@store.command("bids")
@click.argument("address")
@click.pass_context
def store_bids(ctx, address):
    """List the bids of an address (JSON)"""
    from preconf.utils.validation import validate_address

    _check(validate_address(address))
    bids = _open_protocol(ctx).store.get_bids_for(address)
    click.echo(json.dumps([bid.to_dict() for bid in bids], indent=2))


# =============================================================================
# Stats Command
# =============================================================================

@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show registry and store statistics"""
    click.echo(json.dumps(_open_protocol(ctx).stats(), indent=2))


if __name__ == "__main__":
    cli()
