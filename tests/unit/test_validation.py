"""
Unit tests for input validation and amount conversion.
"""

from decimal import Decimal

import pytest

from preconf.utils.validation import (
    UINT64_MAX,
    format_ether,
    to_wei,
    validate_address,
    validate_bid_amount,
    validate_block_number,
    validate_hash,
    validate_hex_string,
    validate_integer,
    validate_private_key,
    validate_signature,
    validate_stake_amount,
    validate_txn_hash,
)


class TestIntegerValidation:

    def test_valid(self):
        assert validate_integer(5, "x") == (True, "")

    def test_bool_is_not_int(self):
        valid, err = validate_integer(True, "x")
        assert not valid
        assert "must be int" in err

    def test_bounds(self):
        assert validate_bid_amount(UINT64_MAX)[0]
        assert not validate_bid_amount(UINT64_MAX + 1)[0]
        assert not validate_block_number(-1)[0]
        assert validate_stake_amount(2**256 - 1)[0]
        assert not validate_stake_amount(2**256)[0]


class TestHexValidation:

    def test_hash(self):
        assert validate_hash("0x" + "ab" * 32)[0]
        assert validate_hash("ab" * 32)[0]
        valid, err = validate_hash("0x" + "ab" * 31)
        assert not valid
        assert "32 bytes" in err

    def test_odd_length(self):
        valid, err = validate_hex_string("0xabc", "field")
        assert not valid
        assert "odd length" in err

    def test_invalid_characters(self):
        assert not validate_hex_string("0xzz", "field")[0]

    def test_not_a_string(self):
        assert not validate_hex_string(b"\x00", "field")[0]

    def test_sizes(self):
        assert validate_signature("00" * 65)[0]
        assert not validate_signature("00" * 64)[0]
        assert validate_address("0x" + "11" * 20)[0]
        assert validate_private_key("22" * 32)[0]

    def test_txn_hash(self):
        assert validate_txn_hash("0xkartik")[0]
        assert not validate_txn_hash("")[0]
        assert not validate_txn_hash(123)[0]


class TestAmounts:

    @pytest.mark.parametrize("value, unit, expected", [
        ("2", "ether", 2 * 10**18),
        ("0.5", "eth", 5 * 10**17),
        ("1", "gwei", 10**9),
        ("7", "wei", 7),
        (3, "ether", 3 * 10**18),
        (Decimal("1.000000000000000001"), "ether", 10**18 + 1),
        ("115792089237316195423570985008687907853269984665640564039457", "ether",
         115792089237316195423570985008687907853269984665640564039457 * 10**18),
    ])
    def test_to_wei(self, value, unit, expected):
        assert to_wei(value, unit) == expected

    @pytest.mark.parametrize("value, unit", [
        (1.5, "ether"),
        ("-1", "ether"),
        ("0.5", "wei"),
        ("abc", "ether"),
        ("NaN", "ether"),
        ("Infinity", "ether"),
        ("1", "finney"),
    ])
    def test_to_wei_rejects(self, value, unit):
        with pytest.raises(ValueError):
            to_wei(value, unit)

    @pytest.mark.parametrize("amount, text", [
        (2 * 10**18, "2.0"),
        (0, "0.0"),
        (15 * 10**17, "1.5"),
        (1, "0.000000000000000001"),
    ])
    def test_format_ether(self, amount, text):
        assert format_ether(amount) == text
