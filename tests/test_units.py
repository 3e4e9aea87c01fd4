"""Tests for unit formatting and parsing."""

from decimal import Decimal

import pytest

from evm_wallet_api.errors import InvalidAmount
from evm_wallet_api.units import (
    UINT256_MAX,
    ensure_uint256,
    format_units,
    parse_units,
    token_amount_to_readable,
    wei_to_eth,
)


@pytest.mark.parametrize(
    "wei, expected",
    [
        (10**18, "1"),
        (5 * 10**17, "0.5"),
        (10**15, "0.001"),
        (10**12, "0.000001"),
        (0, "0"),
        (1, "0.000000000000000001"),
        (123 * 10**18, "123"),
    ],
)
def test_wei_to_eth(wei, expected):
    assert wei_to_eth(wei) == expected


def test_token_amounts_respect_decimals():
    assert token_amount_to_readable(1_000_000, 6) == "1"
    assert token_amount_to_readable(500_000, 6) == "0.5"
    assert token_amount_to_readable(10**18, 18) == "1"
    assert token_amount_to_readable(42, 0) == "42"


def test_format_units_rejects_negative():
    with pytest.raises(InvalidAmount):
        format_units(-1)


def test_parse_units_exact():
    assert parse_units("0.01") == 10**16
    assert parse_units("1.5", 6) == 1_500_000
    assert parse_units(" 2 ") == 2 * 10**18
    assert parse_units(Decimal("0.000000000000000001")) == 1
    assert parse_units(3, 0) == 3


@pytest.mark.parametrize("value", ["abc", "", "-1", "NaN", "Infinity", "1e400"])
def test_parse_units_rejects_bad_values(value):
    with pytest.raises(InvalidAmount):
        parse_units(value)


def test_parse_units_rejects_excess_precision():
    with pytest.raises(InvalidAmount) as exc_info:
        parse_units("0.0000001", 6)
    assert exc_info.value.context["decimals"] == 6


def test_ensure_uint256_bounds():
    assert ensure_uint256(0) == 0
    assert ensure_uint256(UINT256_MAX) == UINT256_MAX
    with pytest.raises(InvalidAmount):
        ensure_uint256(UINT256_MAX + 1)
    with pytest.raises(InvalidAmount):
        ensure_uint256(-1)
    with pytest.raises(InvalidAmount):
        ensure_uint256(True)


@pytest.mark.parametrize(
    "value",
    ["1e999999", "1e1000000000", "1e60", "116e75", "1e-1000000000", "5e-19"],
)
def test_parse_units_extreme_exponents_are_invalid_amounts(value):
    with pytest.raises(InvalidAmount):
        parse_units(value)


def test_parse_units_trailing_zeros_and_zero_exponents():
    assert parse_units("1.50", 1) == 15
    assert parse_units("0e999999") == 0
    assert parse_units("0.000") == 0
    assert parse_units("1e2", 0) == 100
    assert parse_units(str(UINT256_MAX), 0) == UINT256_MAX
