"""Conversions between smallest-unit integers and human-readable decimals."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from evm_wallet_api.errors import InvalidAmount

ETHER_DECIMALS = 18
UINT256_MAX = 2**256 - 1
UINT256_DIGITS = len(str(UINT256_MAX))


def format_units(amount: int, decimals: int = ETHER_DECIMALS) -> str:
    """Render *amount* smallest units as a decimal string.

    Trailing fractional zeros and a dangling decimal point are trimmed, so
    ``10**18`` at 18 decimals is ``"1"`` and ``5 * 10**17`` is ``"0.5"``.
    """
    if amount < 0:
        raise InvalidAmount(f"Amount must be non-negative, got {amount}", amount=amount)
    if decimals == 0:
        return str(amount)

    digits = str(amount).rjust(decimals + 1, "0")
    integer_part, fractional_part = digits[:-decimals], digits[-decimals:]
    fractional_part = fractional_part.rstrip("0")
    if not fractional_part:
        return integer_part
    return f"{integer_part}.{fractional_part}"


def wei_to_eth(wei: int) -> str:
    return format_units(wei, ETHER_DECIMALS)


def token_amount_to_readable(amount: int, decimals: int) -> str:
    return format_units(amount, decimals)


def parse_units(value: str | int | Decimal, decimals: int = ETHER_DECIMALS) -> int:
    """Parse a decimal amount (e.g. ``"0.01"``) into smallest units.

    Raises
    ------
    InvalidAmount
        If the value is not a number, is negative, has more fractional
        digits than *decimals*, or does not fit in a uint256.
    """
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise InvalidAmount(f"Invalid amount: {value!r}", amount=str(value)) from exc

    if not parsed.is_finite() or parsed < 0:
        raise InvalidAmount(f"Invalid amount: {value!r}", amount=str(value))

    _, digits, exponent = parsed.as_tuple()
    if not any(digits):
        return 0
    # bound the scaled magnitude before expanding any digits
    if parsed.adjusted() + decimals >= UINT256_DIGITS:
        raise InvalidAmount(f"Amount {value} does not fit in uint256", amount=str(value))

    while digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    if exponent + decimals < 0:
        raise InvalidAmount(
            f"Amount {value} has more than {decimals} decimal places",
            amount=str(value),
            decimals=decimals,
        )

    result = int("".join(map(str, digits))) * 10 ** (exponent + decimals)
    if result > UINT256_MAX:
        raise InvalidAmount(f"Amount {value} does not fit in uint256", amount=str(value))
    return result


def ensure_uint256(amount: int, name: str = "amount") -> int:
    """Validate that *amount* is an unsigned 256-bit integer."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(amount).__name__}")
    if not 0 <= amount <= UINT256_MAX:
        raise InvalidAmount(f"{name} out of uint256 range: {amount}", **{name: amount})
    return amount
