"""Exact conversions between decimal token amounts and integer minor units."""

from decimal import ROUND_DOWN, Decimal, InvalidOperation

from agentpay.core.types import AmountType, Token

GWEI_DECIMALS = 9


def to_decimal(value: AmountType) -> Decimal:
    """
    Convert user input to Decimal without passing through binary floats.

    Floats are converted via their shortest repr, so 0.1 becomes Decimal("0.1").

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not an amount: {value!r}")
    try:
        if isinstance(value, float):
            result = Decimal(repr(value))
        else:
            result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not an amount: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not an amount: {value!r}")
    return result


def decimal_places(amount: Decimal) -> int:
    """Number of significant digits after the decimal point."""
    normalized = amount.normalize()
    exponent = normalized.as_tuple().exponent
    return max(0, -exponent) if isinstance(exponent, int) else 0


def scale_to_integer(amount: Decimal, decimals: int) -> int:
    """
    Shift `amount` left by `decimals` places, exactly.

    Raises:
        ValueError: If the amount has more precision than `decimals`
    """
    if decimal_places(amount) > decimals:
        raise ValueError(f"{amount} has more than {decimals} decimal places")
    sign, digits, exponent = amount.normalize().as_tuple()
    value = int("".join(str(d) for d in digits)) if digits else 0
    result = value * 10 ** (decimals + exponent)
    return -result if sign else result


def to_minor_units(amount: Decimal, token: Token) -> int:
    """
    Convert a token amount into its smallest integer unit.

    >>> to_minor_units(Decimal("0.1"), Token.ETH)
    100000000000000000
    """
    return scale_to_integer(amount, token.decimals)


def from_minor_units(value: int, token: Token) -> Decimal:
    """Convert integer minor units back into a token amount."""
    return Decimal(value).scaleb(-token.decimals).normalize()


def gwei_to_wei(gwei: Decimal) -> int:
    """Convert a gwei fee rate to wei, truncating sub-wei precision."""
    return int(gwei.scaleb(GWEI_DECIMALS).to_integral_value(rounding=ROUND_DOWN))


def wei_to_gwei(wei: int) -> Decimal:
    """Convert a wei fee rate to gwei."""
    return Decimal(wei).scaleb(-GWEI_DECIMALS)
