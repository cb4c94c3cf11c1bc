"""
Rounding helpers for point amounts.

Points are floats that must behave like two-decimal currency. Amounts are
truncated before they take part in arithmetic and balances are rounded
half-up when written back, so float noise does not build up over repeated
fund/take cycles.
"""

import math

PRICE_PRECISION = 2


def round_value(value: float, unit: float, precision: int) -> float:
    """
    Round `value` to `precision` decimals using `unit` as the threshold
    on the fractional part.

    Positive values round up when the fraction is >= `unit`. Zero and
    negative values round away from zero when the fraction's magnitude is
    >= `unit` and toward zero otherwise.
    """

    scale = math.pow(10, precision)
    digit = scale * value
    frac, _ = math.modf(digit)

    if value > 0:
        rounded = math.ceil(digit) if frac >= unit else math.floor(digit)
    else:
        rounded = math.floor(digit) if abs(frac) >= unit else math.ceil(digit)

    return rounded / scale


def round_price(price: float) -> float:
    """Half-up rounding to two decimals."""

    return round_value(price, 0.5, PRICE_PRECISION)


def truncate_price(value: float) -> float:
    """
    Drop everything past the second decimal (toward zero).

    The scaled value is first rounded to 6 places so that an exact-cent
    amount such as 0.29 (0.29 * 100 == 28.999999999999996) keeps its cent.
    """

    return math.trunc(round(value * 100, 6)) / 100
