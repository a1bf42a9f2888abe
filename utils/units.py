"""
Unit conversion for vendor weights and dimensions.

Weights are stored in grams and dimensions in millimeters, rounded to
three decimals. Unknown units yield None rather than a guessed value.
"""

from typing import Optional, Union

Number = Union[int, float, str]

GRAMS_PER_UNIT = {
    "lb": 453.592,
    "lbs": 453.592,
    "pound": 453.592,
    "pounds": 453.592,
    "oz": 28.3495,
    "ounce": 28.3495,
    "ounces": 28.3495,
    "kg": 1000.0,
    "g": 1.0,
    "gram": 1.0,
    "grams": 1.0,
}

MILLIMETERS_PER_UNIT = {
    "in": 25.4,
    "inch": 25.4,
    "inches": 25.4,
    "cm": 10.0,
    "mm": 1.0,
}


def _to_float(value: Optional[Number]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _convert(value: Optional[Number], unit: Optional[str], factors: dict[str, float]) -> Optional[float]:
    amount = _to_float(value)
    if amount is None or not unit:
        return None

    factor = factors.get(unit.strip().lower().rstrip("."))
    if factor is None:
        return None

    return round(amount * factor, 3)


def to_grams(value: Optional[Number], unit: Optional[str]) -> Optional[float]:
    """
    Convert a weight to grams.

    >>> to_grams(1, "lb")
    453.592
    """
    return _convert(value, unit, GRAMS_PER_UNIT)


def to_millimeters(value: Optional[Number], unit: Optional[str]) -> Optional[float]:
    """
    Convert a length to millimeters.

    >>> to_millimeters(0, "in")
    0.0
    """
    return _convert(value, unit, MILLIMETERS_PER_UNIT)
