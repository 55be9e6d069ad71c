"""Value coercion shared by the record models.

Upstream systems are loose about types: quantities arrive as numbers,
numeric strings or null, and ids as numbers or strings.
"""

from typing import Any, Union


Quantity = Union[int, float]


def to_quantity(value: Any) -> Quantity:
    """Numbers pass through; numeric strings are parsed; anything else is 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return 0
        return int(number) if number.is_integer() else number
    return 0


def to_id(value: Any) -> Any:
    """Numeric identifiers become strings; everything else is unchanged."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value
