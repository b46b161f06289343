"""Coercion of record field values to column doubles.

Frame columns only hold ``float64`` values. Every field value is mapped to a
double with a fixed policy:

- numbers (``int``, ``float``, ``Decimal``, numpy scalars) pass through
- booleans map ``True -> 1.0`` and ``False -> 0.0``
- ``None`` maps to ``NaN``
- anything else maps to ``NaN`` and is counted as *degraded*

Degraded values never fail a task. The count is surfaced on partition
results and on the finalized frame so callers can decide what to do.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from framebridge.parsing import is_na, parse_bool, parse_float

NAN = math.nan


def coerce_value(value: Any) -> tuple[float, bool]:
    """Coerce a single field value to a double.

    Args:
        value: Field value from a record.

    Returns:
        Tuple of (double value, degraded flag).
    """
    if value is None:
        return NAN, False

    # bool is an int subclass; it must be matched first.
    if isinstance(value, (bool, np.bool_)):
        return (1.0 if value else 0.0), False

    if isinstance(value, numbers.Number):
        try:
            return float(value), False
        except (TypeError, ValueError, OverflowError):
            # complex, or outside the double range
            return NAN, True

    return NAN, True


def coerce_string(value: str) -> tuple[float, bool]:
    """Parse a string field into a double.

    NA markers map to ``NaN`` without counting as degraded; strings that are
    neither numbers nor boolean literals are degraded.
    """
    if is_na(value):
        return NAN, False

    number = parse_float(value)
    if number is not None:
        return number, False

    flag = parse_bool(value)
    if flag is not None:
        return (1.0 if flag else 0.0), False

    return NAN, True


def coerce_value_parsing_strings(value: Any) -> tuple[float, bool]:
    if isinstance(value, str):
        return coerce_string(value)
    return coerce_value(value)


def get_coercer(parse_strings: bool = False) -> Callable[[Any], tuple[float, bool]]:
    """Get the coercion function for the given string policy."""
    return coerce_value_parsing_strings if parse_strings else coerce_value


def to_double(value: Any) -> float:
    """Coerce a value to a double, discarding the degraded flag."""
    return coerce_value(value)[0]


@dataclass
class CoercionStats:
    """Running counters kept by a partition writer.

    Attributes:
        values: Total number of values coerced.
        nulls: Values that were explicitly ``None``.
        degraded: Values with no numeric mapping, stored as ``NaN``.
    """

    values: int = 0
    nulls: int = 0
    degraded: int = 0

    def merge(self, other: "CoercionStats") -> "CoercionStats":
        return CoercionStats(
            values=self.values + other.values,
            nulls=self.nulls + other.nulls,
            degraded=self.degraded + other.degraded,
        )
