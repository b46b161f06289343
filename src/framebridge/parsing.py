"""Helpers for parsing raw string fields into optional typed values.

These are meant for building records out of text input (CSV lines, log
fields) before materialization. Every helper returns ``None`` when the input
is an NA marker or cannot be parsed, so a bad field becomes a missing value
rather than an exception.

Example:
    >>> from framebridge.parsing import float_, bool_
    >>> float_(" 3.5 ")
    3.5
    >>> float_("n/a") is None
    True
    >>> bool_("Yes")
    True
"""

from __future__ import annotations

NA_MARKERS = frozenset({"na", "n/a"})
TRUE_LITERALS = frozenset({"true", "yes"})
FALSE_LITERALS = frozenset({"false", "no"})


def is_na(value: str | None) -> bool:
    """Check whether a raw field denotes a missing value."""
    if value is None or value == "":
        return True
    return value.strip().lower() in NA_MARKERS


def is_valid(value: str | None) -> bool:
    return not is_na(value)


def parse_int(value: str) -> int | None:
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_float(value: str) -> float | None:
    try:
        return float(value.strip())
    except ValueError:
        return None


def parse_bool(value: str) -> bool | None:
    literal = value.strip().lower()
    if literal in TRUE_LITERALS:
        return True
    if literal in FALSE_LITERALS:
        return False
    return None


def int_(value: str | None) -> int | None:
    return parse_int(value) if is_valid(value) else None


def float_(value: str | None) -> float | None:
    return parse_float(value) if is_valid(value) else None


def str_(value: str | None) -> str | None:
    return value if is_valid(value) else None


def bool_(value: str | None) -> bool | None:
    return parse_bool(value) if is_valid(value) else None
