"""Helpers for decoding individual comma-separated NMEA fields.

Receivers leave a field empty (``,,``) when they have no value for it. Every
helper here maps an empty or unparseable field to None so callers can tell
"not reported" apart from a reported zero.
"""

import math

__all__ = [
    "apply_hemisphere",
    "parse_coordinate",
    "parse_float_field",
    "parse_int_field",
    "parse_string_field",
    "split_fields",
]

_NEGATIVE_HEMISPHERES = ("S", "W")


def parse_float_field(value: str) -> float | None:
    """Decimal field as float. "nan" and "inf" count as unparseable.

    Example:
        >>> parse_float_field("545.4")
        545.4
        >>> parse_float_field("") is None
        True
    """
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_int_field(value: str) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_string_field(value: str) -> str | None:
    return value or None


def parse_coordinate(value: str) -> float | None:
    """Convert ``DDMM.MMMM`` / ``DDDMM.MMMM`` to unsigned decimal degrees.

    Everything above the hundreds is whole degrees, the rest is minutes::

        4807.038  ->  48 + 07.038 / 60  =  48.1173

    The sign comes from the hemisphere field; see ``apply_hemisphere``.

    Returns:
        Decimal degrees, or None for an empty, non-numeric or negative field.
    """
    number = parse_float_field(value)
    if number is None or number < 0:
        return None
    degrees = math.floor(number / 100)
    return degrees + math.fmod(number, 100) / 60.0


def apply_hemisphere(degrees: float | None, direction: str) -> float | None:
    """Negate *degrees* for "S" and "W"; any other letter leaves it as is."""
    if degrees is None:
        return None
    return -degrees if direction in _NEGATIVE_HEMISPHERES else degrees


def split_fields(sentence: str) -> tuple[list[str], str] | None:
    """Split ``$GPGGA,a,b,...*hh`` into ``(["GPGGA", "a", "b", ...], "hh")``.

    ``fields[0]`` is the address field: talker ID followed by sentence ID.
    Returns None when the ``$`` or ``*`` delimiter is missing.
    """
    if not sentence.startswith("$") or "*" not in sentence:
        return None
    body, _, checksum = sentence[1:].partition("*")
    return body.split(","), checksum
