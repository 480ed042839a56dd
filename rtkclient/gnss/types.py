"""Position value types shared by the parser, the session and its consumers.

Design Decisions:
    1. Immutable positions: a ``GNSSPosition`` is never mutated. When a GSA
       sentence supplies dilution-of-precision values, a new copy is created
       with ``with_dop``. Consumers can therefore keep a reference to any
       published position without it changing underneath them.

    2. Optional accuracy: horizontal and vertical accuracy are estimated from
       HDOP. When the receiver did not report HDOP there is no honest
       estimate, so the fields are None rather than a made-up number.

    3. FixQuality codes round-trip: the enum values are the NMEA GGA codes,
       so ``int(position.fix_quality)`` is what goes back on the wire.
"""

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum

__all__ = ["FixQuality", "GNSSPosition", "estimate_accuracy"]

# Empirical scale factors from HDOP to accuracy in meters
_HORIZONTAL_ACCURACY_PER_HDOP = 3.0
_VERTICAL_ACCURACY_PER_HDOP = 5.0


class FixQuality(IntEnum):
    """GGA fix quality indicator.

    Values are the codes defined by NMEA 0183 for GGA field 6.
    """

    INVALID = 0
    GPS = 1
    DGPS = 2
    PPS = 3
    RTK_FIXED = 4
    RTK_FLOAT = 5
    ESTIMATED = 6
    MANUAL = 7
    SIMULATION = 8

    @classmethod
    def from_code(cls, code: int) -> "FixQuality":
        """Map a raw GGA code to a member, treating unknown codes as INVALID."""
        try:
            return cls(code)
        except ValueError:
            return cls.INVALID

    @property
    def label(self) -> str:
        """Short human readable name, e.g. ``"RTK Float"``."""
        return _LABELS[self]

    @property
    def accuracy(self) -> str:
        """Nominal accuracy class of this fix type, e.g. ``"±2cm"``."""
        return _NOMINAL_ACCURACY.get(self, "Unknown")


_LABELS = {
    FixQuality.INVALID: "Invalid",
    FixQuality.GPS: "GPS",
    FixQuality.DGPS: "DGPS",
    FixQuality.PPS: "PPS",
    FixQuality.RTK_FIXED: "RTK",
    FixQuality.RTK_FLOAT: "RTK Float",
    FixQuality.ESTIMATED: "Estimated",
    FixQuality.MANUAL: "Manual",
    FixQuality.SIMULATION: "Simulation",
}

_NOMINAL_ACCURACY = {
    FixQuality.RTK_FIXED: "±2cm",
    FixQuality.RTK_FLOAT: "±1m",
    FixQuality.DGPS: "±3m",
    FixQuality.GPS: "±5m",
}


def estimate_accuracy(hdop: float | None) -> tuple[float | None, float | None]:
    """Estimate (horizontal, vertical) accuracy in meters from HDOP."""
    if hdop is None:
        return None, None
    return hdop * _HORIZONTAL_ACCURACY_PER_HDOP, hdop * _VERTICAL_ACCURACY_PER_HDOP


@dataclass(frozen=True)
class GNSSPosition:
    """A position fix as published by the session.

    Attributes:
        latitude: Decimal degrees, positive=North.
        longitude: Decimal degrees, positive=East.
        altitude: Altitude above mean sea level in meters.
        horizontal_accuracy: Estimated horizontal accuracy in meters
            (HDOP x 3), None when HDOP is unknown.
        vertical_accuracy: Estimated vertical accuracy in meters
            (HDOP x 5), None when HDOP is unknown.
        timestamp: Time the fix was received (timezone-aware, UTC).
        fix_quality: Fix type reported by the receiver.
        satellite_count: Number of satellites used in the solution.
        hdop: Horizontal dilution of precision, None if not reported.
        vdop: Vertical dilution of precision, None until a GSA arrives.
        pdop: Position dilution of precision, None until a GSA arrives.

    Example:
        >>> position.fix_quality
        <FixQuality.RTK_FIXED: 4>
        >>> position.with_dop(pdop=1.5, hdop=None, vdop=1.2).hdop  # unchanged
        0.8
    """

    latitude: float
    longitude: float
    altitude: float
    horizontal_accuracy: float | None
    vertical_accuracy: float | None
    timestamp: datetime
    fix_quality: FixQuality
    satellite_count: int
    hdop: float | None = None
    vdop: float | None = None
    pdop: float | None = None

    @property
    def is_valid(self) -> bool:
        """False when the receiver reported no fix."""
        return self.fix_quality != FixQuality.INVALID

    def with_dop(
        self,
        pdop: float | None,
        hdop: float | None,
        vdop: float | None,
    ) -> "GNSSPosition":
        """Return a copy with the supplied DOP values; None keeps the current one."""
        return dataclasses.replace(
            self,
            pdop=pdop if pdop is not None else self.pdop,
            hdop=hdop if hdop is not None else self.hdop,
            vdop=vdop if vdop is not None else self.vdop,
        )
