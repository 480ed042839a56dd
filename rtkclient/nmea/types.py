"""NMEA data types for parsed sentences.

This module defines dataclasses for structured NMEA sentence data.

Design Decisions:
    1. Optional fields (float | None): NMEA fields may be empty, indicated by
       consecutive commas. Using None distinguishes "no data received" from
       "measured zero" - critical for DOP and correction-age handling.

    2. Derived validity: ``is_valid`` is a property computed from the fields,
       NOT a stored flag. It indicates navigation validity, not parse validity.
       A successfully parsed sentence may still be navigationally invalid
       (e.g., no GPS fix). Parse errors are signalled by the parsers
       returning None instead.

    3. Unsigned coordinates: latitude and longitude are stored exactly as the
       sentence encodes them (unsigned decimal degrees plus a hemisphere
       letter). ``signed_latitude`` / ``signed_longitude`` apply the sign.

    4. Sentence ID as a class attribute: every variant knows its own ID, so
       consumers can dispatch on ``sentence.sentence_id`` or on the type.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar

from rtkclient.gnss.types import FixQuality, GNSSPosition, estimate_accuracy
from rtkclient.nmea.fields import apply_hemisphere

__all__ = ["GGASentence", "GSASentence", "NMEASentence", "RMCSentence"]


@dataclass(frozen=True)
class NMEASentence:
    """Fields common to every supported sentence.

    Attributes:
        talker_id: Two-letter talker prefix (e.g., "GP", "GN").
        checksum: The checksum exactly as received (two hex digits).
    """

    sentence_id: ClassVar[str] = ""

    talker_id: str
    checksum: str

    @property
    def is_valid(self) -> bool:
        return False


@dataclass(frozen=True)
class GGASentence(NMEASentence):
    """Parsed GGA (Global Positioning System Fix Data) sentence.

    Attributes:
        utc_time: UTC timestamp in HHMMSS.ss format, None if empty.
        latitude: Unsigned latitude in decimal degrees, None if empty.
        latitude_direction: "N" or "S" (empty string if absent).
        longitude: Unsigned longitude in decimal degrees, None if empty.
        longitude_direction: "E" or "W" (empty string if absent).
        fix_quality: Raw fix quality code, 0 if empty or unparseable.
        satellite_count: Satellites in use, 0 if empty or unparseable.
        hdop: Horizontal dilution of precision, None if empty.
        altitude: Altitude above mean sea level, None if empty.
        altitude_unit: Unit of altitude (normally "M").
        geoid_height: Geoid separation, None if empty.
        geoid_unit: Unit of geoid separation (normally "M").
        dgps_age: Age of differential corrections in seconds, None if empty.
        dgps_station: Differential reference station ID, None if empty.
    """

    sentence_id: ClassVar[str] = "GGA"

    utc_time: str | None
    latitude: float | None
    latitude_direction: str
    longitude: float | None
    longitude_direction: str
    fix_quality: int
    satellite_count: int
    hdop: float | None
    altitude: float | None
    altitude_unit: str
    geoid_height: float | None
    geoid_unit: str
    dgps_age: float | None
    dgps_station: str | None

    @property
    def is_valid(self) -> bool:
        return (
            FixQuality.from_code(self.fix_quality) is not FixQuality.INVALID
            and self.latitude is not None
            and self.longitude is not None
        )

    @property
    def signed_latitude(self) -> float | None:
        return apply_hemisphere(self.latitude, self.latitude_direction)

    @property
    def signed_longitude(self) -> float | None:
        return apply_hemisphere(self.longitude, self.longitude_direction)

    def to_position(self, timestamp: datetime | None = None) -> GNSSPosition | None:
        """Build a ``GNSSPosition`` from this fix.

        Args:
            timestamp: Reception time to stamp on the position. Defaults to
                the current UTC time.

        Returns:
            The position, or None when the sentence has no usable fix
            (invalid or unknown fix quality, missing coordinates or missing altitude).
        """
        fix_quality = FixQuality.from_code(self.fix_quality)
        latitude = self.signed_latitude
        longitude = self.signed_longitude
        if fix_quality is FixQuality.INVALID or latitude is None or longitude is None:
            return None
        if self.altitude is None:
            return None

        horizontal_accuracy, vertical_accuracy = estimate_accuracy(self.hdop)
        return GNSSPosition(
            latitude=latitude,
            longitude=longitude,
            altitude=self.altitude,
            horizontal_accuracy=horizontal_accuracy,
            vertical_accuracy=vertical_accuracy,
            timestamp=timestamp or datetime.now(timezone.utc),
            fix_quality=fix_quality,
            satellite_count=self.satellite_count,
            hdop=self.hdop,
        )


@dataclass(frozen=True)
class RMCSentence(NMEASentence):
    """Parsed RMC (Recommended Minimum Specific GNSS Data) sentence.

    Attributes:
        utc_time: UTC timestamp in HHMMSS.ss format, None if empty.
        status: "A" (active, valid) or "V" (void).
        latitude: Unsigned latitude in decimal degrees, None if empty.
        latitude_direction: "N" or "S".
        longitude: Unsigned longitude in decimal degrees, None if empty.
        longitude_direction: "E" or "W".
        speed_knots: Speed over ground in knots, None if empty.
        course_degrees: Course over ground (true), None if empty.
        date: Date in DDMMYY format, None if empty.
        magnetic_variation: Magnetic variation in degrees, None if empty.
        magnetic_variation_direction: "E" or "W".
        mode: FAA mode indicator (NMEA 2.3+), None on older receivers.
    """

    sentence_id: ClassVar[str] = "RMC"

    utc_time: str | None
    status: str
    latitude: float | None
    latitude_direction: str
    longitude: float | None
    longitude_direction: str
    speed_knots: float | None
    course_degrees: float | None
    date: str | None
    magnetic_variation: float | None
    magnetic_variation_direction: str
    mode: str | None = None

    @property
    def is_valid(self) -> bool:
        return (
            self.status == "A"
            and self.latitude is not None
            and self.longitude is not None
        )

    @property
    def signed_latitude(self) -> float | None:
        return apply_hemisphere(self.latitude, self.latitude_direction)

    @property
    def signed_longitude(self) -> float | None:
        return apply_hemisphere(self.longitude, self.longitude_direction)


@dataclass(frozen=True)
class GSASentence(NMEASentence):
    """Parsed GSA (GNSS DOP and Active Satellites) sentence.

    Attributes:
        mode: "M" (manual) or "A" (automatic 2D/3D switching).
        fix_type: 1 = no fix, 2 = 2D, 3 = 3D; 0 if unparseable.
        satellite_ids: IDs of satellites used in the solution, in slot
            order. Empty or non-positive slots are omitted.
        pdop: Position dilution of precision, None if empty.
        hdop: Horizontal dilution of precision, None if empty.
        vdop: Vertical dilution of precision, None if empty.
    """

    sentence_id: ClassVar[str] = "GSA"

    mode: str
    fix_type: int
    satellite_ids: tuple[int, ...] = field(default_factory=tuple)
    pdop: float | None = None
    hdop: float | None = None
    vdop: float | None = None

    @property
    def is_valid(self) -> bool:
        return self.fix_type > 1
