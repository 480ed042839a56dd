"""GGA sentence parser and generator.

GGA (Global Positioning System Fix Data) is one of the most important NMEA
sentences, providing position fix information including coordinates, altitude,
fix quality, and satellite/accuracy metrics. It is also the sentence NTRIP
casters expect from a rover, so this module can regenerate one from a
``GNSSPosition``.

GGA Sentence Format:
    $GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47
           |      |        | |         | | |  |   |     | |    | |
           |      |        | |         | | |  |   |     | |    | +-- DGPS station ID
           |      |        | |         | | |  |   |     | |    +-- DGPS age (s)
           |      |        | |         | | |  |   |     | +-- Geoid height (M=meters)
           |      |        | |         | | |  |   +-----+-- Altitude above MSL
           |      |        | |         | | |  +-- HDOP (horizontal dilution)
           |      |        | |         | | +-- Number of satellites
           |      |        | |         | +-- Fix quality (0-8)
           |      |        | +---------+-- Longitude + E/W
           |      +--------+-- Latitude + N/S
           +-- UTC time (HHMMSS.ss)
"""

from datetime import timezone

from rtkclient.gnss.types import GNSSPosition
from rtkclient.nmea.checksum import compute_checksum, validate_checksum
from rtkclient.nmea.fields import (
    parse_coordinate,
    parse_float_field,
    parse_int_field,
    parse_string_field,
    split_fields,
)
from rtkclient.nmea.types import GGASentence

__all__ = ["build_gga_sentence", "parse_gga"]

# Address field plus 14 data fields; the DGPS fields must be present even
# when empty
_MINIMUM_FIELD_COUNT = 15

# HDOP reported to the caster when the receiver never supplied one
_DEFAULT_HDOP = 1.0


def _build_gga(fields: list[str], checksum: str) -> GGASentence:
    """Construct a GGASentence from split fields.

    Maps NMEA field indices to GGASentence attributes:
        fields[0]  -> talker ID (first two characters)
        fields[1]  -> utc_time (HHMMSS.ss format)
        fields[2]  -> latitude (DDMM.MMMM format), fields[3] -> N/S
        fields[4]  -> longitude (DDDMM.MMMM format), fields[5] -> E/W
        fields[6]  -> fix_quality
        fields[7]  -> satellite_count
        fields[8]  -> HDOP
        fields[9]  -> altitude, fields[10] -> unit
        fields[11] -> geoid height, fields[12] -> unit
        fields[13] -> DGPS age, fields[14] -> DGPS station

    Note: fix_quality and satellite_count default to 0 when the field is
    empty or unparseable, since 0 already means "no fix" / "no satellites".
    """
    return GGASentence(
        talker_id=fields[0][:2],
        checksum=checksum,
        utc_time=parse_string_field(fields[1]),
        latitude=parse_coordinate(fields[2]),
        latitude_direction=fields[3],
        longitude=parse_coordinate(fields[4]),
        longitude_direction=fields[5],
        fix_quality=parse_int_field(fields[6]) or 0,
        satellite_count=parse_int_field(fields[7]) or 0,
        hdop=parse_float_field(fields[8]),
        altitude=parse_float_field(fields[9]),
        altitude_unit=fields[10],
        geoid_height=parse_float_field(fields[11]),
        geoid_unit=fields[12],
        dgps_age=parse_float_field(fields[13]),
        dgps_station=parse_string_field(fields[14]),
    )


def parse_gga(sentence: str) -> GGASentence | None:
    """Parse a GGA sentence into structured data.

    This is the main entry point for GGA parsing. It performs:
    1. Whitespace stripping (handles \\r\\n line endings)
    2. Checksum validation
    3. Field extraction and count validation
    4. Message type validation (sentence ID must be GGA, any talker)
    5. Field parsing and coordinate conversion

    Args:
        sentence: Raw NMEA GGA sentence string

    Returns:
        GGASentence if parsing succeeds, or None if the checksum is invalid,
        the sentence has too few fields or is not a GGA sentence.

    Note:
        A returned GGASentence with is_valid=False indicates a successfully
        parsed sentence without a fix (fix_quality=0). This is different from
        returning None, which indicates a malformed sentence.

    Example:
        >>> result = parse_gga("$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47")
        >>> result.signed_latitude
        48.1173
        >>> result.is_valid
        True
    """
    sentence = sentence.strip()

    if not validate_checksum(sentence):
        return None

    parts = split_fields(sentence)
    if parts is None:
        return None

    fields, checksum = parts
    if len(fields) < _MINIMUM_FIELD_COUNT:
        return None

    if len(fields[0]) < 5 or fields[0][-3:] != "GGA":
        return None

    return _build_gga(fields, checksum)


def _format_coordinate(value: float, degree_digits: int) -> str:
    """Format unsigned decimal degrees as D..DMM.MMMM.

    Minutes are rounded to four decimals first; a value that rounds up to
    60 minutes is carried into the degree part so the output never reads
    "xx60.0000".
    """
    degrees = int(value)
    minutes = round((value - degrees) * 60.0, 4)
    if minutes >= 60.0:
        degrees += 1
        minutes -= 60.0
    return f"{degrees:0{degree_digits}d}{minutes:07.4f}"


def build_gga_sentence(position: GNSSPosition, talker_id: str = "GP") -> str:
    """Regenerate a GGA sentence from a position.

    The result is signed with ``compute_checksum``, the same routine used by
    the validator, so it parses back with ``parse_gga``.

    Args:
        position: Position to encode.
        talker_id: Two-letter talker prefix.

    Returns:
        A complete sentence without line terminator, e.g.
        ``"$GPGGA,123519.00,4807.0380,N,01131.0000,E,4,12,0.8,545.4,M,0.0,M,,*5D"``
    """
    timestamp = position.timestamp
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    utc_time = f"{timestamp:%H%M%S}.{timestamp.microsecond // 10000:02d}"

    hdop = position.hdop if position.hdop is not None else _DEFAULT_HDOP

    fields = [
        f"{talker_id}GGA",
        utc_time,
        _format_coordinate(abs(position.latitude), 2),
        "N" if position.latitude >= 0 else "S",
        _format_coordinate(abs(position.longitude), 3),
        "E" if position.longitude >= 0 else "W",
        str(int(position.fix_quality)),
        f"{position.satellite_count:02d}",
        f"{hdop:.1f}",
        f"{position.altitude:.1f}",
        "M",
        "0.0",
        "M",
        "",
        "",
    ]
    content = ",".join(fields)
    return f"${content}*{compute_checksum(content)}"
