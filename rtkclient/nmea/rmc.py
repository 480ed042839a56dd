"""RMC sentence parser.

RMC (Recommended Minimum Specific GNSS Data) carries the minimum navigation
data set: time, validity status, position, speed and course over ground, and
date. The session only counts RMC sentences, but they are fully decoded so
consumers of the parser get speed and course.

RMC Sentence Format:
    $GPRMC,123519,A,4807.038,N,01131.000,E,022.4,084.4,230394,003.1,W*6A
           |      | |        | |         | |     |     |      |     |
           |      | |        | |         | |     |     |      +-----+-- Magnetic variation + E/W
           |      | |        | |         | |     |     +-- Date (DDMMYY)
           |      | |        | |         | |     +-- Course over ground (degrees true)
           |      | |        | |         | +-- Speed over ground (knots)
           |      | |        | +---------+-- Longitude + E/W
           |      | +--------+-- Latitude + N/S
           |      +-- Status (A=active, V=void)
           +-- UTC time (HHMMSS.ss)

An optional 13th field carries the FAA mode indicator (NMEA 2.3+).
"""

from rtkclient.nmea.checksum import validate_checksum
from rtkclient.nmea.fields import (
    parse_coordinate,
    parse_float_field,
    parse_string_field,
    split_fields,
)
from rtkclient.nmea.types import RMCSentence

__all__ = ["parse_rmc"]

# Address field plus 11 data fields; the mode indicator is optional
_MINIMUM_FIELD_COUNT = 12
_MODE_FIELD_INDEX = 12


def parse_rmc(sentence: str) -> RMCSentence | None:
    """Parse an RMC sentence into structured data.

    Args:
        sentence: Raw NMEA RMC sentence string

    Returns:
        RMCSentence if parsing succeeds, None if the checksum is invalid, the
        sentence has fewer than 12 fields or is not an RMC sentence.
        ``is_valid`` is True only when the status field is "A".
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

    if len(fields[0]) < 5 or fields[0][-3:] != "RMC":
        return None

    mode = None
    if len(fields) > _MODE_FIELD_INDEX:
        mode = parse_string_field(fields[_MODE_FIELD_INDEX])

    return RMCSentence(
        talker_id=fields[0][:2],
        checksum=checksum,
        utc_time=parse_string_field(fields[1]),
        status=fields[2],
        latitude=parse_coordinate(fields[3]),
        latitude_direction=fields[4],
        longitude=parse_coordinate(fields[5]),
        longitude_direction=fields[6],
        speed_knots=parse_float_field(fields[7]),
        course_degrees=parse_float_field(fields[8]),
        date=parse_string_field(fields[9]),
        magnetic_variation=parse_float_field(fields[10]),
        magnetic_variation_direction=fields[11],
        mode=mode,
    )
