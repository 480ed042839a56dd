"""GSA sentence parser.

GSA (GNSS DOP and Active Satellites) reports which satellites are used in
the solution and the resulting dilution of precision. The session uses it to
amend the DOP values of the latest GGA position.

GSA Sentence Format:
    $GPGSA,A,3,04,05,,09,12,,,24,,,,,2.5,1.3,2.1*39
           | | |                      | |   |
           | | |                      | |   +-- VDOP
           | | |                      | +-- HDOP
           | | |                      +-- PDOP
           | | +-- 12 fixed slots of satellite IDs (empty when unused)
           | +-- Fix type (1=none, 2=2D, 3=3D)
           +-- Mode (M=manual, A=automatic)
"""

from rtkclient.nmea.checksum import validate_checksum
from rtkclient.nmea.fields import parse_float_field, parse_int_field, split_fields
from rtkclient.nmea.types import GSASentence

__all__ = ["parse_gsa"]

# Address, mode, fix type, 12 satellite slots, PDOP, HDOP, VDOP
_MINIMUM_FIELD_COUNT = 18
_SATELLITE_SLOTS = slice(3, 15)


def _parse_satellite_ids(slots: list[str]) -> tuple[int, ...]:
    """Keep only positive, parseable satellite IDs, preserving slot order."""
    satellite_ids = []
    for slot in slots:
        satellite_id = parse_int_field(slot)
        if satellite_id is not None and satellite_id > 0:
            satellite_ids.append(satellite_id)
    return tuple(satellite_ids)


def parse_gsa(sentence: str) -> GSASentence | None:
    """Parse a GSA sentence into structured data.

    Args:
        sentence: Raw NMEA GSA sentence string

    Returns:
        GSASentence if parsing succeeds, None if the checksum is invalid, the
        sentence has fewer than 18 fields or is not a GSA sentence.
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

    if len(fields[0]) < 5 or fields[0][-3:] != "GSA":
        return None

    return GSASentence(
        talker_id=fields[0][:2],
        checksum=checksum,
        mode=fields[1],
        fix_type=parse_int_field(fields[2]) or 0,
        satellite_ids=_parse_satellite_ids(fields[_SATELLITE_SLOTS]),
        pdop=parse_float_field(fields[15]),
        hdop=parse_float_field(fields[16]),
        # Some receivers append a system ID after VDOP (NMEA 4.1)
        vdop=parse_float_field(fields[17]),
    )
