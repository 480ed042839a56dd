"""NMEA 0183 parser for GGA, RMC and GSA sentences."""

from rtkclient.nmea.checksum import compute_checksum, validate_checksum
from rtkclient.nmea.gga import build_gga_sentence, parse_gga
from rtkclient.nmea.gsa import parse_gsa
from rtkclient.nmea.rmc import parse_rmc
from rtkclient.nmea.stream import NMEAStreamParser, parse_sentence
from rtkclient.nmea.types import (
    GGASentence,
    GSASentence,
    NMEASentence,
    RMCSentence,
)

__all__ = [
    "GGASentence",
    "GSASentence",
    "NMEASentence",
    "NMEAStreamParser",
    "RMCSentence",
    "build_gga_sentence",
    "compute_checksum",
    "parse_gga",
    "parse_gsa",
    "parse_rmc",
    "parse_sentence",
    "validate_checksum",
]
