"""Streaming NMEA parser.

Receivers deliver NMEA as a byte stream whose chunk boundaries have nothing
to do with sentence boundaries: a BLE notification or a TCP read may end in
the middle of a sentence, or carry several sentences at once.
``NMEAStreamParser`` reassembles lines across ``feed`` calls so the set of
decoded sentences depends only on the bytes, never on how they were split.

Buffering policy:
    - Everything up to and including the last line terminator (``\\r`` or
      ``\\n``) in the buffer is consumed and decoded in one go.
    - Bytes after the last terminator are an unterminated fragment and are
      carried over to the next call. Consumed lines are never retained.
    - The carried-over fragment is capped at 8 KB; when a source streams
      without terminators the oldest bytes are discarded.

Malformed lines (bad checksum, unknown sentence, truncated fields, non-ASCII
noise) are dropped silently. Receivers routinely emit transient noise at
power-up and on link glitches, so this is not an error condition.
"""

import logging
from collections.abc import Callable

from rtkclient.nmea.checksum import validate_checksum
from rtkclient.nmea.gga import parse_gga
from rtkclient.nmea.gsa import parse_gsa
from rtkclient.nmea.rmc import parse_rmc
from rtkclient.nmea.types import NMEASentence

__all__ = ["MAX_BUFFER_SIZE", "NMEAStreamParser", "parse_sentence"]

logger = logging.getLogger(__name__)

MAX_BUFFER_SIZE = 8192

_PARSERS: dict[str, Callable[[str], NMEASentence | None]] = {
    "GGA": parse_gga,
    "RMC": parse_rmc,
    "GSA": parse_gsa,
}


def parse_sentence(line: str) -> NMEASentence | None:
    """Decode one complete NMEA line into a typed sentence.

    Dispatches on the sentence ID (last three characters of the address
    field). Unsupported sentence IDs and malformed lines return None.

    Args:
        line: One NMEA sentence, with or without line terminator.

    Returns:
        A GGASentence, RMCSentence or GSASentence, or None.
    """
    line = line.strip()
    if not validate_checksum(line):
        return None

    address = line[1:].split(",", 1)[0]
    parser = _PARSERS.get(address[-3:])
    if parser is None:
        return None
    return parser(line)


def _last_terminator(buffer: bytes | bytearray) -> int:
    return max(buffer.rfind(b"\n"), buffer.rfind(b"\r"))


class NMEAStreamParser:
    """Reassembles NMEA sentences from arbitrarily split byte chunks.

    The parser is not thread-safe. It must be driven by a single consumer,
    which is how ``GNSSSession`` uses it.

    Example::

        parser = NMEAStreamParser()
        parser.feed(b"$GPGGA,123519,4807.038,N,01131.0")   # -> []
        parser.feed(b"00,E,1,08,0.9,545.4,M,46.9,M,,*47\\r\\n")  # -> [GGASentence]

    Args:
        max_buffer_size: Cap on the carried-over fragment in bytes.
    """

    def __init__(self, max_buffer_size: int = MAX_BUFFER_SIZE) -> None:
        self._max_buffer_size = max_buffer_size
        self._buffer = bytearray()

    @property
    def buffer(self) -> bytes:
        """Bytes received but not yet terminated."""
        return bytes(self._buffer)

    def reset(self) -> None:
        """Drop any partially received sentence."""
        self._buffer.clear()

    def feed(self, data: bytes) -> list[NMEASentence]:
        """Consume a chunk of bytes and return the sentences it completes.

        Args:
            data: Raw bytes from the receiver, split at any position.

        Returns:
            Sentences decoded from every line completed by this chunk, in
            stream order. Empty input returns an empty list and leaves the
            buffer unchanged.
        """
        if not data:
            return []

        self._buffer.extend(data)

        end = _last_terminator(self._buffer)
        if end < 0:
            self._trim()
            return []

        complete = bytes(self._buffer[: end + 1])
        del self._buffer[: end + 1]
        self._trim()

        sentences = []
        for raw_line in complete.splitlines():
            line = raw_line.decode("ascii", errors="replace").strip()
            if not line:
                continue
            sentence = parse_sentence(line)
            if sentence is None:
                logger.debug("Dropped malformed NMEA line: %r", line[:82])
                continue
            sentences.append(sentence)
        return sentences

    def _trim(self) -> None:
        overflow = len(self._buffer) - self._max_buffer_size
        if overflow > 0:
            logger.debug("NMEA buffer overflow, discarding %d bytes", overflow)
            del self._buffer[:overflow]
